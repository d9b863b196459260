"""
Per-library enrichment.

Every merged library gets its version status and vulnerability data
resolved concurrently, each call under its own budget. A failing or slow
call only blanks its own fields; the library always stays in the result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from scriptprobe.aliases import AliasTable
from scriptprobe.deadline import Deadline
from scriptprobe.models import EnrichedLibrary, LibraryCandidate, ScanConfig, SignatureVulnerability
from scriptprobe.resolvers import VersionResolver, VulnerabilityReport, VulnerabilityResolver
from scriptprobe.signatures import SignatureDatabase

logger = structlog.get_logger(__name__)


class Enricher:
    """
    Fans out version and vulnerability resolution per library.

    Results are collected positionally, so the output order matches the
    merged list regardless of which lookups finish first.
    """

    def __init__(
        self,
        config: ScanConfig,
        versions: VersionResolver,
        vulnerabilities: VulnerabilityResolver,
        signatures: SignatureDatabase | None = None,
        aliases: AliasTable | None = None,
    ) -> None:
        self.config = config
        self.versions = versions
        self.vulnerabilities = vulnerabilities
        self.signatures = signatures
        self.aliases = aliases

    async def enrich(
        self,
        libraries: Sequence[LibraryCandidate],
        deadline: Deadline,
    ) -> list[EnrichedLibrary]:
        """
        Enrich every library concurrently.

        Args:
            libraries: Merged candidates
            deadline: Overall scan deadline capping each budget

        Returns:
            One enriched entry per input library, in input order
        """
        results = await asyncio.gather(
            *(self._enrich_one(library, deadline) for library in libraries),
            return_exceptions=True,
        )

        enriched: list[EnrichedLibrary] = []
        for library, result in zip(libraries, results):
            if isinstance(result, Exception):
                logger.error("enrichment_failed", library=library.name, error=str(result))
                enriched.append(EnrichedLibrary.from_candidate(library))
            elif isinstance(result, EnrichedLibrary):
                enriched.append(result)
            else:
                raise result

        logger.info("enrichment_complete", libraries=len(enriched))
        return enriched

    async def _enrich_one(self, library: LibraryCandidate, deadline: Deadline) -> EnrichedLibrary:
        budget = self.config.enrichment_budget
        version_outcome, vulnerability_outcome = await asyncio.gather(
            deadline.limit(
                self.versions.resolve(library.name, library.version),
                budget,
                f"version:{library.name}",
            ),
            deadline.limit(
                self.vulnerabilities.lookup(library.name, library.version),
                budget,
                f"vulnerabilities:{library.name}",
            ),
        )

        status = version_outcome.unwrap_or(self.versions.unresolved(library.name, library.version))
        report = vulnerability_outcome.unwrap_or(None)

        if not version_outcome.succeeded:
            logger.debug("version_unresolved", library=library.name, reason=version_outcome.failure)
        if not vulnerability_outcome.succeeded:
            logger.debug("vulnerabilities_unresolved", library=library.name, reason=vulnerability_outcome.failure)

        return EnrichedLibrary.from_candidate(
            library,
            registry_name=status.registry_name,
            latest_version=status.latest_version,
            is_outdated=status.is_outdated,
            version_diff=status.version_diff,
            vulnerability_count=report.count if isinstance(report, VulnerabilityReport) else None,
            vulnerabilities=report.vulnerabilities if isinstance(report, VulnerabilityReport) else [],
            signature_advisories=self._signature_advisories(library),
        )

    def _signature_advisories(self, library: LibraryCandidate) -> list[SignatureVulnerability]:
        if self.signatures is None or not library.has_version:
            return []
        return self.signatures.advisories_for(library.name, library.version, self.aliases)

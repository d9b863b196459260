"""
Scan orchestrator for ScriptProbe.

Runs the detection phases against one target page, merges their
candidates, enriches the merged libraries and assembles the report.
"""

from __future__ import annotations

import asyncio
import time

import httpx
import structlog

from scriptprobe.aliases import AliasTable
from scriptprobe.browser import SessionFactory, browser_session
from scriptprobe.dedup import Deduplicator
from scriptprobe.deadline import Deadline
from scriptprobe.detectors import RuntimeDetector, RuntimeResult, SignatureDetector, StaticDetector
from scriptprobe.enricher import Enricher
from scriptprobe.models import LibraryCandidate, Report, ScanConfig, TlsExpiry
from scriptprobe.outcome import FailureKind, Outcome
from scriptprobe.page import check_tls, fetch_page
from scriptprobe.reports import ReportAssembler
from scriptprobe.resolvers import VersionResolver, VulnerabilityResolver
from scriptprobe.signatures import SignatureDatabase

logger = structlog.get_logger(__name__)


class ScanOrchestrator:
    """
    Main scan orchestrator.

    Phase order: page fetch (fatal on failure), static detection, runtime
    detection concurrently with the TLS check, signature detection over
    script-src and runtime URLs, merge, enrichment, report.
    """

    def __init__(
        self,
        config: ScanConfig,
        *,
        signatures: SignatureDatabase | None = None,
        aliases: AliasTable | None = None,
        client: httpx.AsyncClient | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            config: Scan configuration
            signatures: Signature database (loaded from config when omitted)
            aliases: Display name to package identity table
            client: HTTP client; one is created per scan when omitted
            session_factory: Browser session factory for runtime detection
        """
        self.config = config
        self.signatures = signatures if signatures is not None else SignatureDatabase.load(config.signature_db_path)
        self.aliases = aliases if aliases is not None else AliasTable()
        self._client = client
        self.session_factory = session_factory or browser_session
        self.static_detector = StaticDetector()
        self.deduplicator = Deduplicator()
        self.assembler = ReportAssembler()

    async def scan(self) -> Report:
        """
        Execute the scan.

        Returns:
            Report for the target page

        Raises:
            PageFetchError: The target page could not be fetched
        """
        started = time.monotonic()
        deadline = Deadline(self.config.scan_timeout)
        logger.info("scan_started", target=self.config.target_url, deadline=self.config.scan_timeout)

        client = self._client or self._create_client()
        try:
            report = await self._run(client, deadline, started)
        finally:
            if self._client is None:
                await client.aclose()

        logger.info(
            "scan_completed",
            target=self.config.target_url,
            libraries=len(report.libraries),
            duration_ms=report.duration_ms,
        )
        return report

    async def _run(self, client: httpx.AsyncClient, deadline: Deadline, started: float) -> Report:
        page = await fetch_page(client, self.config)

        static = self.static_detector.detect(page.script_sources)

        runtime_outcome, tls_outcome = await asyncio.gather(
            self._runtime_phase(page.url, deadline),
            deadline.limit(
                check_tls(page.url, self.config.tls_budget, self.config.verify_ssl),
                self.config.tls_budget,
                "tls",
            ),
        )
        runtime: RuntimeResult = runtime_outcome.unwrap_or(RuntimeResult())
        tls_expiry: TlsExpiry | None = tls_outcome.unwrap_or(None)

        signature_detector = SignatureDetector(self.config, self.signatures, client)
        candidate_urls = list(dict.fromkeys(page.absolute_script_urls() + runtime.script_urls))
        signature_outcome = await signature_detector.detect(
            candidate_urls,
            deadline=Deadline(deadline.budget(self.config.signature_budget)),
        )
        signature_hits: list[LibraryCandidate] = signature_outcome.unwrap_or([])

        merged = self.deduplicator.merge([*static, *runtime.libraries, *signature_hits])
        logger.info(
            "libraries_merged",
            static=len(static),
            runtime=len(runtime.libraries),
            signature=len(signature_hits),
            merged=len(merged),
        )

        enricher = Enricher(
            self.config,
            VersionResolver(self.config, client, self.aliases),
            VulnerabilityResolver(self.config, client, self.aliases),
            signatures=self.signatures,
            aliases=self.aliases,
        )
        libraries = await enricher.enrich(merged, deadline)

        duration_ms = int((time.monotonic() - started) * 1000)
        return self.assembler.assemble(self.config.target_url, page.headers, libraries, tls_expiry, duration_ms)

    async def _runtime_phase(self, url: str, deadline: Deadline) -> Outcome[RuntimeResult]:
        if not self.config.runtime_detection:
            logger.info("runtime_detection_disabled")
            return Outcome.fail(FailureKind.SKIPPED, "runtime detection disabled")
        detector = RuntimeDetector(self.config, session_factory=self.session_factory)
        return await deadline.limit(detector.detect(url), self.config.runtime_budget, "runtime")

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=self.config.verify_ssl,
            timeout=self.config.fetch_timeout,
            headers={"User-Agent": self.config.user_agent},
        )

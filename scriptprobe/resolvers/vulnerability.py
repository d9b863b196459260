"""
Vulnerability lookup against the OSV database.

Each OSV advisory is reduced to a report-sized record: a CVE-style id when
one exists, all CVE aliases, the highest CVSS v3/v4 score, and a summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from cvss import CVSS3, CVSS4
from cvss.exceptions import CVSSError

from scriptprobe.aliases import AliasTable
from scriptprobe.models import ScanConfig, Vulnerability
from scriptprobe.outcome import FailureKind, Outcome
from scriptprobe.versions import is_concrete

logger = structlog.get_logger(__name__)

MAX_REPORTED_VULNERABILITIES = 5

CVSS_TYPES = ("CVSS_V3", "CVSS_V4")


@dataclass
class VulnerabilityReport:
    """All matches for one package version; `vulnerabilities` is capped."""

    count: int
    vulnerabilities: list[Vulnerability] = field(default_factory=list)


def cvss_score(severity_type: str, score: Any) -> float | None:
    """
    Numeric base score of an OSV severity entry.

    Accepts plain numbers ("7.5") and CVSS vector strings
    ("CVSS:3.1/AV:N/..."), which are scored with the cvss library.
    """
    text = str(score).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        pass
    try:
        if severity_type == "CVSS_V4" or text.startswith("CVSS:4"):
            return float(CVSS4(text).base_score)
        if text.startswith("CVSS:3"):
            return float(CVSS3(text).base_score)
    except (CVSSError, ValueError, KeyError) as e:
        logger.debug("cvss_vector_unparsed", vector=text, error=str(e))
    return None


def highest_cvss(severity: Any) -> tuple[str, float] | None:
    """Highest-scoring CVSS v3/v4 entry as (type, score)."""
    if not isinstance(severity, list):
        return None
    best: tuple[str, float] | None = None
    for entry in severity:
        if not isinstance(entry, dict) or entry.get("type") not in CVSS_TYPES or not entry.get("score"):
            continue
        score = cvss_score(entry["type"], entry["score"])
        if score is not None and (best is None or score > best[1]):
            best = (entry["type"], score)
    return best


def severity_label(severity: Any) -> str:
    """
    Severity string of an advisory.

    "<type>:<score>" for the best CVSS entry, else the first listed
    severity type, else "UNKNOWN".
    """
    best = highest_cvss(severity)
    if best is not None:
        return f"{best[0]}:{best[1]:g}"
    if isinstance(severity, list) and severity and isinstance(severity[0], dict) and severity[0].get("type"):
        return str(severity[0]["type"])
    return "UNKNOWN"


def reduce_advisory(advisory: dict[str, Any]) -> Vulnerability:
    """Reduce an OSV advisory to its report record."""
    aliases = [str(a) for a in advisory.get("aliases") or [] if a]
    native_id = str(advisory.get("id") or "")
    cve_ids = [a for a in aliases if a.upper().startswith("CVE-")]
    if native_id.upper().startswith("CVE-") and native_id not in cve_ids:
        cve_ids.insert(0, native_id)
    return Vulnerability(
        id=cve_ids[0] if cve_ids else native_id,
        cve_ids=cve_ids,
        severity=severity_label(advisory.get("severity")),
        summary=str(advisory.get("summary") or advisory.get("details") or ""),
    )


class VulnerabilityResolver:
    """Queries OSV for advisories affecting a package version."""

    def __init__(
        self,
        config: ScanConfig,
        client: httpx.AsyncClient,
        aliases: AliasTable,
    ) -> None:
        self.config = config
        self.client = client
        self.aliases = aliases

    async def lookup(self, name: str, version: str) -> Outcome[VulnerabilityReport]:
        """
        Find advisories for `name` at `version`.

        Args:
            name: Detected display name
            version: Detected version; "unknown" skips the query

        Returns:
            Outcome with the match count and up to five reduced advisories
        """
        if not is_concrete(version):
            return Outcome.fail(FailureKind.SKIPPED, "version unknown")

        package = self.aliases.package_for(name, version)
        body = {
            "package": {"ecosystem": self.config.ecosystem, "name": package},
            "version": version,
        }

        try:
            response = await self.client.post(f"{self.config.vulnerability_api_url}/v1/query", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.debug("osv_request_failed", package=package, error=str(e) or type(e).__name__)
            return Outcome.fail(FailureKind.NETWORK, str(e))
        except ValueError as e:
            logger.debug("osv_response_malformed", package=package, error=str(e))
            return Outcome.fail(FailureKind.PARSE, str(e))

        if not isinstance(data, dict) or not isinstance(data.get("vulns", []), list):
            return Outcome.fail(FailureKind.PARSE, "unexpected OSV response shape")

        advisories = [a for a in data.get("vulns", []) if isinstance(a, dict)]
        reduced = [reduce_advisory(a) for a in advisories[:MAX_REPORTED_VULNERABILITIES]]
        logger.debug("osv_lookup_complete", package=package, version=version, matches=len(advisories))
        return Outcome.ok(VulnerabilityReport(count=len(advisories), vulnerabilities=reduced))

"""
Pydantic models for ScriptProbe.

Defines the library candidates produced by detectors, the signature
database entries, vulnerability records, enriched libraries, the final
report, and scan configuration.
"""

from __future__ import annotations

import os
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

UNKNOWN_VERSION = "unknown"

SECURITY_HEADERS = (
    "Strict-Transport-Security",
    "Content-Security-Policy",
    "X-Frame-Options",
)


class CandidateSource(StrEnum):
    """Detector that produced a library candidate."""

    STATIC_URL = "static-url"
    RUNTIME = "runtime"
    SIGNATURE_FILE = "signature-file"
    SIGNATURE_CONTENT = "signature-content"


class VersionDiff(StrEnum):
    """Most significant component by which a scanned version lags the latest."""

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    UNKNOWN = "unknown"


class ReportModel(BaseModel):
    """Base for models serialized into the camelCase JSON report."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LibraryCandidate(ReportModel):
    """A single piece of evidence that a library is loaded by the page."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str = Field(min_length=1, description="Display name")
    version: str = Field(default=UNKNOWN_VERSION, description="Dotted version or 'unknown'")
    source: CandidateSource = Field(description="Detector that produced this candidate")
    locator: str = Field(default="runtime", description="Originating URL, or 'runtime'")

    @property
    def key(self) -> str:
        """Grouping key for deduplication."""
        return self.name.lower()

    @property
    def has_version(self) -> bool:
        return bool(self.version) and self.version != UNKNOWN_VERSION


class SignatureVulnerability(ReportModel):
    """Known vulnerable version range of a library from the signature database."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    identifiers: list[str] = Field(default_factory=list, description="CVE/GHSA/bug identifiers")
    info_links: list[str] = Field(default_factory=list, description="Advisory links")
    version_below: str | None = Field(default=None, description="Exclusive upper bound")
    version_at_or_above: str | None = Field(default=None, description="Inclusive lower bound")
    severity: str | None = Field(default=None, description="Severity label")
    summary: str = Field(default="", description="Short description")


class SignatureSpec(BaseModel):
    """Per-library detection patterns and known vulnerable ranges."""

    model_config = ConfigDict(frozen=True)

    library_name: str
    filename_patterns: list[str] = Field(default_factory=list)
    content_patterns: list[str] = Field(default_factory=list)
    known_vulnerabilities: list[SignatureVulnerability] = Field(default_factory=list)


class Vulnerability(ReportModel):
    """Vulnerability database match reduced to what the report shows."""

    id: str
    cve_ids: list[str] = Field(default_factory=list)
    severity: str = "UNKNOWN"
    summary: str = ""


class VersionStatus(BaseModel):
    """Latest-version comparison for one library."""

    registry_name: str
    latest_version: str | None = None
    is_outdated: bool | None = None
    version_diff: VersionDiff = VersionDiff.UNKNOWN


class EnrichedLibrary(ReportModel):
    """Library candidate with version freshness and vulnerability data attached."""

    name: str
    version: str
    source: CandidateSource
    locator: str
    registry_name: str | None = None
    latest_version: str | None = None
    is_outdated: bool | None = None
    version_diff: VersionDiff = VersionDiff.UNKNOWN
    vulnerability_count: int | None = None
    vulnerabilities: list[Vulnerability] = Field(default_factory=list, max_length=5)
    signature_advisories: list[SignatureVulnerability] = Field(default_factory=list)

    @classmethod
    def from_candidate(cls, candidate: LibraryCandidate, **fields: Any) -> "EnrichedLibrary":
        """Build an enriched entry carrying every candidate field."""
        return cls(
            name=candidate.name,
            version=candidate.version,
            source=candidate.source,
            locator=candidate.locator,
            **fields,
        )


class TlsExpiry(ReportModel):
    """Peer certificate expiry of the target host."""

    valid_to: datetime
    days_left: int


class Report(ReportModel):
    """Complete scan report."""

    target_url: str
    security_headers: dict[str, str] = Field(default_factory=dict)
    libraries: list[EnrichedLibrary] = Field(default_factory=list)
    tls_expiry: TlsExpiry | None = None
    duration_ms: int = 0

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


ENV_PREFIX = "SCRIPTPROBE_"

# ScanConfig field -> environment variable suffix
_ENV_FIELDS: dict[str, str] = {
    "scan_timeout": "SCAN_TIMEOUT",
    "runtime_budget": "RUNTIME_BUDGET",
    "signature_budget": "SIGNATURE_BUDGET",
    "tls_budget": "TLS_BUDGET",
    "enrichment_budget": "ENRICHMENT_BUDGET",
    "page_timeout": "PAGE_TIMEOUT",
    "navigation_timeout": "NAVIGATION_TIMEOUT",
    "settle_delay": "SETTLE_DELAY",
    "fetch_timeout": "FETCH_TIMEOUT",
    "max_content_bytes": "MAX_CONTENT_BYTES",
    "max_signature_candidates": "MAX_SIGNATURE_CANDIDATES",
    "fetch_content": "FETCH_CONTENT",
    "runtime_detection": "RUNTIME_DETECTION",
    "user_agent": "USER_AGENT",
    "verify_ssl": "VERIFY_SSL",
    "registry_url": "REGISTRY_URL",
    "vulnerability_api_url": "VULNERABILITY_API_URL",
    "ecosystem": "ECOSYSTEM",
    "signature_db_path": "SIGNATURE_DB",
}


class ScanConfig(BaseModel):
    """Scan configuration with validation."""

    target_url: str = Field(min_length=1, description="Target URL to scan")
    scan_timeout: float = Field(default=45.0, gt=0.0, le=600.0, description="Overall scan deadline (s)")
    runtime_budget: float = Field(default=20.0, gt=0.0, description="Runtime detection budget (s)")
    signature_budget: float = Field(default=15.0, gt=0.0, description="Signature detection budget (s)")
    tls_budget: float = Field(default=5.0, gt=0.0, description="TLS check budget (s)")
    enrichment_budget: float = Field(default=4.0, gt=0.0, description="Per-library, per-resolver budget (s)")
    page_timeout: float = Field(default=30.0, gt=0.0, description="Initial page fetch timeout (s)")
    navigation_timeout: float = Field(default=15.0, gt=0.0, description="Browser navigation timeout (s)")
    settle_delay: float = Field(default=1.2, ge=0.0, le=10.0, description="Wait for deferred scripts (s)")
    fetch_timeout: float = Field(default=7.0, gt=0.0, description="Per-file signature fetch timeout (s)")
    max_content_bytes: int = Field(default=1_572_864, gt=0, description="Signature content cap (bytes)")
    max_signature_candidates: int = Field(default=6, ge=1, le=50, description="Files checked per page")
    fetch_content: bool = Field(default=True, description="Allow fetching script bodies")
    runtime_detection: bool = Field(default=True, description="Run the headless browser pass")
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/122 Safari/537.36"
        ),
        description="User agent string",
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    registry_url: str = Field(default="https://registry.npmjs.org", description="Package registry")
    vulnerability_api_url: str = Field(default="https://api.osv.dev", description="OSV API base URL")
    ecosystem: str = Field(default="npm", description="Vulnerability database ecosystem")
    signature_db_path: Path | None = Field(default=None, description="Signature database JSON")

    @field_validator("target_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure URL has valid scheme."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Target URL must start with http:// or https://")
        return v

    @field_validator("registry_url", "vulnerability_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def from_env(cls, target_url: str, **overrides: Any) -> "ScanConfig":
        """
        Build configuration from SCRIPTPROBE_* environment variables.

        Explicit overrides win over the environment; values left as None
        are ignored so CLI defaults do not mask the environment.

        Args:
            target_url: URL to scan
            **overrides: Field values taking precedence

        Returns:
            Validated configuration
        """
        values: dict[str, Any] = {}
        for field_name, suffix in _ENV_FIELDS.items():
            raw = os.getenv(ENV_PREFIX + suffix)
            if raw is not None and raw != "":
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(target_url=target_url, **values)

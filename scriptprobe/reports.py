"""
Report assembly and JSON output for ScriptProbe scans.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog

from scriptprobe.models import EnrichedLibrary, Report, TlsExpiry
from scriptprobe.page import security_headers

logger = structlog.get_logger(__name__)


class ReportAssembler:
    """Combines enriched libraries with header and TLS data into a Report."""

    def assemble(
        self,
        target_url: str,
        headers: Mapping[str, str],
        libraries: Sequence[EnrichedLibrary],
        tls_expiry: TlsExpiry | None,
        duration_ms: int,
    ) -> Report:
        """
        Build the final report.

        Args:
            target_url: URL the scan was started with
            headers: Response headers of the target page
            libraries: Enriched libraries in merged order
            tls_expiry: Certificate expiry, or None when unavailable
            duration_ms: Wall-clock scan duration

        Returns:
            Complete report
        """
        report = Report(
            target_url=target_url,
            security_headers=security_headers(headers),
            libraries=list(libraries),
            tls_expiry=tls_expiry,
            duration_ms=max(0, duration_ms),
        )
        logger.info(
            "report_assembled",
            libraries=len(report.libraries),
            outdated=sum(1 for lib in report.libraries if lib.is_outdated),
            vulnerable=sum(1 for lib in report.libraries if lib.vulnerability_count),
        )
        return report


def generate_json(report: Report, output_path: str | Path | None = None) -> str:
    """
    Serialize a report as camelCase JSON.

    Args:
        report: Report to serialize
        output_path: Optional path to save the report

    Returns:
        JSON string of the report
    """
    json_str = report.to_json()
    if output_path:
        Path(output_path).write_text(json_str, encoding="utf-8")
        logger.info("json_report_saved", path=str(output_path))
    return json_str

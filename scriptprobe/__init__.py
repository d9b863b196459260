"""
ScriptProbe - client-side JavaScript library scanner.

Detects the JavaScript libraries a web page loads from script URLs,
runtime introspection and a signature database, then reports their
versions, freshness and known vulnerabilities alongside baseline
security headers and certificate expiry.
"""

__version__ = "1.0.0"
__author__ = "Olib AI"

from scriptprobe.aliases import AliasTable
from scriptprobe.errors import PageFetchError, ScriptProbeError, SignatureDatabaseError
from scriptprobe.models import (
    CandidateSource,
    EnrichedLibrary,
    LibraryCandidate,
    Report,
    ScanConfig,
    VersionDiff,
)
from scriptprobe.orchestrator import ScanOrchestrator
from scriptprobe.signatures import SignatureDatabase

__all__ = [
    "__version__",
    "AliasTable",
    "CandidateSource",
    "EnrichedLibrary",
    "LibraryCandidate",
    "PageFetchError",
    "Report",
    "ScanConfig",
    "ScanOrchestrator",
    "ScriptProbeError",
    "SignatureDatabase",
    "SignatureDatabaseError",
    "VersionDiff",
]

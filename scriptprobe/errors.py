"""Exception hierarchy for ScriptProbe."""


class ScriptProbeError(Exception):
    """Base exception for ScriptProbe errors."""


class PageFetchError(ScriptProbeError):
    """Raised when the target page itself cannot be fetched; the scan cannot continue."""


class SignatureDatabaseError(ScriptProbeError):
    """Raised when the signature database file is missing or malformed."""

"""Resolvers attaching registry and vulnerability data to detected libraries."""

from scriptprobe.resolvers.version import VersionResolver
from scriptprobe.resolvers.vulnerability import VulnerabilityReport, VulnerabilityResolver

__all__ = [
    "VersionResolver",
    "VulnerabilityReport",
    "VulnerabilityResolver",
]

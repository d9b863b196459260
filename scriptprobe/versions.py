"""
Version normalization and comparison.

Versions are reduced to a (major, minor, patch) tuple taken from the first
dotted-numeric run found anywhere in the string, so "v3.5.1-rc.1" and
"3.5.1." both compare as (3, 5, 1). The "unknown" sentinel is never
compared as a real version.
"""

from __future__ import annotations

import re

from scriptprobe.models import UNKNOWN_VERSION, VersionDiff

_VERSION_RUN = re.compile(r"\d+(?:\.\d+){0,2}")

_DIFF_NAMES = (VersionDiff.MAJOR, VersionDiff.MINOR, VersionDiff.PATCH)


def is_concrete(version: str | None) -> bool:
    """True when `version` is an actual version rather than the sentinel."""
    return bool(version) and version != UNKNOWN_VERSION


def normalize_version(version: str | None) -> tuple[int, int, int]:
    """
    Normalize a version string to a zero-filled 3-tuple.

    Args:
        version: Raw version string

    Returns:
        (major, minor, patch); (0, 0, 0) when no digits are present
    """
    if not version:
        return (0, 0, 0)
    match = _VERSION_RUN.search(str(version))
    if not match:
        return (0, 0, 0)
    parts = [int(p) for p in match.group(0).split(".")]
    parts.extend([0] * (3 - len(parts)))
    return (parts[0], parts[1], parts[2])


def compare_versions(a: str | None, b: str | None) -> int:
    """Return -1, 0 or 1 as `a` is older than, equal to, or newer than `b`."""
    left, right = normalize_version(a), normalize_version(b)
    return (left > right) - (left < right)


def version_diff(scanned: str | None, latest: str | None) -> VersionDiff:
    """
    Classify how far `scanned` lags `latest`.

    Returns the most significant differing component, or NONE when the
    versions are equal or the scanned one is newer.
    """
    left, right = normalize_version(scanned), normalize_version(latest)
    if left >= right:
        return VersionDiff.NONE
    for index, name in enumerate(_DIFF_NAMES):
        if left[index] != right[index]:
            return name
    return VersionDiff.NONE


def version_in_range(
    version: str,
    below: str | None,
    at_or_above: str | None = None,
) -> bool:
    """True when `version` lies in [at_or_above, below)."""
    if not is_concrete(version):
        return False
    if below is not None and compare_versions(version, below) >= 0:
        return False
    if at_or_above is not None and compare_versions(version, at_or_above) < 0:
        return False
    return below is not None or at_or_above is not None

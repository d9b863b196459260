"""
Merging of detector outputs into one library list.

Candidates are grouped by lowercase name and the best candidate of each
group is kept, ranked by:

1. a concrete version beats the "unknown" sentinel;
2. a runtime observation beats every other source;
3. otherwise the first-seen candidate wins.

Rule 3 keeps the existing tie-break for two versioned non-runtime
candidates: an earlier static-url hit is not displaced by a later
signature hit. Feed candidates in detector order (static, runtime,
signature). Groups appear in the order their first candidate was seen.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from scriptprobe.models import CandidateSource, LibraryCandidate

logger = structlog.get_logger(__name__)


def candidate_rank(candidate: LibraryCandidate) -> tuple[bool, bool]:
    """Priority of a candidate within its name group; higher wins."""
    return (candidate.has_version, candidate.source is CandidateSource.RUNTIME)


class Deduplicator:
    """Selects one candidate per case-insensitive library name."""

    def merge(self, candidates: Iterable[LibraryCandidate]) -> list[LibraryCandidate]:
        """
        Merge candidates into at most one entry per lowercase name.

        Args:
            candidates: Static, runtime and signature candidates, in that order

        Returns:
            Winning candidate of each group, in first-seen group order
        """
        retained: dict[str, LibraryCandidate] = {}
        total = 0
        for candidate in candidates:
            total += 1
            current = retained.get(candidate.key)
            # strict ">" keeps the earlier candidate on equal rank
            if current is None or candidate_rank(candidate) > candidate_rank(current):
                retained[candidate.key] = candidate

        merged = list(retained.values())
        logger.debug("candidates_merged", candidates=total, libraries=len(merged))
        return merged

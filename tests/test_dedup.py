"""
Tests for candidate merging.
"""

from __future__ import annotations

from scriptprobe.dedup import Deduplicator, candidate_rank
from scriptprobe.detectors.static import StaticDetector
from scriptprobe.models import UNKNOWN_VERSION, CandidateSource, LibraryCandidate


def candidate(name: str, version: str = UNKNOWN_VERSION, source: CandidateSource = CandidateSource.STATIC_URL, locator: str = "/x.js") -> LibraryCandidate:
    return LibraryCandidate(name=name, version=version, source=source, locator=locator)


class TestDeduplicator:
    """Test Deduplicator.merge."""

    def test_concrete_version_replaces_unknown(self) -> None:
        """Test a versioned candidate wins over the unknown sentinel."""
        merged = Deduplicator().merge([candidate("X"), candidate("X", "1.2.3")])

        assert len(merged) == 1
        assert merged[0].version == "1.2.3"

    def test_unknown_never_replaces_concrete(self) -> None:
        """Test a later unknown candidate does not displace a versioned one."""
        merged = Deduplicator().merge(
            [candidate("X", "1.2.3"), candidate("X", source=CandidateSource.RUNTIME, locator="runtime")]
        )

        assert merged[0].version == "1.2.3"
        assert merged[0].source == CandidateSource.STATIC_URL

    def test_runtime_beats_static_for_same_version(self) -> None:
        """Test runtime evidence replaces static evidence of the same version."""
        merged = Deduplicator().merge(
            [
                candidate("X", "1.2.3"),
                candidate("X", "1.2.3", CandidateSource.RUNTIME, "runtime"),
            ]
        )

        assert merged[0].source == CandidateSource.RUNTIME

    def test_first_seen_wins_between_non_runtime(self) -> None:
        """Test a later signature hit does not displace an earlier static hit."""
        merged = Deduplicator().merge(
            [
                candidate("jquery", "3.5.1", CandidateSource.STATIC_URL, "/a.js"),
                candidate("jquery", "3.4.0", CandidateSource.SIGNATURE_CONTENT, "/b.js"),
            ]
        )

        assert (merged[0].version, merged[0].locator) == ("3.5.1", "/a.js")

    def test_grouping_is_case_insensitive(self) -> None:
        """Test names differing only in case form one group."""
        merged = Deduplicator().merge(
            [
                candidate("Jquery", "3.5.1"),
                candidate("jquery", "3.5.1", CandidateSource.RUNTIME, "runtime"),
                candidate("JQUERY", "3.5.1", CandidateSource.SIGNATURE_FILE),
            ]
        )

        assert len(merged) == 1
        assert merged[0].name == "jquery"
        assert merged[0].source == CandidateSource.RUNTIME

    def test_static_angularjs_file_joins_runtime_probe(self) -> None:
        """Test an AngularJS file and the angularjs runtime probe form one group."""
        static = StaticDetector().detect(["/lib/angular-1.7.5.min.js"])
        runtime = candidate("angularjs", "1.7.5", CandidateSource.RUNTIME, "runtime")

        merged = Deduplicator().merge([*static, runtime])

        assert [(c.name, c.version, c.source) for c in merged] == [("angularjs", "1.7.5", CandidateSource.RUNTIME)]

    def test_group_order_is_first_seen(self) -> None:
        """Test groups keep the order their first candidate appeared in."""
        merged = Deduplicator().merge(
            [
                candidate("Vue"),
                candidate("Jquery", "3.5.1"),
                candidate("vue", "2.7.14", CandidateSource.RUNTIME, "runtime"),
            ]
        )

        assert [c.key for c in merged] == ["vue", "jquery"]
        assert merged[0].version == "2.7.14"

    def test_idempotent(self) -> None:
        """Test merging a merged list changes nothing."""
        dedup = Deduplicator()
        candidates = [
            candidate("Vue"),
            candidate("Jquery", "3.5.1"),
            candidate("vue", "2.7.14", CandidateSource.RUNTIME, "runtime"),
            candidate("lodash", "4.17.21", CandidateSource.SIGNATURE_FILE),
            candidate("Lodash", source=CandidateSource.SIGNATURE_CONTENT),
        ]

        once = dedup.merge(candidates)

        assert dedup.merge(once) == once

    def test_empty(self) -> None:
        """Test an empty input merges to an empty list."""
        assert Deduplicator().merge([]) == []

    def test_rank_ordering(self) -> None:
        """Test version presence outranks the runtime source."""
        versioned_static = candidate("X", "1.0.0")
        unversioned_runtime = candidate("X", source=CandidateSource.RUNTIME, locator="runtime")

        assert candidate_rank(versioned_static) > candidate_rank(unversioned_runtime)

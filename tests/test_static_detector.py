"""
Tests for the static URL detector.
"""

from __future__ import annotations

import pytest

from scriptprobe.detectors.static import KNOWN_LIBRARIES, StaticDetector, display_name
from scriptprobe.models import UNKNOWN_VERSION, CandidateSource


@pytest.fixture
def detector() -> StaticDetector:
    return StaticDetector()


class TestStaticDetector:
    """Test StaticDetector.detect."""

    @pytest.mark.parametrize("name", ["jquery", "vue", "lodash", "moment", "axios"])
    def test_versioned_filename(self, detector: StaticDetector, name: str) -> None:
        """Test <name>-1.2.3.min.js yields version 1.2.3 for cataloged libraries."""
        url = f"https://cdn.example.com/js/{name}-1.2.3.min.js"
        candidates = detector.detect([url])

        assert len(candidates) == 1
        assert candidates[0].name == display_name(name)
        assert candidates[0].version == "1.2.3"
        assert candidates[0].source == CandidateSource.STATIC_URL
        assert candidates[0].locator == url

    def test_jquery_relative_path(self, detector: StaticDetector) -> None:
        """Test a relative script path is matched as given."""
        candidates = detector.detect(["/assets/jquery-3.5.1.min.js"])

        assert [(c.name, c.version, c.locator) for c in candidates] == [
            ("Jquery", "3.5.1", "/assets/jquery-3.5.1.min.js")
        ]

    def test_dot_separator(self, detector: StaticDetector) -> None:
        """Test a "." separator before the version."""
        candidates = detector.detect(["/js/bootstrap.4.6.2.js"])
        assert candidates[0].version == "4.6.2"

    def test_unversioned_name_is_unknown(self, detector: StaticDetector) -> None:
        """Test a bare library name yields the unknown sentinel."""
        candidates = detector.detect(["/static/vue.min.js"])

        assert len(candidates) == 1
        assert candidates[0].name == "Vue"
        assert candidates[0].version == UNKNOWN_VERSION

    def test_versioned_directory_preferred(self, detector: StaticDetector) -> None:
        """Test the versioned file name is matched inside a versioned CDN path."""
        candidates = detector.detect(["https://cdnjs.example.com/ajax/libs/d3/d3-5.16.0/d3.min.js"])
        assert candidates[0].version == "5.16.0"

    def test_longer_name_not_reported_as_prefix(self, detector: StaticDetector) -> None:
        """Test react is not reported for a react-dom file."""
        candidates = detector.detect(["/vendor/react-dom-16.1.0.js"])

        assert [(c.name, c.version) for c in candidates] == [("React-dom", "16.1.0")]

    @pytest.mark.parametrize(
        "url",
        [
            "/js/vue-router-3.5.1.min.js",
            "/js/d3-scale.min.js",
            "/js/jquery-ui.min.js",
            "/js/lodash.debounce.js",
        ],
    )
    def test_companion_packages_not_reported(self, detector: StaticDetector, url: str) -> None:
        """Test a catalog name followed by another word is not a match."""
        assert detector.detect([url]) == []

    def test_whole_file_name_with_query(self, detector: StaticDetector) -> None:
        """Test a bare name is matched when it is the whole file name."""
        candidates = detector.detect(["https://cdn.example.com/lib/d3.js?v=7", "moment-min.js"])

        assert [(c.name, c.version) for c in candidates] == [
            ("D3", UNKNOWN_VERSION),
            ("Moment", UNKNOWN_VERSION),
        ]

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("/lib/angular-1.7.5.min.js", ("AngularJS", "1.7.5")),
            ("/lib/angular.min.js", ("AngularJS", UNKNOWN_VERSION)),
            ("/lib/angular-17.0.0.js", ("Angular", "17.0.0")),
        ],
    )
    def test_angularjs_files(self, detector: StaticDetector, url: str, expected: tuple[str, str]) -> None:
        """Test 1.x and unversioned angular files are reported as AngularJS."""
        candidates = detector.detect([url])

        assert [(c.name, c.version) for c in candidates] == [expected]

    def test_multiple_libraries_in_one_url(self, detector: StaticDetector) -> None:
        """Test a combined bundle URL yields every named library."""
        candidates = detector.detect(["/combo?jquery-3.6.0.js&lodash-4.17.21.js"])

        assert {(c.name, c.version) for c in candidates} == {
            ("Jquery", "3.6.0"),
            ("Lodash", "4.17.21"),
        }

    def test_name_inside_word_ignored(self, detector: StaticDetector) -> None:
        """Test a catalog name embedded in another word does not match."""
        assert detector.detect(["/js/myvue-helpers.js", "/js/tabulator.js"]) == []

    def test_malformed_input_is_no_match(self, detector: StaticDetector) -> None:
        """Test non-string and empty entries are skipped."""
        assert detector.detect(["", None, 42]) == []  # type: ignore[list-item]

    def test_custom_catalog(self) -> None:
        """Test the catalog can be replaced."""
        detector = StaticDetector(catalog=["alpine"])
        candidates = detector.detect(["/js/alpine-3.13.3.min.js", "/js/jquery-3.6.0.js"])

        assert [(c.name, c.version) for c in candidates] == [("Alpine", "3.13.3")]

    def test_catalog_contents(self) -> None:
        """Test the default catalog carries the common libraries."""
        assert "jquery" in KNOWN_LIBRARIES
        assert "react-dom" in KNOWN_LIBRARIES
        assert display_name("chart.js") == "Chart.js"

"""
Static URL Detector.

Matches known library names followed by a dotted version in the page's
script-source URLs, or named as a whole file ("vue.min.js"). No network
access.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from scriptprobe.detectors.base import BaseDetector
from scriptprobe.models import CandidateSource, LibraryCandidate
from scriptprobe.versions import normalize_version

KNOWN_LIBRARIES: tuple[str, ...] = (
    "jquery",
    "react",
    "react-dom",
    "vue",
    "angular",
    "ember",
    "bootstrap",
    "foundation",
    "uikit",
    "bulma",
    "lodash",
    "underscore",
    "moment",
    "dayjs",
    "rxjs",
    "d3",
    "chart.js",
    "highcharts",
    "three.js",
    "leaflet",
    "axios",
)


# AngularJS 1.x shipped as angular.js and angular-1.x.js; Angular 2+ did not
LEGACY_DISPLAY_NAMES: dict[str, tuple[int, str]] = {
    "angular": (2, "AngularJS"),
}


def display_name(catalog_name: str) -> str:
    """Catalog name with its first letter capitalized ("chart.js" -> "Chart.js")."""
    return catalog_name[:1].upper() + catalog_name[1:]


def build_pattern(catalog_name: str) -> re.Pattern[str]:
    """
    Pattern for a catalog name in a script URL.

    The name either starts a token and is followed by an optional "-" or "."
    and a version of two or more numeric components, or it is the whole
    file name ("vue.js", "vue.min.js", "vue-min.js") with no version.
    """
    name = re.escape(catalog_name)
    return re.compile(
        rf"(?<![a-z0-9]){name}[-.]?(?P<version>\d+(?:\.\d+)+)"
        rf"|(?<![^/]){name}(?:[-.]min)?(?:\.js)?(?=[?#]|$)",
        re.IGNORECASE,
    )


class StaticDetector(BaseDetector):
    """
    Detector for libraries named in script URLs.

    Every (url, catalog name) pair is tested independently, so one URL can
    yield several libraries ("/combo?jquery-3.6.0.js&lodash-4.17.21.js").
    A name followed by anything other than a version, as "vue" in
    "vue-router-3.5.1.js" or "react" in "react-dom-16.1.0.js", is not a
    match.
    """

    detector_name = "static"

    def __init__(self, catalog: Iterable[str] = KNOWN_LIBRARIES) -> None:
        super().__init__()
        self.catalog = tuple(catalog)
        self._patterns = [(name, build_pattern(name)) for name in self.catalog]

    def detect(self, script_sources: Sequence[str]) -> list[LibraryCandidate]:
        """
        Detect libraries from script-source URLs.

        Args:
            script_sources: Ordered `src` values of the page's script elements

        Returns:
            Candidates in URL order, then catalog order
        """
        candidates: list[LibraryCandidate] = []
        for url in script_sources:
            if not isinstance(url, str) or not url:
                continue
            candidates.extend(self._detect_url(url))

        self.logger.debug("static_detection_complete", scripts=len(script_sources), libraries=len(candidates))
        return candidates

    def _detect_url(self, url: str) -> list[LibraryCandidate]:
        candidates: list[LibraryCandidate] = []
        for name, pattern in self._patterns:
            match = self._best_match(pattern, url)
            if not match:
                continue
            version = match.group("version")
            candidates.append(
                self._create_candidate(
                    name=self._display_name(name, version),
                    source=CandidateSource.STATIC_URL,
                    version=version,
                    locator=url,
                )
            )
        return candidates

    @staticmethod
    def _best_match(pattern: re.Pattern[str], url: str) -> re.Match[str] | None:
        """First versioned occurrence of the name, else its first occurrence."""
        first: re.Match[str] | None = None
        for match in pattern.finditer(url):
            if match.group("version"):
                return match
            if first is None:
                first = match
        return first

    @staticmethod
    def _display_name(catalog_name: str, version: str | None) -> str:
        legacy = LEGACY_DISPLAY_NAMES.get(catalog_name.lower())
        if legacy is not None:
            first_major, legacy_name = legacy
            if version is None or normalize_version(version)[0] < first_major:
                return legacy_name
        return display_name(catalog_name)

"""
Runtime Detector.

Loads the target page in a headless browser and reads library versions
from page globals and DOM attributes, plus the list of JavaScript
resources the page actually loaded.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from scriptprobe.browser import SessionFactory, browser_session
from scriptprobe.detectors.base import BaseDetector
from scriptprobe.models import CandidateSource, LibraryCandidate, ScanConfig
from scriptprobe.outcome import FailureKind, Outcome

# library name -> JavaScript expression yielding its version (or a falsy value)
RUNTIME_PROBES: dict[str, str] = {
    "jquery": "window.jQuery && window.jQuery.fn && window.jQuery.fn.jquery",
    "angularjs": "window.angular && window.angular.version && window.angular.version.full",
    "angular": "(document.querySelector('[ng-version]') || {getAttribute: () => null}).getAttribute('ng-version')",
    "react": "window.React && window.React.version",
    "preact": "window.preact && window.preact.version",
    "vue": "window.Vue && window.Vue.version",
    "ember": "window.Ember && window.Ember.VERSION",
    "handlebars": "window.Handlebars && window.Handlebars.VERSION",
    "moment": "window.moment && window.moment.version",
    "d3": "window.d3 && window.d3.version",
    "backbone": "window.Backbone && window.Backbone.VERSION",
    "knockout": "window.ko && window.ko.version",
    "dompurify": "window.DOMPurify && window.DOMPurify.version",
}

RESOURCE_URLS_SCRIPT = """
() => Array.from(new Set(
    performance.getEntriesByType('resource')
        .filter(e => e.initiatorType === 'script' || /\\.js(\\?|$)/i.test(e.name))
        .map(e => e.name)
))
"""


def build_probe_script(probes: dict[str, str]) -> str:
    """
    Single page function evaluating every probe.

    Each probe runs in its own try block so one throwing getter does not
    hide the others.
    """
    lines = ["() => {", "  const out = {};"]
    for name, expression in probes.items():
        lines.append(
            f"  try {{ const v = ({expression}); if (v) out[{json.dumps(name)}] = String(v); }} catch (e) {{}}"
        )
    lines.extend(["  return out;", "}"])
    return "\n".join(lines)


@dataclass
class RuntimeResult:
    """Libraries observed at runtime and JavaScript URLs the page loaded."""

    libraries: list[LibraryCandidate] = field(default_factory=list)
    script_urls: list[str] = field(default_factory=list)


class RuntimeDetector(BaseDetector):
    """
    Detector executing the page in a real browser engine.

    Heavy resources and ad hosts are blocked, navigation waits for DOM
    construction only, and a short settle window lets deferred scripts run
    before the probes are evaluated.
    """

    detector_name = "runtime"

    def __init__(
        self,
        config: ScanConfig,
        session_factory: SessionFactory = browser_session,
        probes: dict[str, str] | None = None,
    ) -> None:
        super().__init__(config)
        self.session_factory = session_factory
        self.probes = dict(RUNTIME_PROBES if probes is None else probes)
        self._probe_script = build_probe_script(self.probes)

    async def detect(self, url: str) -> Outcome[RuntimeResult]:
        """
        Collect runtime library evidence for `url`.

        Any navigation, evaluation or session failure yields a failed
        Outcome; the session is torn down on every path.

        Args:
            url: Target page URL

        Returns:
            Outcome with runtime libraries and loaded script URLs
        """
        self.logger.info("runtime_detection_started", url=url)
        try:
            async with self.session_factory(self.config) as session:
                await session.navigate(url, timeout=self.config.navigation_timeout)
                await session.settle(self.config.settle_delay)
                versions = await session.evaluate(self._probe_script)
                resource_urls = await session.evaluate(RESOURCE_URLS_SCRIPT)
        except Exception as e:
            self.logger.warning("runtime_detection_failed", url=url, error=str(e) or type(e).__name__)
            return Outcome.fail(FailureKind.NETWORK, str(e))

        result = RuntimeResult(
            libraries=self._to_candidates(versions),
            script_urls=self._to_urls(resource_urls),
        )
        self.logger.info(
            "runtime_detection_complete",
            url=url,
            libraries=len(result.libraries),
            script_urls=len(result.script_urls),
        )
        return Outcome.ok(result)

    def _to_candidates(self, versions: Any) -> list[LibraryCandidate]:
        if not isinstance(versions, dict):
            return []
        return [
            self._create_candidate(name=str(name), source=CandidateSource.RUNTIME, version=str(version))
            for name, version in versions.items()
            if version
        ]

    @staticmethod
    def _to_urls(resource_urls: Any) -> list[str]:
        if not isinstance(resource_urls, list):
            return []
        return list(dict.fromkeys(u for u in resource_urls if isinstance(u, str) and u))

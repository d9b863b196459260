"""
End-to-end tests of the scan pipeline with every external collaborator
substituted: pages, registry, OSV and script bodies through an httpx
MockTransport, the browser through an in-memory session.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from scriptprobe.errors import PageFetchError
from scriptprobe.models import CandidateSource, ScanConfig, VersionDiff
from scriptprobe.orchestrator import ScanOrchestrator
from scriptprobe.signatures import SignatureDatabase

JQUERY_PAGE = '<html><head><script src="/assets/jquery-3.5.1.min.js"></script></head><body></body></html>'


class FakeWeb:
    """Routes requests to canned pages, registry and OSV answers."""

    def __init__(self, pages: dict[str, str], latest: dict[str, str], vulns: dict[str, list] | None = None) -> None:
        self.pages = pages
        self.latest = latest
        self.vulns = vulns or {}
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        if request.url.host == "registry.npmjs.org":
            package = request.url.path.strip("/").removesuffix("/latest")
            if package in self.latest:
                return httpx.Response(200, json={"name": package, "version": self.latest[package]})
            return httpx.Response(404, json={"error": "Not found"})
        if request.url.host == "api.osv.dev":
            package = json.loads(request.content)["package"]["name"]
            return httpx.Response(200, json={"vulns": self.vulns.get(package, [])})
        body = self.pages.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, text=body, headers={"Strict-Transport-Security": "max-age=31536000"})


def run_scan(config: ScanConfig, web: FakeWeb, signatures: SignatureDatabase, session_factory=None):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(web)) as client:
            orchestrator = ScanOrchestrator(
                config,
                signatures=signatures,
                client=client,
                session_factory=session_factory,
            )
            return await orchestrator.scan()

    return asyncio.run(scenario())


class TestScanOrchestrator:
    """Test ScanOrchestrator.scan."""

    def test_single_jquery_script(self, scan_config: ScanConfig, empty_database: SignatureDatabase) -> None:
        """Test a page loading only jquery-3.5.1 yields one enriched library."""
        web = FakeWeb(
            pages={"http://example.test/": JQUERY_PAGE},
            latest={"jquery": "3.7.1"},
            vulns={"jquery": [{"id": "GHSA-gxr4-xjj5-5px2", "aliases": ["CVE-2020-11022"]}]},
        )

        report = run_scan(scan_config, web, empty_database)

        assert report.target_url == "http://example.test/"
        assert len(report.libraries) == 1
        library = report.libraries[0]
        assert (library.name, library.version) == ("Jquery", "3.5.1")
        assert library.source == CandidateSource.STATIC_URL
        assert library.locator == "/assets/jquery-3.5.1.min.js"
        assert library.latest_version == "3.7.1"
        assert library.is_outdated is True
        assert library.version_diff == VersionDiff.MINOR
        assert library.vulnerability_count == 1
        assert report.security_headers["Strict-Transport-Security"] == "max-age=31536000"
        assert report.security_headers["X-Frame-Options"] == "missing"
        assert report.tls_expiry is None
        assert report.duration_ms >= 0

    def test_latest_equal_to_scanned(self, scan_config: ScanConfig, empty_database: SignatureDatabase) -> None:
        """Test an up-to-date library reports no diff."""
        web = FakeWeb(pages={"http://example.test/": JQUERY_PAGE}, latest={"jquery": "3.5.1"})

        library = run_scan(scan_config, web, empty_database).libraries[0]

        assert library.is_outdated is False
        assert library.version_diff == VersionDiff.NONE
        assert library.vulnerability_count == 0

    def test_all_detectors_merged(self, signature_database: SignatureDatabase, make_session) -> None:
        """Test static, runtime and signature evidence merge into one list."""
        config = ScanConfig(target_url="http://example.test/")
        page = (
            '<script src="/static/vue.min.js"></script>'
            '<script src="/assets/jquery-3.5.1.min.js"></script>'
        )
        lodash_body = "/**\n * @license\n * Lodash <https://lodash.com/>\n */\nvar VERSION = '4.17.15';"
        web = FakeWeb(
            pages={
                "http://example.test/": page,
                "http://example.test/static/vue.min.js": "",
                "http://example.test/assets/jquery-3.5.1.min.js": "",
                "http://example.test/bundle.js": lodash_body,
            },
            latest={"jquery": "3.7.1", "vue": "3.4.21", "lodash": "4.17.21"},
        )
        session, factory = make_session(
            versions={"vue": "2.7.14", "jquery": "3.4.1"},
            resource_urls=["http://example.test/bundle.js"],
        )

        report = run_scan(config, web, signature_database, session_factory=factory)

        summary = [(lib.name, lib.version, lib.source) for lib in report.libraries]
        assert summary == [
            ("vue", "2.7.14", CandidateSource.RUNTIME),
            ("jquery", "3.4.1", CandidateSource.RUNTIME),
            ("lodash", "4.17.15", CandidateSource.SIGNATURE_CONTENT),
        ]
        assert session.closed is True
        jquery = report.libraries[1]
        assert [a.identifiers for a in jquery.signature_advisories] == [["CVE-2020-11022"]]

    def test_runtime_failure_degrades(self, empty_database: SignatureDatabase, make_session) -> None:
        """Test a broken browser session leaves static results intact."""
        config = ScanConfig(target_url="http://example.test/")
        web = FakeWeb(pages={"http://example.test/": JQUERY_PAGE}, latest={"jquery": "3.7.1"})
        session, factory = make_session(fail_on="navigate")

        report = run_scan(config, web, empty_database, session_factory=factory)

        assert [lib.name for lib in report.libraries] == ["Jquery"]
        assert session.closed is True

    def test_page_fetch_failure_is_fatal(self, scan_config: ScanConfig, empty_database: SignatureDatabase) -> None:
        """Test the scan aborts when the target page cannot be fetched."""
        web = FakeWeb(pages={}, latest={})

        with pytest.raises(PageFetchError):
            run_scan(scan_config, web, empty_database)

    def test_no_scripts(self, scan_config: ScanConfig, empty_database: SignatureDatabase) -> None:
        """Test a page without scripts produces an empty library list."""
        web = FakeWeb(pages={"http://example.test/": "<html><body>hello</body></html>"}, latest={})

        report = run_scan(scan_config, web, empty_database)

        assert report.libraries == []
        assert web.requests == ["http://example.test/"]

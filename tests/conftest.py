"""Pytest fixtures for ScriptProbe tests."""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
from structlog.testing import capture_logs

from scriptprobe.aliases import AliasTable
from scriptprobe.models import ScanConfig
from scriptprobe.signatures import SignatureDatabase

TARGET_URL = "http://example.test/"


@pytest.fixture
def scan_config() -> ScanConfig:
    """Configuration for an http target with the browser pass disabled."""
    return ScanConfig(target_url=TARGET_URL, runtime_detection=False)


@pytest.fixture
def aliases() -> AliasTable:
    """Default alias table."""
    return AliasTable()


@pytest.fixture
def repository_data() -> dict[str, Any]:
    """Small jsrepository.json-style mapping."""
    return {
        "jquery": {
            "vulnerabilities": [
                {
                    "below": "3.5.0",
                    "atOrAbove": "1.2.0",
                    "severity": "medium",
                    "identifiers": {
                        "CVE": ["CVE-2020-11022"],
                        "summary": "Regex in jQuery.htmlPrefilter may execute untrusted code",
                    },
                    "info": ["https://blog.jquery.com/2020/04/10/jquery-3-5-0-released/"],
                },
                {
                    "below": "1.6.3",
                    "severity": "medium",
                    "identifiers": {"CVE": ["CVE-2011-4969"], "summary": "XSS with location.hash"},
                    "info": ["https://nvd.nist.gov/vuln/detail/CVE-2011-4969"],
                },
            ],
            "extractors": {
                "filename": ["jquery-(§§version§§)(\\.min)?\\.js"],
                "uri": ["/(§§version§§)/jquery(\\.min)?\\.js"],
                "filecontent": ["/\\*!? jQuery v(§§version§§)"],
            },
        },
        "lodash": {
            "vulnerabilities": [
                {
                    "below": "4.17.21",
                    "severity": "high",
                    "identifiers": {"CVE": ["CVE-2021-23337"], "summary": "Command injection via template"},
                    "info": ["https://github.com/lodash/lodash/issues/5085"],
                },
            ],
            "extractors": {
                "filecontent": ["Lodash <https://lodash\\.com/>[\\s\\S]{0,400}?var VERSION = '(§§version§§)'"],
            },
        },
    }


@pytest.fixture
def signature_database(repository_data: dict[str, Any]) -> SignatureDatabase:
    """Signature database built from the small repository mapping."""
    return SignatureDatabase.from_mapping(repository_data)


@pytest.fixture
def empty_database() -> SignatureDatabase:
    """Signature database without entries."""
    return SignatureDatabase([])


@pytest.fixture
def repository_file(tmp_path, repository_data: dict[str, Any]):
    """The small repository mapping written to disk."""
    path = tmp_path / "jsrepository.json"
    path.write_text(json.dumps(repository_data), encoding="utf-8")
    return path


def mock_client(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    """AsyncClient answering every request through `handler`."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeSession:
    """In-memory browser session returning canned probe results."""

    def __init__(
        self,
        versions: Any = None,
        resource_urls: Any = None,
        fail_on: str | None = None,
    ) -> None:
        self.versions = versions if versions is not None else {}
        self.resource_urls = resource_urls if resource_urls is not None else []
        self.fail_on = fail_on
        self.navigated: list[str] = []
        self.closed = False

    async def navigate(self, url: str, timeout: float) -> None:
        if self.fail_on == "navigate":
            raise RuntimeError("net::ERR_NAME_NOT_RESOLVED")
        self.navigated.append(url)

    async def evaluate(self, script: str) -> Any:
        if self.fail_on == "evaluate":
            raise RuntimeError("Execution context was destroyed")
        if "performance.getEntriesByType" in script:
            return self.resource_urls
        return self.versions

    async def settle(self, seconds: float) -> None:
        return None


def session_factory_for(session: FakeSession):
    """Session factory yielding `session` and recording teardown."""

    @contextlib.asynccontextmanager
    async def factory(config: ScanConfig) -> AsyncIterator[FakeSession]:
        try:
            yield session
        finally:
            session.closed = True

    return factory


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], Any]], httpx.AsyncClient]:
    """Factory for mock-transport HTTP clients."""
    return mock_client


@pytest.fixture
def make_session() -> Callable[..., tuple[FakeSession, Any]]:
    """Factory for a fake browser session and its session factory."""

    def build(**kwargs: Any) -> tuple[FakeSession, Any]:
        session = FakeSession(**kwargs)
        return session, session_factory_for(session)

    return build


@pytest.fixture(autouse=True)
def captured_logs():
    """Capture structlog events instead of printing them."""
    with capture_logs() as logs:
        yield logs

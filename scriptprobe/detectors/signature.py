"""
Signature Database Detector.

Matches candidate script URLs, and optionally their downloaded bodies,
against the signature database's filename and content patterns. Candidate
files are checked one after another; a failed or slow download only
affects its own candidate. Once the phase budget is spent no more bodies
are downloaded, but filename matching continues and every hit found so
far is returned.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable, Sequence

import httpx

from scriptprobe.deadline import Deadline
from scriptprobe.detectors.base import BaseDetector
from scriptprobe.models import CandidateSource, LibraryCandidate, ScanConfig
from scriptprobe.outcome import Outcome
from scriptprobe.signatures import CompiledSignature, SignatureDatabase

VERSION_TOKEN = re.compile(r"\d+(?:\.\d+){1,3}")


def extract_version(match: re.Match[str]) -> str | None:
    """
    Version from a pattern match's capture groups.

    Groups are scanned last to first (the whole match last) for the first
    one holding a dotted-numeric token; the token itself is returned.
    """
    if match.re.groups < 1:
        return None
    groups = [match.group(0), *match.groups()]
    for group in reversed(groups):
        if not group:
            continue
        token = VERSION_TOKEN.search(group)
        if token:
            return token.group(0)
    return None


def scan_patterns(text: str, patterns: Iterable[re.Pattern[str]]) -> tuple[bool, str | None]:
    """
    Test patterns against text in order.

    Returns:
        (any pattern matched, first version extracted); stops at the first
        match that yields a version
    """
    hit = False
    for pattern in patterns:
        match = pattern.search(text)
        if match is None:
            continue
        hit = True
        version = extract_version(match)
        if version:
            return True, version
    return hit, None


class SignatureDetector(BaseDetector):
    """
    Detector backed by the signature database.

    Only a bounded prefix of candidate URLs is examined: JavaScript files
    whose URL names a typical bundle, or that are short enough to be a
    direct library reference.
    """

    detector_name = "signature"

    BUNDLE_HINT = re.compile(r"(main|vendor|bundle|app|runtime|polyfills|chunk|client)", re.IGNORECASE)
    JS_URL = re.compile(r"\.js(\?|$)", re.IGNORECASE)
    SHORT_URL_LENGTH = 200

    def __init__(
        self,
        config: ScanConfig,
        database: SignatureDatabase,
        client: httpx.AsyncClient,
    ) -> None:
        super().__init__(config)
        self.database = database
        self.client = client
        self._deadline: Deadline | None = None
        self._budget_exhausted = False

    def select_candidates(self, urls: Iterable[str]) -> list[str]:
        """Deduplicated, filtered prefix of `urls` to examine."""
        selected: list[str] = []
        for url in dict.fromkeys(u for u in urls if isinstance(u, str) and u):
            if not self.JS_URL.search(url):
                continue
            if not (self.BUNDLE_HINT.search(url) or len(url) < self.SHORT_URL_LENGTH):
                continue
            selected.append(url)
            if len(selected) >= self.config.max_signature_candidates:
                break
        return selected

    async def detect(
        self,
        urls: Sequence[str],
        fetch_content: bool | None = None,
        deadline: Deadline | None = None,
    ) -> Outcome[list[LibraryCandidate]]:
        """
        Run filename and content detection over candidate URLs.

        Args:
            urls: Script-src URLs and runtime-discovered resource URLs
            fetch_content: Allow downloading bodies (defaults to config)
            deadline: Phase deadline bounding the downloads

        Returns:
            Outcome with hits deduplicated by (name, version)
        """
        if fetch_content is None:
            fetch_content = self.config.fetch_content

        candidates = self.select_candidates(urls)
        self.logger.info("signature_detection_started", candidates=len(candidates), fetch_content=fetch_content)

        bodies: dict[str, str | None] = {}
        hits: list[LibraryCandidate] = []
        self._deadline = deadline
        self._budget_exhausted = False

        for url in candidates:
            for signature in self.database:
                hit = await self._match(url, signature, fetch_content, bodies)
                if hit is not None:
                    hits.append(hit)

        unique = self._dedupe(hits)
        self.logger.info("signature_detection_complete", raw_hits=len(hits), libraries=len(unique))
        return Outcome.ok(unique)

    async def _match(
        self,
        url: str,
        signature: CompiledSignature,
        fetch_content: bool,
        bodies: dict[str, str | None],
    ) -> LibraryCandidate | None:
        file_hit, version = scan_patterns(url, signature.filename)

        content_hit = False
        if version is None and fetch_content and signature.content:
            body = await self._body(url, bodies)
            if body is not None:
                content_hit, version = scan_patterns(body, signature.content)

        if not (file_hit or content_hit):
            return None

        self.logger.debug(
            "signature_hit",
            library=signature.name,
            version=version,
            url=url,
            via="filename" if file_hit else "content",
        )
        return self._create_candidate(
            name=signature.name,
            source=CandidateSource.SIGNATURE_FILE if file_hit else CandidateSource.SIGNATURE_CONTENT,
            version=version,
            locator=url,
        )

    async def _body(self, url: str, bodies: dict[str, str | None]) -> str | None:
        """Body of `url`, downloaded at most once per detection pass."""
        if url in bodies:
            return bodies[url]
        if self._deadline is not None and self._deadline.expired:
            if not self._budget_exhausted:
                self.logger.warning("signature_budget_exhausted", skipped_from=url)
                self._budget_exhausted = True
            bodies[url] = None
            return None
        try:
            bodies[url] = await self._fetch_text(url)
        except (httpx.HTTPError, TimeoutError, OSError) as e:
            self.logger.debug("signature_fetch_failed", url=url, error=str(e) or type(e).__name__)
            bodies[url] = None
        return bodies[url]

    async def _fetch_text(self, url: str) -> str:
        """Download up to the configured byte cap within the per-file timeout."""
        cap = self.config.max_content_bytes
        chunks: list[bytes] = []
        size = 0
        timeout = self.config.fetch_timeout
        if self._deadline is not None:
            timeout = self._deadline.budget(timeout)
        async with asyncio.timeout(timeout):
            async with self.client.stream("GET", url, follow_redirects=True) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    chunk = chunk[: cap - size]
                    chunks.append(chunk)
                    size += len(chunk)
                    if size >= cap:
                        break
        return b"".join(chunks).decode("utf-8", errors="replace")

    @staticmethod
    def _dedupe(hits: Sequence[LibraryCandidate]) -> list[LibraryCandidate]:
        """Keep one hit per (name, version), preferring a concrete version."""
        unique: dict[tuple[str, str], LibraryCandidate] = {}
        for hit in hits:
            key = (hit.name, hit.version)
            existing = unique.get(key)
            if existing is None or (not existing.has_version and hit.has_version):
                unique[key] = hit
        return list(unique.values())

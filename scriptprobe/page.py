"""
Target page collaborators.

Fetching the target page, extracting its script sources, reading the
baseline security headers and retrieving the peer certificate expiry.
"""

from __future__ import annotations

import asyncio
import socket
import ssl
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urljoin, urlparse

import httpx
import structlog
from bs4 import BeautifulSoup
from cryptography import x509

from scriptprobe.errors import PageFetchError
from scriptprobe.models import SECURITY_HEADERS, ScanConfig, TlsExpiry
from scriptprobe.outcome import FailureKind, Outcome

logger = structlog.get_logger(__name__)

MISSING_HEADER = "missing"


@dataclass
class PageSnapshot:
    """Final URL, headers and body of the fetched target page."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    html: str = ""
    script_sources: list[str] = field(default_factory=list)

    def absolute_script_urls(self) -> list[str]:
        """Script sources resolved against the final page URL."""
        return [normalize_url(self.url, src) for src in self.script_sources]


def normalize_url(base_url: str, path: str) -> str:
    """
    Resolve a URL path against a base URL.

    Args:
        base_url: Base URL for resolution
        path: Path or URL to normalize

    Returns:
        Absolute URL
    """
    if path.startswith(("http://", "https://")):
        return path
    return urljoin(base_url, path)


def extract_script_sources(html: str) -> list[str]:
    """`src` values of every script element, in document order."""
    soup = BeautifulSoup(html, "html.parser")
    sources: list[str] = []
    for tag in soup.find_all("script", src=True):
        src = str(tag.get("src") or "").strip()
        if src:
            sources.append(src)
    return sources


def security_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Value of each baseline security header; absent or empty ones are "missing"."""
    lowered = {k.lower(): v for k, v in headers.items()}
    return {name: lowered.get(name.lower()) or MISSING_HEADER for name in SECURITY_HEADERS}


async def fetch_page(client: httpx.AsyncClient, config: ScanConfig) -> PageSnapshot:
    """
    Fetch the target page.

    Args:
        client: Shared HTTP client
        config: Scan configuration

    Returns:
        Snapshot of the page with its script sources extracted

    Raises:
        PageFetchError: The page could not be fetched
    """
    try:
        response = await client.get(
            config.target_url,
            headers={"User-Agent": config.user_agent},
            timeout=config.page_timeout,
            follow_redirects=True,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("page_fetch_failed", url=config.target_url, error=str(e) or type(e).__name__)
        raise PageFetchError(f"Could not fetch {config.target_url}: {e}") from e

    html = response.text
    snapshot = PageSnapshot(
        url=str(response.url),
        headers={k.lower(): v for k, v in response.headers.items()},
        html=html,
        script_sources=extract_script_sources(html),
    )
    logger.info(
        "page_fetched",
        url=snapshot.url,
        status=response.status_code,
        scripts=len(snapshot.script_sources),
    )
    return snapshot


def parse_certificate_expiry(cert: Mapping[str, Any], now: datetime | None = None) -> TlsExpiry | None:
    """Expiry of a peer certificate as returned by `getpeercert()`."""
    not_after = cert.get("notAfter")
    if not not_after:
        return None
    try:
        expiry = datetime.strptime(not_after, "%b %d %H:%M:%S %Y %Z")
    except ValueError:
        logger.debug("certificate_date_unparsed", not_after=not_after)
        return None
    expiry = expiry.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return TlsExpiry(valid_to=expiry, days_left=(expiry - now).days)


def der_certificate_expiry(der: bytes, now: datetime | None = None) -> TlsExpiry | None:
    """Expiry of a DER-encoded certificate, used when the handshake was not verified."""
    try:
        certificate = x509.load_der_x509_certificate(der)
    except ValueError as e:
        logger.debug("certificate_unparsed", error=str(e))
        return None
    expiry = certificate.not_valid_after_utc
    now = now or datetime.now(timezone.utc)
    return TlsExpiry(valid_to=expiry, days_left=(expiry - now).days)


def get_tls_expiry(url: str, timeout: float, verify: bool = True) -> TlsExpiry | None:
    """
    Retrieve the peer certificate expiry of an https URL.

    Blocking; run it in a worker thread. With `verify` off the certificate
    is read even when it is expired or self-signed.

    Args:
        url: Page URL
        timeout: Socket timeout in seconds
        verify: Validate the certificate chain and hostname

    Returns:
        Certificate expiry, or None for non-https URLs and failed handshakes
    """
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.hostname:
        return None

    hostname = parsed.hostname
    port = parsed.port or 443

    try:
        context = ssl.create_default_context()
        if verify:
            context.check_hostname = True
            context.verify_mode = ssl.CERT_REQUIRED
        else:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        with socket.create_connection((hostname, port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=hostname) as ssock:
                cert = ssock.getpeercert()
                der = ssock.getpeercert(binary_form=True)
    except ssl.SSLError as e:
        logger.warning("tls_handshake_failed", hostname=hostname, error=str(e))
        return None
    except OSError as e:
        logger.warning("socket_error", hostname=hostname, error=str(e))
        return None

    # getpeercert() is empty when verification is off
    if cert:
        return parse_certificate_expiry(cert)
    if der:
        return der_certificate_expiry(der)
    return None


async def check_tls(url: str, timeout: float, verify: bool = True) -> Outcome[TlsExpiry]:
    """Certificate expiry lookup in a worker thread."""
    expiry = await asyncio.to_thread(get_tls_expiry, url, timeout, verify)
    if expiry is None:
        return Outcome.fail(FailureKind.NETWORK, "certificate unavailable")
    return Outcome.ok(expiry)

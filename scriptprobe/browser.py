"""
Headless browser sessions for runtime detection.

Wraps Playwright behind a small session interface (navigate, evaluate,
settle, close) so the runtime detector can be driven by a substitute
session in tests.
"""

from __future__ import annotations

import contextlib
import re
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from scriptprobe.models import ScanConfig

if TYPE_CHECKING:
    from playwright.async_api import Page, Route

logger = structlog.get_logger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font", "stylesheet"})
AD_DOMAINS = re.compile(r"doubleclick|googletag|adservice|adnxs|criteo", re.IGNORECASE)

CHROMIUM_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class BrowserSession(Protocol):
    """Operations the runtime detector needs from a browser page."""

    async def navigate(self, url: str, timeout: float) -> None: ...

    async def evaluate(self, script: str) -> Any: ...

    async def settle(self, seconds: float) -> None: ...


SessionFactory = Callable[[ScanConfig], contextlib.AbstractAsyncContextManager[BrowserSession]]


def should_block(resource_type: str, url: str) -> bool:
    """True for heavy resource types and known advertising hosts."""
    return resource_type in BLOCKED_RESOURCE_TYPES or bool(AD_DOMAINS.search(url))


class PlaywrightSession:
    """BrowserSession backed by a Playwright page."""

    def __init__(self, page: "Page") -> None:
        self.page = page

    async def navigate(self, url: str, timeout: float) -> None:
        # DOM construction only; network idle is never awaited
        await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)

    async def evaluate(self, script: str) -> Any:
        return await self.page.evaluate(script)

    async def settle(self, seconds: float) -> None:
        await self.page.wait_for_timeout(seconds * 1000)


async def _filter_route(route: "Route") -> None:
    request = route.request
    if should_block(request.resource_type, request.url):
        await route.abort()
    else:
        await route.continue_()


@contextlib.asynccontextmanager
async def browser_session(config: ScanConfig) -> AsyncIterator[BrowserSession]:
    """
    Open an isolated headless Chromium page.

    The browser is closed on every exit path, including cancellation of
    the enclosing phase.

    Args:
        config: Scan configuration (user agent, TLS verification)

    Yields:
        Session for a single page
    """
    from playwright.async_api import async_playwright

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True, args=CHROMIUM_ARGS)
        logger.debug("browser_launched")
        try:
            context = await browser.new_context(
                user_agent=config.user_agent,
                ignore_https_errors=not config.verify_ssl,
            )
            page = await context.new_page()
            await page.route("**/*", _filter_route)
            yield PlaywrightSession(page)
        finally:
            await browser.close()
            logger.debug("browser_closed")

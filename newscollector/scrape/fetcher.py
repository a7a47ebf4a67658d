"""Page fetchers: headless Chromium via Playwright, or plain HTTP via requests.

A scraper never creates a browser directly; it asks a session factory for an
async context manager yielding a :class:`PageFetcher`, which guarantees the
browser (or HTTP session) is released on every exit path.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Protocol

import requests

from newscollector.core.errors import BrowserError, FetchError
from newscollector.infra.logging import TRACE_LEVEL, get_unified_logger

LISTING_TIMEOUT_MS = 30000
ARTICLE_TIMEOUT_MS = 15000
ARTICLE_SETTLE_MS = 500

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]

_HTTP_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

logger = get_unified_logger("scrape", "fetch")


class PageFetcher(Protocol):
    async def load(
        self,
        url: str,
        *,
        wait_until: str = "networkidle",
        timeout_ms: int = LISTING_TIMEOUT_MS,
        settle_ms: int = 0,
    ) -> str: ...


SessionFactory = Callable[[], AsyncContextManager[PageFetcher]]


class PlaywrightFetcher:
    """Drives a single Playwright page; navigation errors become FetchError."""

    def __init__(self, page: Any, error_type: type[BaseException]) -> None:
        self.page = page
        self._error_type = error_type

    async def load(
        self,
        url: str,
        *,
        wait_until: str = "networkidle",
        timeout_ms: int = LISTING_TIMEOUT_MS,
        settle_ms: int = 0,
    ) -> str:
        logger.log(TRACE_LEVEL, "goto %s (wait_until=%s)", url, wait_until)
        try:
            await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)
            if settle_ms > 0:
                await self.page.wait_for_timeout(settle_ms)
            return await self.page.content()
        except self._error_type as exc:
            raise FetchError(f"Navigation to {url} failed: {exc}", url) from exc


@asynccontextmanager
async def playwright_session(
    *, user_agent: str = DEFAULT_USER_AGENT, headless: bool = True
) -> AsyncIterator[PlaywrightFetcher]:
    try:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import async_playwright
    except ImportError as exc:
        raise BrowserError(f"Playwright is not available: {exc}") from exc

    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(headless=headless, args=BROWSER_ARGS)
        except PlaywrightError as exc:
            raise BrowserError(f"Browser launch failed: {exc}") from exc
        logger.debug("browser launched")
        try:
            context = await browser.new_context(user_agent=user_agent)
            page = await context.new_page()
            yield PlaywrightFetcher(page, PlaywrightError)
        finally:
            await browser.close()
            logger.debug("browser closed")


class RequestsFetcher:
    """Static HTML over HTTP; no JavaScript, so ``wait_until``/``settle_ms`` are ignored."""

    def __init__(self, session: requests.Session) -> None:
        self.session = session

    def _get(self, url: str, timeout_ms: int) -> str:
        logger.log(TRACE_LEVEL, "GET %s", url)
        try:
            r = self.session.get(url, timeout=max(1.0, timeout_ms / 1000))
            r.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(f"Request to {url} failed: {exc}", url) from exc
        r.encoding = r.apparent_encoding or r.encoding or "utf-8"
        return r.text

    async def load(
        self,
        url: str,
        *,
        wait_until: str = "networkidle",
        timeout_ms: int = LISTING_TIMEOUT_MS,
        settle_ms: int = 0,
    ) -> str:
        return await asyncio.to_thread(self._get, url, timeout_ms)


@asynccontextmanager
async def requests_session(
    *, user_agent: str = DEFAULT_USER_AGENT
) -> AsyncIterator[RequestsFetcher]:
    session = requests.Session()
    session.headers.update({**_HTTP_HEADERS, "User-Agent": user_agent})
    try:
        yield RequestsFetcher(session)
    finally:
        session.close()


def use_playwright_default() -> bool:
    """Playwright unless ``NC_USE_PLAYWRIGHT`` is set to a false value."""
    v = os.getenv("NC_USE_PLAYWRIGHT")
    if v is None or not v.strip():
        return True
    return v.strip().lower() in ("1", "true", "yes", "on")


def session_factory(use_playwright: bool = True, **kwargs: Any) -> SessionFactory:
    if use_playwright:
        return lambda: playwright_session(**kwargs)
    return lambda: requests_session(**kwargs)

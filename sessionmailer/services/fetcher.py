"""Fetch strategies: static HTTP, headless browser, and static-then-browser.

Every strategy exposes ``async fetch(url) -> RenderedDocument`` and raises
``FetchError`` (never a transport-specific exception) on failure.
"""

import logging
import time
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sessionmailer.config import settings
from sessionmailer.core.exceptions import FetchError, FetchErrorKind
from sessionmailer.core.metrics import fetch_duration_seconds
from sessionmailer.services.browser import DESKTOP_HEADERS, DESKTOP_USER_AGENT, BrowserPool

logger = logging.getLogger(__name__)

FETCH_MODES = ("static", "dynamic", "auto")
STATIC_HEADERS = {"User-Agent": DESKTOP_USER_AGENT, **DESKTOP_HEADERS}
_NON_VISIBLE_TAGS = {"script", "style", "noscript", "template", "head", "title", "meta"}
# Second networkidle after the settle delay; pages with polling widgets never reach it
_SECOND_IDLE_TIMEOUT_MS = 5000


@dataclass
class RenderedDocument:
    url: str
    html: str
    status_code: int
    final_url: str
    mode: str
    _soup: BeautifulSoup | None = field(default=None, repr=False, compare=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, "lxml")
        return self._soup

    def visible_text_length(self) -> int:
        root = self.soup.body or self.soup
        text = " ".join(
            s.strip() for s in root.find_all(string=True) if s.parent.name not in _NON_VISIBLE_TAGS
        )
        return len(" ".join(text.split()))


class Fetcher:
    mode = ""

    async def fetch(self, url: str) -> RenderedDocument:
        raise NotImplementedError


class StaticFetcher(Fetcher):
    """Plain HTTP GET. Fast, but sees only server-rendered markup."""

    mode = "static"

    def __init__(self, client: httpx.AsyncClient, timeout: float | None = None):
        self.client = client
        self.timeout = timeout or settings.STATIC_TIMEOUT_SECONDS

    async def fetch(self, url: str) -> RenderedDocument:
        start = time.monotonic()
        try:
            response = await self.client.get(
                url, headers=STATIC_HEADERS, timeout=self.timeout, follow_redirects=True
            )
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timed out after {self.timeout:.0f}s fetching {url}",
                kind=FetchErrorKind.TIMEOUT,
                url=url,
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                f"Request to {url} failed: {e}", kind=FetchErrorKind.HTTP_ERROR, url=url
            ) from e
        finally:
            fetch_duration_seconds.labels(mode=self.mode).observe(time.monotonic() - start)

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code} from {url}",
                kind=FetchErrorKind.HTTP_ERROR,
                url=url,
                status_code=response.status_code,
            )
        return RenderedDocument(
            url=url,
            html=response.text,
            status_code=response.status_code,
            final_url=str(response.url),
            mode=self.mode,
        )


class BrowserFetcher(Fetcher):
    """Headless Chromium: runs the page's JavaScript before reading the DOM."""

    mode = "dynamic"

    def __init__(
        self,
        pool: BrowserPool,
        navigation_timeout_ms: int | None = None,
        settle_delay_ms: int | None = None,
    ):
        self.pool = pool
        self.navigation_timeout_ms = navigation_timeout_ms or settings.NAVIGATION_TIMEOUT_MS
        self.settle_delay_ms = (
            settings.SETTLE_DELAY_MS if settle_delay_ms is None else settle_delay_ms
        )

    async def fetch(self, url: str) -> RenderedDocument:
        start = time.monotonic()
        try:
            async with self.pool.get_page(url) as page:
                response = await page.goto(
                    url, wait_until="networkidle", timeout=self.navigation_timeout_ms
                )
                status_code = response.status if response else 200
                if status_code >= 400:
                    raise FetchError(
                        f"HTTP {status_code} from {url}",
                        kind=FetchErrorKind.HTTP_ERROR,
                        url=url,
                        status_code=status_code,
                    )

                # Booking widgets hydrate after the first idle
                await page.wait_for_timeout(self.settle_delay_ms)
                try:
                    await page.wait_for_load_state("networkidle", timeout=_SECOND_IDLE_TIMEOUT_MS)
                except PlaywrightTimeoutError:
                    logger.debug(f"Second networkidle not reached for {url}")

                html = await page.content()
                final_url = page.url
        except PlaywrightTimeoutError as e:
            raise FetchError(
                f"Timed out after {self.navigation_timeout_ms / 1000:.0f}s rendering {url}",
                kind=FetchErrorKind.TIMEOUT,
                url=url,
            ) from e
        except PlaywrightError as e:
            raise FetchError(
                f"Navigation to {url} failed: {e.message}",
                kind=FetchErrorKind.NAVIGATION_ERROR,
                url=url,
            ) from e
        finally:
            fetch_duration_seconds.labels(mode=self.mode).observe(time.monotonic() - start)

        return RenderedDocument(
            url=url, html=html, status_code=status_code, final_url=final_url, mode=self.mode
        )


class AutoFetcher(Fetcher):
    """Static first; re-render in the browser when that fails or looks JS-rendered."""

    mode = "auto"

    def __init__(
        self,
        static: StaticFetcher,
        dynamic: BrowserFetcher,
        min_text_chars: int | None = None,
    ):
        self.static = static
        self.dynamic = dynamic
        self.min_text_chars = (
            settings.MIN_STATIC_TEXT_CHARS if min_text_chars is None else min_text_chars
        )

    async def fetch(self, url: str) -> RenderedDocument:
        try:
            document = await self.static.fetch(url)
        except FetchError as e:
            logger.info(f"Static fetch failed for {url} ({e.kind.value}), rendering in browser")
            return await self.dynamic.fetch(url)

        text_length = document.visible_text_length()
        if text_length < self.min_text_chars:
            logger.info(
                f"Static HTML for {url} has {text_length} visible chars, rendering in browser"
            )
            return await self.dynamic.fetch(url)
        return document


def build_fetcher(
    mode: str,
    client: httpx.AsyncClient | None = None,
    pool: BrowserPool | None = None,
) -> Fetcher:
    if mode not in FETCH_MODES:
        raise ValueError(f"Unknown fetch mode {mode!r}, expected one of {FETCH_MODES}")
    if mode in ("static", "auto") and client is None:
        raise ValueError(f"Fetch mode {mode!r} needs an httpx client")
    if mode in ("dynamic", "auto") and pool is None:
        raise ValueError(f"Fetch mode {mode!r} needs a browser pool")

    if mode == "static":
        return StaticFetcher(client)
    if mode == "dynamic":
        return BrowserFetcher(pool)
    return AutoFetcher(StaticFetcher(client), BrowserFetcher(pool))


@asynccontextmanager
async def open_fetcher(mode: str | None = None):
    """Yield a fetcher whose HTTP client and browser pool live for the block."""
    mode = mode or settings.FETCH_MODE
    if mode not in FETCH_MODES:
        raise ValueError(f"Unknown fetch mode {mode!r}, expected one of {FETCH_MODES}")

    async with AsyncExitStack() as stack:
        client = pool = None
        if mode in ("static", "auto"):
            client = await stack.enter_async_context(
                httpx.AsyncClient(follow_redirects=True, timeout=settings.STATIC_TIMEOUT_SECONDS)
            )
        if mode in ("dynamic", "auto"):
            pool = await stack.enter_async_context(BrowserPool())
        yield build_fetcher(mode, client=client, pool=pool)

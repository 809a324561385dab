import asyncio
import logging
from contextlib import asynccontextmanager

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from sessionmailer.config import settings
from sessionmailer.core.exceptions import BrowserPoolExhaustedError
from sessionmailer.core.metrics import active_browser_contexts, browser_pool_exhausted_total

logger = logging.getLogger(__name__)

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)

DESKTOP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Ch-Ua": '"Chromium";v="125", "Google Chrome";v="125", "Not-A.Brand";v="99"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

# ---------------------------------------------------------------------------
# Ad / tracker domains blocked on every context. Booking pages embed several
# analytics tags that keep the network busy and delay networkidle.
# ---------------------------------------------------------------------------

AD_SERVING_DOMAINS = frozenset(
    {
        "doubleclick.net",
        "adservice.google.com",
        "googlesyndication.com",
        "googletagservices.com",
        "googletagmanager.com",
        "google-analytics.com",
        "facebook.net",
        "connect.facebook.net",
        "hotjar.com",
        "fullstory.com",
        "mouseflow.com",
        "clarity.ms",
        "segment.io",
        "intercom.io",
        "newrelic.com",
        "nr-data.net",
        "sentry.io",
        "scorecardresearch.com",
        "quantserve.com",
    }
)

SLOT_WAIT_SECONDS = 30.0


def is_blocked_host(url: str) -> bool:
    try:
        hostname = url.split("//", 1)[1].split("/", 1)[0].split(":")[0].lower()
    except IndexError:
        return False
    return any(domain in hostname for domain in AD_SERVING_DOMAINS)


async def _setup_route_blocking(context: BrowserContext):
    async def _route_handler(route, request):
        if is_blocked_host(request.url):
            await route.abort()
        else:
            await route.continue_()

    await context.route("**/*", _route_handler)


class BrowserPool:
    """One shared Chromium process handing out isolated pages.

    Use as an async context manager; the browser is launched on the first
    ``get_page()`` and closed on exit::

        async with BrowserPool() as pool:
            async with pool.get_page() as page:
                await page.goto(url)
    """

    _CHROMIUM_ARGS = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-blink-features=AutomationControlled",
        "--window-size=1920,1080",
        "--disable-extensions",
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-background-networking",
        "--disable-sync",
        "--disable-gpu",
        "--renderer-process-limit=2",
    ]

    def __init__(
        self,
        size: int | None = None,
        headless: bool | None = None,
        executable_path: str | None = None,
    ):
        self.size = size or settings.BROWSER_POOL_SIZE
        self.headless = settings.BROWSER_HEADLESS if headless is None else headless
        self.executable_path = executable_path or settings.CHROMIUM_EXECUTABLE_PATH or None
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._semaphore = asyncio.Semaphore(self.size)
        self._launch_lock = asyncio.Lock()

    async def __aenter__(self) -> "BrowserPool":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        # Shielded so a cancelled request still closes Chromium
        await asyncio.shield(self.shutdown())

    @property
    def launched(self) -> bool:
        return self._browser is not None

    async def _ensure_browser(self) -> Browser:
        if self._browser and self._browser.is_connected():
            return self._browser
        async with self._launch_lock:
            if self._browser and self._browser.is_connected():
                return self._browser
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=self._CHROMIUM_ARGS,
                executable_path=self.executable_path,
            )
            logger.info(f"Chromium launched (pool size={self.size})")
            return self._browser

    async def shutdown(self):
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Browser close failed: {e}")
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning(f"Playwright stop failed: {e}")
            logger.info("Browser pool shut down")

    @asynccontextmanager
    async def get_page(self, url: str = ""):
        """Borrow a fresh context + page; both are closed on exit.

        Raises:
            BrowserPoolExhaustedError: no slot freed up within 30 seconds.
        """
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=SLOT_WAIT_SECONDS)
        except asyncio.TimeoutError:
            browser_pool_exhausted_total.inc()
            raise BrowserPoolExhaustedError(
                f"No browser slots available after {SLOT_WAIT_SECONDS:.0f}s", url=url
            )
        try:
            active_browser_contexts.inc()
            try:
                browser = await self._ensure_browser()
                context = await browser.new_context(
                    user_agent=DESKTOP_USER_AGENT,
                    viewport={"width": 1920, "height": 1080},
                    locale="en-US",
                    ignore_https_errors=True,
                    java_script_enabled=True,
                    extra_http_headers=DESKTOP_HEADERS,
                )
                try:
                    await _setup_route_blocking(context)
                    page = await context.new_page()
                except BaseException:
                    await asyncio.shield(context.close())
                    raise
                try:
                    yield page
                finally:
                    await asyncio.shield(self._safe_cleanup_page(page, context))
            finally:
                active_browser_contexts.dec()
        finally:
            self._semaphore.release()

    async def _safe_cleanup_page(self, page: Page, context: BrowserContext):
        try:
            await page.close()
        except Exception as e:
            logger.debug(f"Page close failed: {e}")
        try:
            await context.close()
        except Exception as e:
            logger.debug(f"Context close failed: {e}")

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from sessionmailer.config import settings
from sessionmailer.core.exceptions import FetchError, FetchErrorKind, ValidationError
from sessionmailer.core.metrics import fetch_errors_total, sessions_processed_total
from sessionmailer.schemas.session import BrandingOptions, SessionData
from sessionmailer.services.compositor import compose_multiple, compose_single
from sessionmailer.services.extractor import extract_session
from sessionmailer.services.fetcher import Fetcher, open_fetcher
from sessionmailer.services.images import apply_hero_override
from sessionmailer.services.rules import (
    DEFAULT_RULES,
    FALLBACK_DATE,
    FALLBACK_DESCRIPTION,
    FALLBACK_LOCATION,
    FALLBACK_PRICE,
    FALLBACK_TITLE,
    ExtractionRules,
)

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    sessions: list[SessionData]
    email_html: str
    raw_html: str
    is_multiple: bool


def validate_urls(urls: list[str] | None, domain: str | None = None) -> list[str]:
    """Reject the whole request unless every URL is an http(s) URL on ``domain``."""
    domain = (domain or settings.ALLOWED_SOURCE_DOMAIN).lower()
    if not urls:
        raise ValidationError("At least one session URL is required")

    cleaned: list[str] = []
    for raw in urls:
        url = (raw or "").strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValidationError(f"Invalid URL: {raw!r}")
        if domain not in parsed.hostname.lower():
            raise ValidationError(f"Please provide valid {domain} URLs (got {url})")
        cleaned.append(url)
    return cleaned


def fallback_session(url: str, message: str) -> SessionData:
    """Placeholder session for a URL that could not be fetched."""
    return SessionData(
        url=url,
        title=FALLBACK_TITLE,
        description=FALLBACK_DESCRIPTION,
        price=FALLBACK_PRICE,
        date=FALLBACK_DATE,
        location=FALLBACK_LOCATION,
        images=list(settings.STOCK_IMAGE_URLS),
        error=message,
    )


def apply_hero_overrides(session: SessionData, branding: BrandingOptions) -> SessionData:
    hero = branding.session_hero_images.get(session.url)
    if not hero:
        return session
    return session.model_copy(update={"images": apply_hero_override(session.images, hero)})


def compose_email(sessions: list[SessionData], branding: BrandingOptions) -> str:
    """Compose the sessions that extracted cleanly, or all of them if none did."""
    usable = [s for s in sessions if not s.error] or list(sessions)
    if len(usable) == 1:
        return compose_single(usable[0], branding)
    return compose_multiple(usable, branding)


class SessionOrchestrator:
    """Runs fetch -> extract -> compose for a list of booking URLs.

    Each URL is processed independently: a failure produces a fallback
    session carrying ``error`` and never aborts the other URLs. Passing a
    ``fetcher`` skips creating the HTTP client and browser pool.
    """

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        rules: ExtractionRules = DEFAULT_RULES,
        mode: str | None = None,
        max_concurrency: int | None = None,
        timeout: float | None = None,
    ):
        self.fetcher = fetcher
        self.rules = rules
        self.mode = mode or settings.FETCH_MODE
        self.max_concurrency = max_concurrency or settings.MAX_CONCURRENT_FETCHES
        self.timeout = timeout or settings.FETCH_TIMEOUT_SECONDS

    async def process(self, urls: list[str], branding: BrandingOptions) -> ExtractionResult:
        urls = validate_urls(urls)

        if self.fetcher is not None:
            sessions = await self._process_all(self.fetcher, urls, branding)
        else:
            async with open_fetcher(self.mode) as fetcher:
                sessions = await self._process_all(fetcher, urls, branding)

        email_html = compose_email(sessions, branding)
        return ExtractionResult(
            sessions=sessions,
            email_html=email_html,
            raw_html=email_html,
            is_multiple=len(sessions) > 1,
        )

    async def _process_all(
        self, fetcher: Fetcher, urls: list[str], branding: BrandingOptions
    ) -> list[SessionData]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process_one(url: str) -> SessionData:
            async with semaphore:
                return await self._process_one(fetcher, url, branding)

        return list(await asyncio.gather(*(process_one(url) for url in urls)))

    async def _process_one(
        self, fetcher: Fetcher, url: str, branding: BrandingOptions
    ) -> SessionData:
        try:
            document = await asyncio.wait_for(fetcher.fetch(url), timeout=self.timeout)
            session = await asyncio.to_thread(
                extract_session, document.html, url, self.rules, document.final_url
            )
        except asyncio.TimeoutError:
            logger.warning(f"Fetch timed out for {url} after {self.timeout:.0f}s")
            fetch_errors_total.labels(kind=FetchErrorKind.TIMEOUT.value).inc()
            sessions_processed_total.labels(status="error").inc()
            return apply_hero_overrides(
                fallback_session(url, f"Timed out after {self.timeout:.0f}s"), branding
            )
        except FetchError as e:
            logger.warning(f"Fetch failed for {url} ({e.kind.value}): {e}")
            fetch_errors_total.labels(kind=e.kind.value).inc()
            sessions_processed_total.labels(status="error").inc()
            return apply_hero_overrides(fallback_session(url, str(e)), branding)
        except Exception as e:
            logger.exception(f"Unexpected error processing {url}")
            sessions_processed_total.labels(status="error").inc()
            return apply_hero_overrides(
                fallback_session(url, f"Failed to process session: {e}"), branding
            )

        sessions_processed_total.labels(status="ok").inc()
        logger.info(
            f"Extracted '{session.title}' from {url} "
            f"({len(session.images)} images, {len(session.time_slots)} time slots)"
        )
        return apply_hero_overrides(session, branding)

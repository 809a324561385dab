"""Tests for the fetch -> extract -> compose pipeline."""

from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest

from sessionmailer.config import settings
from sessionmailer.core.exceptions import FetchError, FetchErrorKind, ValidationError
from sessionmailer.schemas.session import BrandingOptions
from sessionmailer.services.orchestrator import (
    SessionOrchestrator,
    apply_hero_overrides,
    compose_email,
    fallback_session,
    validate_urls,
)
from sessionmailer.services.rules import FALLBACK_DESCRIPTION, FALLBACK_TITLE

URL_A = "https://jane.usesession.com/s/spring"
URL_B = "https://jane.usesession.com/s/summer"
URL_C = "https://jane.usesession.com/s/autumn"


class TestValidateUrls:
    def test_accepts_and_strips(self):
        assert validate_urls([f"  {URL_A} "]) == [URL_A]

    def test_subdomains_allowed(self):
        assert validate_urls(["http://book.usesession.com/x"]) == ["http://book.usesession.com/x"]

    @pytest.mark.parametrize(
        "urls",
        [
            [],
            None,
            ["https://example.com/s/abc"],
            [URL_A, "https://example.com/s/abc"],
            ["ftp://jane.usesession.com/s/abc"],
            ["not a url"],
            ["https:///s/abc"],
        ],
    )
    def test_rejects(self, urls):
        with pytest.raises(ValidationError):
            validate_urls(urls)

    def test_custom_domain(self):
        assert validate_urls(["https://studio.example.com/a"], domain="example.com")


class TestHeroOverrides:
    def test_known_image_promoted(self):
        session = fallback_session(URL_A, "x").model_copy(
            update={"images": ["https://cdn/a.jpg", "https://cdn/b.jpg"]}
        )
        branding = BrandingOptions(session_hero_images={URL_A: "https://cdn/b.jpg"})

        result = apply_hero_overrides(session, branding)

        assert result.images == ["https://cdn/b.jpg", "https://cdn/a.jpg"]
        assert result.first_image == "https://cdn/b.jpg"
        assert session.images[0] == "https://cdn/a.jpg"

    def test_unknown_image_ignored(self):
        session = fallback_session(URL_A, "x")
        branding = BrandingOptions(session_hero_images={URL_A: "https://elsewhere/z.jpg"})
        assert apply_hero_overrides(session, branding).images == session.images

    def test_other_url_untouched(self):
        session = fallback_session(URL_A, "x")
        branding = BrandingOptions(session_hero_images={URL_B: settings.STOCK_IMAGE_URLS[1]})
        assert apply_hero_overrides(session, branding) is session


class TestComposeEmail:
    def test_failed_sessions_left_out_when_others_succeed(self):
        ok = fallback_session(URL_A, "x").model_copy(update={"error": None, "title": "Spring"})
        failed = fallback_session(URL_B, "boom")

        html = compose_email([ok, failed], BrandingOptions())

        assert "<title>Spring</title>" in html
        assert URL_B not in html

    def test_all_failed_still_composes(self):
        html = compose_email(
            [fallback_session(URL_A, "a"), fallback_session(URL_B, "b")], BrandingOptions()
        )
        assert html.count('class="session-content"') == 2


class TestSessionOrchestrator:
    @pytest.mark.asyncio
    async def test_single_url(self, make_fetcher, session_page):
        fetcher = make_fetcher(pages={URL_A: session_page("Spring Minis", "spring")})
        orchestrator = SessionOrchestrator(fetcher=fetcher)

        result = await orchestrator.process([URL_A], BrandingOptions())

        assert len(result.sessions) == 1
        session = result.sessions[0]
        assert session.title == "Spring Minis"
        assert session.price == "$225"
        assert session.images[0] == "https://cdn.example.com/spring/hero.jpg"
        assert session.error is None
        assert result.is_multiple is False
        assert result.email_html == result.raw_html
        assert "<title>Spring Minis</title>" in result.email_html

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_order(self, make_fetcher, session_page):
        fetcher = make_fetcher(
            pages={
                URL_A: session_page("Spring Minis", "spring"),
                URL_B: session_page("Summer Minis", "summer"),
            },
            delays={URL_B: 2},
        )
        orchestrator = SessionOrchestrator(fetcher=fetcher, timeout=0.2)

        result = await orchestrator.process([URL_A, URL_B, URL_C], BrandingOptions())

        assert [s.url for s in result.sessions] == [URL_A, URL_B, URL_C]
        spring, summer, autumn = result.sessions
        assert spring.error is None
        assert summer.error.startswith("Timed out after")
        assert summer.title == FALLBACK_TITLE
        assert summer.description == FALLBACK_DESCRIPTION
        assert summer.images == settings.STOCK_IMAGE_URLS
        assert "404" in autumn.error
        assert result.is_multiple is True
        # Only the successful session is composed
        assert "<title>Spring Minis</title>" in result.email_html

    @pytest.mark.asyncio
    async def test_fetch_error_kinds(self, make_fetcher):
        fetcher = make_fetcher(
            errors={URL_A: FetchError("Navigation to x failed", kind=FetchErrorKind.NAVIGATION_ERROR)}
        )
        result = await SessionOrchestrator(fetcher=fetcher).process([URL_A], BrandingOptions())

        assert result.sessions[0].error == "Navigation to x failed"
        assert result.sessions[0].title == FALLBACK_TITLE

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_fallback(self, make_fetcher):
        fetcher = make_fetcher(errors={URL_A: RuntimeError("kaboom")})
        result = await SessionOrchestrator(fetcher=fetcher).process([URL_A], BrandingOptions())

        assert result.sessions[0].error == "Failed to process session: kaboom"

    @pytest.mark.asyncio
    async def test_validation_error_before_any_fetch(self, make_fetcher):
        fetcher = make_fetcher()
        with pytest.raises(ValidationError):
            await SessionOrchestrator(fetcher=fetcher).process(
                [URL_A, "https://evil.example.com/x"], BrandingOptions()
            )
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, make_fetcher, session_page):
        urls = [f"https://jane.usesession.com/s/{i}" for i in range(6)]
        fetcher = make_fetcher(
            pages={url: session_page(f"Session {i}", str(i)) for i, url in enumerate(urls)},
            delays={url: 0.05 for url in urls},
        )
        orchestrator = SessionOrchestrator(fetcher=fetcher, max_concurrency=2)

        result = await orchestrator.process(urls, BrandingOptions())

        assert len(result.sessions) == 6
        assert fetcher.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_hero_override_applied(self, make_fetcher, session_page):
        fetcher = make_fetcher(pages={URL_A: session_page("Spring Minis", "spring")})
        hero = "https://cdn.example.com/spring/second.jpg"
        branding = BrandingOptions(session_hero_images={URL_A: hero})

        result = await SessionOrchestrator(fetcher=fetcher).process([URL_A], branding)

        assert result.sessions[0].images[0] == hero
        assert f'src="{hero}" alt="Spring Minis" class="hero-image"' in result.email_html

    @pytest.mark.asyncio
    async def test_hero_override_not_in_set_is_ignored(self, make_fetcher, session_page):
        fetcher = make_fetcher(pages={URL_A: session_page("Spring Minis", "spring")})
        branding = BrandingOptions(session_hero_images={URL_A: "https://elsewhere.example.com/x.jpg"})

        result = await SessionOrchestrator(fetcher=fetcher).process([URL_A], branding)

        assert result.sessions[0].images[0] == "https://cdn.example.com/spring/hero.jpg"

    @pytest.mark.asyncio
    async def test_opens_fetcher_for_mode(self, make_fetcher, session_page):
        fetcher = make_fetcher(pages={URL_A: session_page("Spring Minis", "spring")})
        opened = []

        @asynccontextmanager
        async def fake_open_fetcher(mode=None):
            opened.append(mode)
            yield fetcher

        with patch("sessionmailer.services.orchestrator.open_fetcher", fake_open_fetcher):
            result = await SessionOrchestrator(mode="static").process([URL_A], BrandingOptions())

        assert opened == ["static"]
        assert result.sessions[0].title == "Spring Minis"

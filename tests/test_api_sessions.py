"""Integration tests for /v1/sessions endpoints."""

from unittest.mock import patch

import pytest
from httpx import AsyncClient

from sessionmailer.services.orchestrator import SessionOrchestrator

URL_A = "https://jane.usesession.com/s/spring"
URL_B = "https://jane.usesession.com/s/summer"


@pytest.fixture
def orchestrator(make_fetcher, session_page):
    fetcher = make_fetcher(
        pages={
            URL_A: session_page("Spring Minis", "spring"),
            URL_B: session_page("Summer Minis", "summer"),
        }
    )
    orchestrator = SessionOrchestrator(fetcher=fetcher)
    with patch("sessionmailer.api.v1.sessions.get_orchestrator", return_value=orchestrator):
        yield orchestrator


class TestExtractValidation:
    @pytest.mark.asyncio
    async def test_missing_urls_returns_400(self, client: AsyncClient, orchestrator):
        """POST /v1/sessions/extract without any URL is rejected."""
        resp = await client.post("/v1/sessions/extract", json={})

        assert resp.status_code == 400
        data = resp.json()
        assert data["success"] is False
        assert data["sessions"] == []
        assert "URL" in data["error"]

    @pytest.mark.asyncio
    async def test_foreign_domain_returns_400(self, client: AsyncClient, orchestrator):
        """One URL outside the allowed domain rejects the whole request."""
        resp = await client.post(
            "/v1/sessions/extract", json={"urls": [URL_A, "https://example.com/s/x"]}
        )

        assert resp.status_code == 400
        assert "usesession.com" in resp.json()["error"]
        assert orchestrator.fetcher.calls == []

    @pytest.mark.asyncio
    async def test_malformed_url_returns_400(self, client: AsyncClient, orchestrator):
        """A URL without scheme or host is rejected."""
        resp = await client.post("/v1/sessions/extract", json={"url": "usesession.com"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"url": URL_A, "headingFontSize": 0},
            {"url": URL_A, "customization": {"paragraphFontSize": -4}},
        ],
    )
    async def test_invalid_font_size_returns_422(self, client: AsyncClient, orchestrator, body):
        """Font sizes below 1px are rejected before anything is fetched."""
        resp = await client.post("/v1/sessions/extract", json=body)

        assert resp.status_code == 422
        assert orchestrator.fetcher.calls == []


class TestExtractSessions:
    @pytest.mark.asyncio
    async def test_single_url(self, client: AsyncClient, orchestrator):
        """A single `url` yields one session and a single-session email."""
        resp = await client.post("/v1/sessions/extract", json={"url": URL_A})

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["isMultiple"] is False
        assert data["emailHtml"] == data["rawHtml"]
        assert "<title>Spring Minis</title>" in data["emailHtml"]

        session = data["sessions"][0]
        assert session["title"] == "Spring Minis"
        assert session["firstImage"] == "https://cdn.example.com/spring/hero.jpg"
        assert set(session) >= {"timeSlots", "dateTimePairs", "images", "price", "location"}

    @pytest.mark.asyncio
    async def test_multiple_urls(self, client: AsyncClient, orchestrator):
        """Several URLs are composed into one multi-session email."""
        resp = await client.post("/v1/sessions/extract", json={"urls": [URL_A, URL_B]})

        data = resp.json()
        assert data["isMultiple"] is True
        assert [s["url"] for s in data["sessions"]] == [URL_A, URL_B]
        assert data["emailHtml"].count('class="session-divider"') == 1

    @pytest.mark.asyncio
    async def test_failed_url_reported_per_session(self, client: AsyncClient, orchestrator):
        """A URL that cannot be fetched becomes a fallback session, not a failed request."""
        missing = "https://jane.usesession.com/s/gone"
        resp = await client.post("/v1/sessions/extract", json={"urls": [URL_A, missing]})

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert "error" not in data["sessions"][0]
        assert "error" not in data
        assert "404" in data["sessions"][1]["error"]
        assert data["sessions"][1]["images"]

    @pytest.mark.asyncio
    async def test_customization_overrides_top_level(self, client: AsyncClient, orchestrator):
        """Keys inside `customization` take precedence over top-level keys."""
        resp = await client.post(
            "/v1/sessions/extract",
            json={
                "url": URL_A,
                "primaryColor": "#111111",
                "headingFont": "Lora",
                "customization": {"primaryColor": "#222222"},
            },
        )

        html = resp.json()["emailHtml"]
        assert "#222222" in html
        assert "#111111" not in html
        assert "'Lora', serif" in html

    @pytest.mark.asyncio
    async def test_session_hero_images(self, client: AsyncClient, orchestrator):
        """`sessionHeroImages` promotes a scraped image to hero for that URL."""
        hero = "https://cdn.example.com/spring/second.jpg"
        resp = await client.post(
            "/v1/sessions/extract", json={"url": URL_A, "sessionHeroImages": {URL_A: hero}}
        )

        session = resp.json()["sessions"][0]
        assert session["images"][0] == hero
        assert session["firstImage"] == hero

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient, orchestrator):
        """The X-Request-ID header is echoed back."""
        resp = await client.post(
            "/v1/sessions/extract", json={"url": URL_A}, headers={"X-Request-ID": "abc123"}
        )
        assert resp.headers["X-Request-ID"] == "abc123"


class TestComposeSessions:
    @pytest.mark.asyncio
    async def test_recompose_with_new_branding(self, client: AsyncClient, orchestrator):
        """Sessions returned by /extract can be recomposed without fetching."""
        extracted = (await client.post("/v1/sessions/extract", json={"url": URL_A})).json()
        calls_before = len(orchestrator.fetcher.calls)

        body = {"sessions": extracted["sessions"], "primaryColor": "#0a9396"}
        first = await client.post("/v1/sessions/compose", json=body)
        second = await client.post("/v1/sessions/compose", json=body)

        assert first.status_code == 200
        data = first.json()
        assert data["success"] is True
        assert "#0a9396" in data["emailHtml"]
        assert data["emailHtml"] == second.json()["emailHtml"]
        assert len(orchestrator.fetcher.calls) == calls_before

    @pytest.mark.asyncio
    async def test_compose_applies_hero_override(self, client: AsyncClient, orchestrator):
        """Hero overrides apply when recomposing, too."""
        extracted = (await client.post("/v1/sessions/extract", json={"url": URL_A})).json()
        hero = "https://cdn.example.com/spring/second.jpg"

        resp = await client.post(
            "/v1/sessions/compose",
            json={"sessions": extracted["sessions"], "sessionHeroImages": {URL_A: hero}},
        )

        assert resp.json()["sessions"][0]["images"][0] == hero

    @pytest.mark.asyncio
    async def test_compose_without_sessions(self, client: AsyncClient):
        """An empty session list is reported as unsuccessful."""
        resp = await client.post("/v1/sessions/compose", json={"sessions": []})

        data = resp.json()
        assert data["success"] is False
        assert data["error"] == "At least one session is required"

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sessionmailer.core.exceptions import FetchError
from sessionmailer.main import app
from sessionmailer.services.fetcher import Fetcher, RenderedDocument


class FakeFetcher(Fetcher):
    """In-memory fetcher: ``pages`` maps URL -> HTML.

    ``errors`` maps URL -> exception to raise, ``delays`` maps URL -> seconds
    to sleep before answering.
    """

    mode = "fake"

    def __init__(self, pages=None, errors=None, delays=None):
        self.pages = pages or {}
        self.errors = errors or {}
        self.delays = delays or {}
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str) -> RenderedDocument:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, 0))
            if url in self.errors:
                raise self.errors[url]
            if url not in self.pages:
                raise FetchError(f"HTTP 404 from {url}", url=url, status_code=404)
            return RenderedDocument(
                url=url, html=self.pages[url], status_code=200, final_url=url, mode=self.mode
            )
        finally:
            self.in_flight -= 1


def session_page(title: str, slug: str, extra: str = "") -> str:
    return f"""
    <html>
    <head><title>{title} | Studio</title></head>
    <body>
      <h1>{title}</h1>
      <div class="session-description">
        <p>Gather your family for a relaxed outdoor session in beautiful evening light at the park.</p>
        <p>Each booking includes a private online gallery with at least fifteen edited images.</p>
      </div>
      <span class="price">$225</span>
      <img src="https://cdn.example.com/{slug}/hero.jpg">
      <img src="https://cdn.example.com/{slug}/second.jpg">
      {extra}
    </body>
    </html>
    """


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture(name="session_page")
def session_page_fixture():
    return session_page

"""Shared test fixtures for the siteprofile test suite."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import pytest

from siteprofile.config import Settings
from siteprofile.models.content import (
    BusinessInfo,
    ContactInfo,
    ScrapedContent,
    SocialLinks,
    TechnicalInfo,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

SAMPLE_HTML = """<!DOCTYPE html>
<html lang="nl">
<head>
  <meta charset="utf-8">
  <title>Bakkerij De Molen | Ambachtelijk brood</title>
  <meta name="description" content="Ambachtelijke bakker in Utrecht sinds 1952.">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta name="keywords" content="bakker, brood, gebak">
  <script>var tracking = "info@tracker.example";</script>
  <style>.hidden { display: none; }</style>
</head>
<body>
  <header><nav><a href="/">Home</a><a href="/over-ons">Over ons</a></nav></header>
  <main>
    <h1>Welkom bij Bakkerij De Molen</h1>
    <p>Vers brood en gebak, elke dag gebakken. Bestel online of kom langs.</p>
    <h2>Contact</h2>
    <p>Mail ons op info@demolen.nl of bel 030 123 4567.</p>
    <p>Oudegracht 12, 3511 AB Utrecht</p>
    <p>KvK-nummer: 12345678</p>
    <div class="services">
      <ul><li>Taarten op bestelling</li><li>Broodabonnement</li><li>Ok</li></ul>
    </div>
    <img src="/img/brood.jpg" alt="Brood">
    <a href="https://www.demolen.nl/assortiment">Assortiment</a>
    <a href="mailto:bestellingen@demolen.nl">Bestellen</a>
  </main>
  <footer>
    <div class="about">Familiebedrijf in de derde generatie.</div>
    <div class="opening-hours">Ma-Za 07:00 - 18:00</div>
    <a href="https://www.facebook.com/demolen">Facebook</a>
    <a href="https://x.com/demolen">X</a>
    <a href="https://www.instagram.com/demolen">Instagram</a>
    <p>Footer phone 020 999 8888</p>
  </footer>
</body>
</html>
"""


@pytest.fixture()
def sample_html() -> str:
    return SAMPLE_HTML


@pytest.fixture()
def settings() -> Settings:
    """Settings with instant retries and no settle delay."""
    return Settings(
        llm={"api_key": "sk-test", "request_timeout_seconds": 5},
        scraper={"settle_delay_ms": 0, "retry_delay_ms": 0, "max_retries": 3},
        security={"timeout_ms": 5_000},
    )


@pytest.fixture()
def sample_content() -> ScrapedContent:
    return ScrapedContent(
        url="https://www.demolen.nl",
        title="Bakkerij De Molen",
        description="Ambachtelijke bakker in Utrecht",
        headings=["Welkom", "Contact"],
        content="Vers brood en gebak. Bestel online via onze webshop. KvK 12345678.",
        contact_info=ContactInfo(
            emails=["info@demolen.nl"],
            phones=["030 123 4567"],
            addresses=["3511 AB Utrecht"],
        ),
        social_media=SocialLinks(facebook="https://www.facebook.com/demolen"),
        business_info=BusinessInfo(services=["Taarten", "Brood", "Gebak", "Koffie"]),
        technical_info=TechnicalInfo(
            load_time_ms=850, status_code=200, has_ssl=True, responsive=True
        ),
    )


# ---------------------------------------------------------------------------
# In-memory browser
# ---------------------------------------------------------------------------

HANG = "hang"


class FakeRequest:
    def __init__(self, redirected_from: FakeRequest | None = None) -> None:
        self.redirected_from = redirected_from


class FakeResponse:
    """Navigation response. ``url`` is the final URL; unset means the requested URL."""

    def __init__(self, status: int = 200, redirects: int = 0, url: str | None = None) -> None:
        self.status = status
        self.url = url
        request = None
        for _ in range(redirects):
            request = FakeRequest(request)
        self.request = FakeRequest(request)


def _chain_length(response: FakeResponse) -> int:
    count = 0
    request = response.request.redirected_from
    while request is not None:
        count += 1
        request = request.redirected_from
    return count


class FakePage:
    def __init__(self, pool: FakePool) -> None:
        self._pool = pool
        self.closed = False

    async def goto(self, url: str, *, wait_until: str, timeout: float) -> Any:
        self._pool.goto_calls.append((url, wait_until, timeout))
        outcome = self._pool.next_outcome()
        if outcome == HANG:
            await asyncio.sleep(3_600)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, FakeResponse) and outcome.url is None:
            return FakeResponse(outcome.status, _chain_length(outcome), url)
        return outcome

    async def wait_for_timeout(self, timeout: float) -> None:
        self._pool.settle_calls.append(timeout)

    async def content(self) -> str:
        return self._pool.html

    async def title(self) -> str:
        return self._pool.title

    async def evaluate(self, expression: str) -> Any:
        if isinstance(self._pool.media_rules, BaseException):
            raise self._pool.media_rules
        return self._pool.media_rules

    async def close(self) -> None:
        self.closed = True


class FakePool:
    """Browser pool double. ``outcomes`` are consumed per navigation; the last repeats.

    An outcome is a ``FakeResponse``, ``None`` (no response), an exception
    instance to raise, or ``HANG`` to block until cancelled.
    """

    def __init__(
        self,
        outcomes: list[Any] | None = None,
        *,
        html: str = SAMPLE_HTML,
        title: str = "",
        media_rules: Any = False,
    ) -> None:
        self.outcomes = list(outcomes) if outcomes is not None else [FakeResponse()]
        self.html = html
        self.title = title
        self.media_rules = media_rules
        self.page_calls = 0
        self.reset_calls = 0
        self.close_calls = 0
        self.goto_calls: list[tuple[str, str, float]] = []
        self.settle_calls: list[float] = []
        self.pages: list[FakePage] = []

    def next_outcome(self) -> Any:
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]

    @asynccontextmanager
    async def page(self) -> AsyncIterator[FakePage]:
        self.page_calls += 1
        page = FakePage(self)
        self.pages.append(page)
        try:
            yield page
        finally:
            await page.close()

    async def reset(self) -> None:
        self.reset_calls += 1

    async def close(self) -> None:
        self.close_calls += 1


@pytest.fixture()
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture()
def make_pool() -> type[FakePool]:
    """The FakePool class, for tests that script navigation outcomes."""
    return FakePool


@pytest.fixture()
def make_response() -> type[FakeResponse]:
    return FakeResponse

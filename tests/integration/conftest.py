"""Integration test fixtures.

Provides a fully wired AppState: real extractor, parser, caches, rate limiter
and analysis orchestrator. Only the edges are faked: the browser pool is the
in-memory FakePool and the completion endpoint is mocked with respx.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest
import respx

from siteprofile.analyzer import AnalysisOrchestrator, build_llm_client
from siteprofile.cache_manager import AnalysisCacheManager
from siteprofile.extractor import ContentExtractor
from siteprofile.rate_limit import RateLimiter
from siteprofile.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from siteprofile.config import Settings

COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"

MODEL_OUTPUT = {
    "businessType": "Bakery",
    "mainActivities": ["Baking"],
    "targetMarket": "Utrecht households",
    "businessDescription": "Artisan bakery",
    "industryCategory": "Food",
    "keyServices": ["Cakes"],
    "location": "Utrecht",
    "confidenceScore": 75,
    "digitalMaturity": {"level": "intermediate", "score": 55, "areas": []},
    "marketingInsights": {"contentQuality": 60, "seoOptimization": 40},
}


def completion_response(content: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "id": "chatcmpl-it",
            "object": "chat.completion",
            "created": 0,
            "model": "gpt-4o-mini",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": content},
                    "finish_reason": "stop",
                }
            ],
        },
    )


@pytest.fixture()
def model_route() -> Iterator[respx.Route]:
    with respx.mock(assert_all_called=False) as router:
        yield router.post(COMPLETIONS_URL).mock(
            return_value=completion_response(json.dumps(MODEL_OUTPUT))
        )


@pytest.fixture()
def pool(make_pool: Any) -> Any:
    return make_pool()


@pytest.fixture()
async def app_state(settings: Settings, pool: Any) -> AsyncIterator[AppState]:
    llm_client = build_llm_client(settings)
    state = AppState(
        settings=settings,
        caches=AnalysisCacheManager(settings),
        browser_pool=pool,
        extractor=ContentExtractor(pool, settings),
        analyzer=AnalysisOrchestrator(llm_client, settings),
        rate_limiter=RateLimiter(settings.rate_limit),
        llm_client=llm_client,
    )
    yield state
    await llm_client.close()


@pytest.fixture()
def model_output() -> dict[str, Any]:
    return json.loads(json.dumps(MODEL_OUTPUT))


@pytest.fixture()
def completion() -> Any:
    """Builder for a chat-completion HTTP response carrying ``content``."""
    return completion_response

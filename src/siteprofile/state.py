"""Application state container.

AppState is created once by ``open_app_state`` and passed to every pipeline
call. Components are referenced through their protocols so tests can swap in
fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from openai import AsyncOpenAI

    from siteprofile.cache_manager import AnalysisCacheManager
    from siteprofile.config import Settings
    from siteprofile.protocols import AnalyzerProtocol, BrowserPoolProtocol, ExtractorProtocol
    from siteprofile.rate_limit import RateLimiter


@dataclass
class AppState:
    """Holds all shared runtime state."""

    settings: Settings
    caches: AnalysisCacheManager
    browser_pool: BrowserPoolProtocol
    extractor: ExtractorProtocol
    analyzer: AnalyzerProtocol
    rate_limiter: RateLimiter | None = None
    llm_client: AsyncOpenAI | None = None

"""Analysis orchestrator: turn extracted page content into a business profile.

Per call the orchestrator moves through

    pending → prompting → awaiting_model → parsing → structured
                                  └──────→ failed → fallback → structured

and always ends in ``structured``: every failure (service error, timeout,
empty or malformed output) degrades to a heuristic profile built from the
extracted content alone. Analysis failures are never retried.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from openai import AsyncOpenAI

from siteprofile.errors import ErrorCode, SiteProfileError
from siteprofile.models.analysis import (
    MATURITY_LEVELS,
    BusinessAnalysis,
    CompetitorAnalysis,
    DigitalMaturity,
    MarketingInsights,
    clamp_score,
)
from siteprofile.models.options import AnalysisOptions
from siteprofile.parser import extract_registration_number
from siteprofile.prompts import prepare_content, system_prompt, user_prompt

if TYPE_CHECKING:
    from siteprofile.config import Settings
    from siteprofile.models.content import ScrapedContent

FALLBACK_CONFIDENCE = 30

# USD per input token (gpt-4o-mini list price: $0.15 / 1M tokens)
COST_PER_TOKEN = 0.15 / 1_000_000

BUSINESS_TYPE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Webshop": ("webshop", "online shop", "kopen", "bestellen", "winkelwagen"),
    "Restaurant": ("restaurant", "eten", "menu", "reserveren", "keuken"),
    "Consultancy": ("consultancy", "advies", "consulting", "diensten"),
    "Healthcare": ("zorg", "dokter", "behandeling", "patiënt", "gezondheid"),
    "Technology": ("software", "tech", "ontwikkeling", "ict", "digitaal"),
}
GENERAL_BUSINESS = "General business"

KNOWN_CITIES = (
    "Amsterdam",
    "Rotterdam",
    "Utrecht",
    "Eindhoven",
    "Tilburg",
    "Groningen",
    "Den Haag",
    "Breda",
    "Nijmegen",
    "Haarlem",
)
DEFAULT_LOCATION = "Nederland"

REVIEW_KEYWORDS = ("review", "recensie", "testimonial", "beoordeling", "ervaringen", "klanten zeggen")
DETAILED_ABOUT_MIN_CHARS = 200

_FALLBACK_TEXT: dict[str, dict[str, Any]] = {
    "nl": {
        "target_market": "Algemene markt",
        "description": "Bedrijfswebsite",
        "industry": "Algemeen",
        "strengths": ["Heeft een website"],
        "opportunities": ["Verbetering van online aanwezigheid"],
        "maturity_areas": ["Website optimalisatie", "SEO verbetering"],
        "positioning": "Niet duidelijk",
        "recommendations": [
            "Verbeter website content en structuur",
            "Optimaliseer voor zoekmachines",
            "Voeg meer bedrijfsinformatie toe",
        ],
    },
    "en": {
        "target_market": "General market",
        "description": "Business website",
        "industry": "General",
        "strengths": ["Has a website"],
        "opportunities": ["Improve online presence"],
        "maturity_areas": ["Website optimisation", "SEO improvement"],
        "positioning": "Not clear",
        "recommendations": [
            "Improve website content and structure",
            "Optimise for search engines",
            "Add more business information",
        ],
    },
}


# ---------------------------------------------------------------------------
# Model output parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedOutput:
    data: dict[str, Any]


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ParseResult = ParsedOutput | ParseFailure


def parse_model_output(raw: str | None) -> ParseResult:
    """Parse the raw completion text. Only a JSON object counts as success."""
    if raw is None or not raw.strip():
        return ParseFailure("Empty response from model")
    try:
        data = json.loads(raw)
    except ValueError as exc:
        return ParseFailure(f"Malformed JSON from model: {exc}")
    if not isinstance(data, dict):
        return ParseFailure(f"Expected a JSON object, got {type(data).__name__}")
    return ParsedOutput(data)


def first_choice_content(response: Any) -> str | None:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def _string(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, str | int | float):
            continue
        text = str(item).strip()
        if text:
            items.append(text)
    return items


def _object(value: object) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def structure_analysis(
    data: dict[str, Any],
    url: str,
    *,
    processing_time_ms: int = 0,
    timestamp: datetime | None = None,
) -> BusinessAnalysis:
    """Coerce untrusted model output field by field into a ``BusinessAnalysis``."""
    maturity = _object(data.get("digitalMaturity"))
    marketing = _object(data.get("marketingInsights"))
    competitors = _object(data.get("competitorAnalysis"))

    level = maturity.get("level")
    level = level.strip().lower() if isinstance(level, str) else ""

    return BusinessAnalysis(
        url=url,
        business_type=_string(data.get("businessType"), "Unknown"),
        main_activities=_string_list(data.get("mainActivities")),
        target_market=_string(data.get("targetMarket"), "Not specified"),
        business_description=_string(data.get("businessDescription"), "No description available"),
        industry_category=_string(data.get("industryCategory"), "General"),
        key_services=_string_list(data.get("keyServices")),
        location=_string(data.get("location"), "Unknown"),
        confidence_score=clamp_score(data.get("confidenceScore")),
        strengths=_string_list(data.get("strengths")),
        opportunities=_string_list(data.get("opportunities")),
        digital_maturity=DigitalMaturity(
            level=level if level in MATURITY_LEVELS else "basic",
            score=clamp_score(maturity.get("score")),
            areas=_string_list(maturity.get("areas")),
        ),
        marketing_insights=MarketingInsights(
            positioning=_string(marketing.get("positioning"), "Not determined"),
            unique_selling_points=_string_list(marketing.get("uniqueSellingPoints")),
            content_quality=clamp_score(marketing.get("contentQuality")),
            seo_optimization=clamp_score(marketing.get("seoOptimization")),
        ),
        recommendations=_string_list(data.get("recommendations")),
        competitor_analysis=CompetitorAnalysis(
            similar_businesses=_string_list(competitors.get("similarBusinesses")),
            competitive_advantages=_string_list(competitors.get("competitiveAdvantages")),
            market_gaps=_string_list(competitors.get("marketGaps")),
        ),
        timestamp=timestamp or datetime.now(UTC),
        processing_time_ms=processing_time_ms,
        source="model",
    )


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------


def _mentions(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}", text) is not None


def infer_business_type(content: ScrapedContent) -> str:
    haystack = " ".join((content.title, content.description, content.content)).lower()
    for business_type, keywords in BUSINESS_TYPE_KEYWORDS.items():
        if any(_mentions(haystack, keyword) for keyword in keywords):
            return business_type
    return GENERAL_BUSINESS


def infer_location(content: ScrapedContent) -> str:
    if content.contact_info.addresses:
        return content.contact_info.addresses[0]
    haystack = " ".join((content.content, content.title, content.description))
    for city in KNOWN_CITIES:
        if city in haystack:
            return city
    return DEFAULT_LOCATION


def score_confidence(content: ScrapedContent) -> int:
    """Apply the additive confidence rubric to what extraction actually found.

    Spelling quality cannot be judged locally, so that criterion is never
    awarded here.
    """
    text = " ".join((content.content, content.business_info.about_text)).lower()
    score = 0
    if extract_registration_number(content.content):
        score += 20
    if content.contact_info.addresses:
        score += 15
    if content.contact_info.phones:
        score += 10
    if any(keyword in text for keyword in REVIEW_KEYWORDS):
        score += 15
    if len(content.business_info.about_text) >= DETAILED_ABOUT_MIN_CHARS:
        score += 10
    if content.social_media.active():
        score += 10
    if content.technical_info.has_ssl:
        score += 10
    return min(score, 100)


def create_fallback_analysis(
    content: ScrapedContent,
    reason: str,
    *,
    language: str = "nl",
    processing_time_ms: int = 0,
) -> BusinessAnalysis:
    """Low-confidence profile built from local heuristics only. Never raises."""
    text = _FALLBACK_TEXT.get(language, _FALLBACK_TEXT["nl"])
    services = list(content.business_info.services)
    return BusinessAnalysis(
        url=content.url,
        business_type=infer_business_type(content),
        main_activities=services[:3],
        target_market=text["target_market"],
        business_description=content.description or content.title or text["description"],
        industry_category=text["industry"],
        key_services=services,
        location=infer_location(content),
        confidence_score=FALLBACK_CONFIDENCE,
        strengths=list(text["strengths"]),
        opportunities=list(text["opportunities"]),
        digital_maturity=DigitalMaturity(level="basic", score=40, areas=list(text["maturity_areas"])),
        marketing_insights=MarketingInsights(
            positioning=text["positioning"], content_quality=50, seo_optimization=40
        ),
        recommendations=list(text["recommendations"]),
        processing_time_ms=processing_time_ms,
        source="fallback",
        fallback_reason=reason,
    )


def estimate_cost(token_count: int) -> float:
    """Estimated USD cost of sending ``token_count`` input tokens."""
    return token_count * COST_PER_TOKEN


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class AnalysisOrchestrator:
    def __init__(self, client: AsyncOpenAI, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def analyze(
        self, content: ScrapedContent, options: AnalysisOptions | None = None
    ) -> BusinessAnalysis:
        opts = options or AnalysisOptions()
        started = time.monotonic()
        log = structlog.get_logger().bind(url=content.url)
        log.debug("analysis_state", state="pending")

        if not content.ok:
            log.debug("analysis_state", state="failed", reason="extraction_failed")
            return self._fallback(content, f"Extraction failed: {content.error}", opts, started, log)

        try:
            data = await self._request(content, opts, log)
        except SiteProfileError as exc:
            log.warning("analysis_failed", code=exc.code, error=exc.message)
            log.debug("analysis_state", state="failed")
            return self._fallback(content, exc.message, opts, started, log)

        try:
            analysis = structure_analysis(
                data, content.url, processing_time_ms=_elapsed_ms(started)
            )
        except Exception as exc:
            log.warning(
                "analysis_structuring_failed", error=str(exc), error_type=type(exc).__name__
            )
            log.debug("analysis_state", state="failed")
            return self._fallback(
                content, f"Unusable model output: {exc}", opts, started, log
            )
        if self._settings.llm.local_confidence_scoring:
            analysis = analysis.model_copy(
                update={"confidence_score": score_confidence(content)}
            )
        log.debug("analysis_state", state="structured", source="model")
        log.info(
            "analysis_complete",
            business_type=analysis.business_type,
            confidence_score=analysis.confidence_score,
            processing_time_ms=analysis.processing_time_ms,
        )
        return analysis

    async def _request(
        self, content: ScrapedContent, opts: AnalysisOptions, log: Any
    ) -> dict[str, Any]:
        log.debug("analysis_state", state="prompting")
        messages = [
            {"role": "system", "content": system_prompt(opts)},
            {"role": "user", "content": user_prompt(prepare_content(content), opts)},
        ]

        log.debug("analysis_state", state="awaiting_model", model=self._settings.llm.model)
        timeout = self._settings.llm.request_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                response = await self._client.chat.completions.create(
                    model=self._settings.llm.model,
                    messages=messages,
                    max_tokens=opts.max_tokens,
                    temperature=opts.temperature,
                    response_format={"type": "json_object"},
                )
        except TimeoutError as exc:
            raise _service_failed(f"Model request timed out after {timeout}s") from exc
        except Exception as exc:
            raise _service_failed(f"Model request failed: {exc}") from exc

        log.debug("analysis_state", state="parsing")
        result = parse_model_output(first_choice_content(response))
        if isinstance(result, ParseFailure):
            raise _service_failed(result.reason)
        return result.data

    def _fallback(
        self,
        content: ScrapedContent,
        reason: str,
        opts: AnalysisOptions,
        started: float,
        log: Any,
    ) -> BusinessAnalysis:
        log.debug("analysis_state", state="fallback")
        analysis = create_fallback_analysis(
            content,
            reason,
            language=opts.language,
            processing_time_ms=_elapsed_ms(started),
        )
        log.debug("analysis_state", state="structured", source="fallback")
        log.info("analysis_fallback_used", business_type=analysis.business_type, reason=reason)
        return analysis

    async def test_connection(self) -> bool:
        """Round-trip a tiny completion to check credentials and reachability."""
        try:
            async with asyncio.timeout(self._settings.llm.request_timeout_seconds):
                response = await self._client.chat.completions.create(
                    model=self._settings.llm.model,
                    messages=[{"role": "user", "content": "Test"}],
                    max_tokens=10,
                )
        except Exception:
            structlog.get_logger().warning("llm_connection_test_failed", exc_info=True)
            return False
        return bool(getattr(response, "choices", None))


def _service_failed(message: str) -> SiteProfileError:
    return SiteProfileError(
        code=ErrorCode.ANALYSIS_SERVICE_FAILED,
        message=message,
        suggestion="A heuristic profile was returned; retry later for a full analysis.",
        recoverable=True,
    )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def build_llm_client(settings: Settings) -> AsyncOpenAI:
    """Create the completion client. Called once at startup."""
    llm = settings.llm
    if llm.api_key is None or not llm.api_key.get_secret_value().strip():
        raise SiteProfileError(
            code=ErrorCode.INVALID_CONFIG,
            message="LLM API key not configured",
            suggestion="Set SITEPROFILE__LLM__API_KEY or llm.api_key in siteprofile.yaml.",
        )
    return AsyncOpenAI(
        api_key=llm.api_key.get_secret_value(),
        organization=llm.organization_id,
        base_url=llm.base_url,
        max_retries=0,
        http_client=httpx.AsyncClient(
            timeout=httpx.Timeout(llm.request_timeout_seconds),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        ),
    )

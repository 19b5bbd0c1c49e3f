from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MaturityLevel = Literal["basic", "intermediate", "advanced"]
MATURITY_LEVELS: tuple[str, ...] = ("basic", "intermediate", "advanced")


def clamp_score(value: object, low: int = 0, high: int = 100) -> int:
    """Coerce an untrusted value into an integer score within ``[low, high]``.

    Accepts ints, floats and numeric strings. Booleans, NaN, infinities and
    anything else unparseable count as ``low``.
    """
    if isinstance(value, bool):
        number = float(low)
    elif isinstance(value, int):
        # Arbitrarily large JSON integers do not fit in a float
        return min(max(value, low), high)
    elif isinstance(value, float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            number = float(low)
    else:
        number = float(low)

    if not math.isfinite(number):
        number = float(low)
    return int(min(max(round(number), low), high))


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class DigitalMaturity(_Record):
    level: MaturityLevel = "basic"
    score: int = 0
    areas: list[str] = []

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, v: object) -> int:
        return clamp_score(v)


class MarketingInsights(_Record):
    positioning: str = "Not determined"
    unique_selling_points: list[str] = []
    content_quality: int = 0
    seo_optimization: int = 0

    @field_validator("content_quality", "seo_optimization", mode="before")
    @classmethod
    def _clamp(cls, v: object) -> int:
        return clamp_score(v)


class CompetitorAnalysis(_Record):
    similar_businesses: list[str] = []
    competitive_advantages: list[str] = []
    market_gaps: list[str] = []


class BusinessAnalysis(_Record):
    """AI-generated (or heuristic fallback) business profile of a website."""

    url: str
    business_type: str = "Unknown"
    main_activities: list[str] = []
    target_market: str = "Not specified"
    business_description: str = "No description available"
    industry_category: str = "General"
    key_services: list[str] = []
    location: str = "Unknown"
    confidence_score: int = 0
    strengths: list[str] = []
    opportunities: list[str] = []
    digital_maturity: DigitalMaturity = DigitalMaturity()
    marketing_insights: MarketingInsights = MarketingInsights()
    recommendations: list[str] = []
    competitor_analysis: CompetitorAnalysis = CompetitorAnalysis()
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    processing_time_ms: int = 0
    source: Literal["model", "fallback"] = "model"
    fallback_reason: str | None = None

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _clamp(cls, v: object) -> int:
        return clamp_score(v)

    @property
    def degraded(self) -> bool:
        return self.source == "fallback"

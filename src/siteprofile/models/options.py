from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Options(BaseModel):
    # Unknown keys are a programmer error, not something to silently ignore.
    model_config = ConfigDict(frozen=True, extra="forbid")


class ScrapeOptions(_Options):
    """Per-call extraction options. ``None`` falls back to configured defaults."""

    timeout_ms: int | None = Field(default=None, gt=0)
    wait_for_load: bool = True
    extract_images: bool = True
    extract_links: bool = True
    max_retries: int | None = Field(default=None, ge=1, le=10)
    follow_redirects: bool = True


class AnalysisOptions(_Options):
    language: Literal["nl", "en"] = "nl"
    include_recommendations: bool = True
    include_competitor_analysis: bool = True
    max_tokens: int = Field(default=2_000, ge=1, le=16_000)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)


class PipelineOptions(_Options):
    force_reanalyze: bool = False
    scrape: ScrapeOptions = ScrapeOptions()
    analysis: AnalysisOptions = AnalysisOptions()

    def cache_options(self) -> dict:
        """Options that identify a composed result (``force_reanalyze`` excluded)."""
        return self.model_dump(mode="json", exclude={"force_reanalyze"})

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from siteprofile.models.analysis import BusinessAnalysis
from siteprofile.models.content import ScrapedContent


class AnalysisReport(BaseModel):
    """Final composed result of one pipeline run for a URL."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    url: str
    content: ScrapedContent
    analysis: BusinessAnalysis
    scrape_cached: bool = False
    analysis_cached: bool = False
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def degraded(self) -> bool:
        """True when extraction failed or the analysis came from the fallback path."""
        return not self.content.ok or self.analysis.degraded

from __future__ import annotations

from siteprofile.models.analysis import (
    BusinessAnalysis,
    CompetitorAnalysis,
    DigitalMaturity,
    MarketingInsights,
)
from siteprofile.models.cache import CacheEntry, CacheHealth, CacheMetrics, CacheStats
from siteprofile.models.content import (
    BusinessInfo,
    ContactInfo,
    PageMetadata,
    ScrapedContent,
    SocialLinks,
    TechnicalInfo,
)
from siteprofile.models.options import AnalysisOptions, PipelineOptions, ScrapeOptions
from siteprofile.models.report import AnalysisReport

__all__ = [
    # content
    "ScrapedContent",
    "PageMetadata",
    "SocialLinks",
    "ContactInfo",
    "BusinessInfo",
    "TechnicalInfo",
    # analysis
    "BusinessAnalysis",
    "DigitalMaturity",
    "MarketingInsights",
    "CompetitorAnalysis",
    # options
    "ScrapeOptions",
    "AnalysisOptions",
    "PipelineOptions",
    # cache
    "CacheEntry",
    "CacheStats",
    "CacheMetrics",
    "CacheHealth",
    # report
    "AnalysisReport",
]

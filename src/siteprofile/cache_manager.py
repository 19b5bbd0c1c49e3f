"""Three-level cache for the analysis pipeline.

Each pipeline stage has its own ``ResultCache`` with its own TTL:

  scrape  ScrapedContent keyed by (url, scrape options)       2h
  ai      BusinessAnalysis keyed by (url, analysis options)    6h
  final   AnalysisReport keyed by (url, pipeline options)     24h

Only successful results are stored: errored scrapes and fallback analyses
never reach the cache.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from siteprofile.cache import ResultCache
from siteprofile.models.analysis import BusinessAnalysis
from siteprofile.models.cache import CacheHealth, CacheMetrics, CacheStats
from siteprofile.models.content import ScrapedContent
from siteprofile.models.report import AnalysisReport

if TYPE_CHECKING:
    from collections.abc import Callable

    from siteprofile.config import Settings
    from siteprofile.models.options import AnalysisOptions, PipelineOptions, ScrapeOptions

log = structlog.get_logger()

_MB = 1024 * 1024

HEALTHY_HIT_RATE = 50.0
MAX_HEALTHY_MEMORY_MB = 80.0
MAX_HEALTHY_EVICTION_RATE = 20.0


class AnalysisCacheManager:
    """Owns the scrape, ai and final caches and their typed accessors."""

    def __init__(self, settings: Settings, clock: Callable[[], float] | None = None) -> None:
        cfg = settings.cache
        limits: dict = {
            "max_size_bytes": int(cfg.max_size_mb * _MB),
            "max_entries": cfg.max_entries,
        }
        if clock is not None:
            limits["clock"] = clock
        self.scrape: ResultCache[ScrapedContent] = ResultCache(
            "scrape", default_ttl_seconds=cfg.scrape_ttl_hours * 3600, **limits
        )
        self.ai: ResultCache[BusinessAnalysis] = ResultCache(
            "ai", default_ttl_seconds=cfg.analysis_ttl_hours * 3600, **limits
        )
        self.final: ResultCache[AnalysisReport] = ResultCache(
            "final", default_ttl_seconds=cfg.final_ttl_hours * 3600, **limits
        )

    def _caches(self) -> tuple[ResultCache, ...]:
        return (self.scrape, self.ai, self.final)

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    def get_scraped_content(
        self, url: str, options: ScrapeOptions | None = None
    ) -> ScrapedContent | None:
        return self.scrape.get(url, options)

    def cache_scraped_content(
        self, url: str, content: ScrapedContent, options: ScrapeOptions | None = None
    ) -> bool:
        if not content.ok:
            log.debug("cache_skip_errored_content", url=url)
            return False
        self.scrape.set(url, content, options)
        return True

    def get_ai_analysis(
        self, url: str, options: AnalysisOptions | None = None
    ) -> BusinessAnalysis | None:
        return self.ai.get(url, options)

    def cache_ai_analysis(
        self, url: str, analysis: BusinessAnalysis, options: AnalysisOptions | None = None
    ) -> bool:
        if analysis.degraded:
            log.debug("cache_skip_fallback_analysis", url=url)
            return False
        self.ai.set(url, analysis, options)
        return True

    def get_final_analysis(
        self, url: str, options: PipelineOptions | None = None
    ) -> AnalysisReport | None:
        return self.final.get(url, options.cache_options() if options else None)

    def cache_final_analysis(
        self, url: str, report: AnalysisReport, options: PipelineOptions | None = None
    ) -> bool:
        if report.degraded:
            log.debug("cache_skip_degraded_report", url=url)
            return False
        self.final.set(url, report, options.cache_options() if options else None)
        return True

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup(self) -> int:
        removed = sum(cache.cleanup() for cache in self._caches())
        log.info("cache_manager_cleanup", removed=removed)
        return removed

    def invalidate_url(self, url: str) -> int:
        removed = sum(cache.invalidate_url(url) for cache in self._caches())
        log.info("cache_url_invalidated", url=url, removed=removed)
        return removed

    def clear_all(self) -> None:
        for cache in self._caches():
            cache.clear()
        log.info("cache_cleared")

    def metrics(self) -> CacheMetrics:
        scrape, ai, final = (cache.stats() for cache in self._caches())
        parts = (scrape, ai, final)
        hits = sum(s.hits for s in parts)
        misses = sum(s.misses for s in parts)
        oldest = [s.oldest_entry for s in parts if s.oldest_entry is not None]
        newest = [s.newest_entry for s in parts if s.newest_entry is not None]
        overall = CacheStats(
            entries=sum(s.entries for s in parts),
            bytes=sum(s.bytes for s in parts),
            hits=hits,
            misses=misses,
            hit_rate=(hits / (hits + misses)) * 100 if hits + misses else 0.0,
            evictions=sum(s.evictions for s in parts),
            oldest_entry=min(oldest) if oldest else None,
            newest_entry=max(newest) if newest else None,
        )
        return CacheMetrics(scrape=scrape, ai=ai, final=final, overall=overall)


def check_cache_health(metrics: CacheMetrics) -> CacheHealth:
    """Flag a low hit rate, high memory use or a high eviction rate."""
    overall = metrics.overall
    warnings: list[str] = []
    recommendations: list[str] = []

    requests = overall.hits + overall.misses
    if requests and overall.hit_rate < HEALTHY_HIT_RATE:
        warnings.append(f"Low cache hit rate: {overall.hit_rate:.1f}%")
        recommendations.append("Consider increasing cache TTL or warming the cache")

    if overall.memory_mb > MAX_HEALTHY_MEMORY_MB:
        warnings.append(f"High memory usage: {overall.memory_mb:.1f}MB")
        recommendations.append("Consider reducing cache size or TTL")

    if requests:
        eviction_rate = overall.evictions / requests * 100
        if eviction_rate > MAX_HEALTHY_EVICTION_RATE:
            warnings.append(f"High eviction rate: {eviction_rate:.1f}%")
            recommendations.append("Consider increasing cache size limits")

    return CacheHealth(
        is_healthy=not warnings, warnings=warnings, recommendations=recommendations
    )


def format_cache_metrics(metrics: CacheMetrics) -> str:
    o = metrics.overall
    return (
        f"Cache: {o.entries} entries, {o.memory_mb:.2f}MB, "
        f"hit rate {o.hit_rate:.1f}% ({o.hits} hits / {o.misses} misses), "
        f"{o.evictions} evictions "
        f"[scrape {metrics.scrape.entries}, ai {metrics.ai.entries}, final {metrics.final.entries}]"
    )

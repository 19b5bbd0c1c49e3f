"""Website analysis pipeline: validate → extract → cache → analyze → cache.

``analyze_website`` only raises for rejected URLs and rate limiting. Extraction
and analysis failures come back inside the report: ``content.error`` is set
and/or ``analysis.source == "fallback"``.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from siteprofile.models.options import PipelineOptions
from siteprofile.models.report import AnalysisReport
from siteprofile.validator import ensure_url_allowed

if TYPE_CHECKING:
    from siteprofile.state import AppState

log = structlog.get_logger()


async def analyze_website(
    url: str,
    state: AppState,
    *,
    options: PipelineOptions | None = None,
    caller_id: str | None = None,
) -> AnalysisReport:
    opts = options or PipelineOptions()
    started = time.monotonic()
    ensure_url_allowed(url, state.settings.security)

    if (
        caller_id is not None
        and state.rate_limiter is not None
        and state.settings.rate_limit.enabled
    ):
        state.rate_limiter.acquire(caller_id)

    caches = state.caches
    if not opts.force_reanalyze:
        cached_report = caches.get_final_analysis(url, opts)
        if cached_report is not None:
            log.info("analysis_cache_hit", url=url, level="final")
            return cached_report

    content = caches.get_scraped_content(url, opts.scrape)
    scrape_cached = content is not None
    if content is None:
        content = await state.extractor.extract(url, opts.scrape)
        caches.cache_scraped_content(url, content, opts.scrape)

    analysis = None if opts.force_reanalyze else caches.get_ai_analysis(url, opts.analysis)
    analysis_cached = analysis is not None
    if analysis is None:
        analysis = await state.analyzer.analyze(content, opts.analysis)
        caches.cache_ai_analysis(url, analysis, opts.analysis)

    report = AnalysisReport(
        url=url,
        content=content,
        analysis=analysis,
        scrape_cached=scrape_cached,
        analysis_cached=analysis_cached,
    )
    caches.cache_final_analysis(url, report, opts)

    log.info(
        "analysis_pipeline_complete",
        url=url,
        scrape_cached=scrape_cached,
        analysis_cached=analysis_cached,
        degraded=report.degraded,
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return report

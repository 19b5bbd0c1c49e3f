"""Application entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build and tear down AppState via ``open_app_state``
- Run one analysis (or the diagnostics) from the command line and print the result
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING

import structlog

from siteprofile import __version__
from siteprofile.analyzer import AnalysisOrchestrator, build_llm_client
from siteprofile.browser import BrowserPool
from siteprofile.cache_manager import AnalysisCacheManager, format_cache_metrics
from siteprofile.config import Settings
from siteprofile.diagnostics import diagnose, run_diagnostics
from siteprofile.errors import ErrorCode, SiteProfileError
from siteprofile.extractor import ContentExtractor
from siteprofile.models.options import AnalysisOptions, PipelineOptions
from siteprofile.pipeline import analyze_website
from siteprofile.rate_limit import RateLimiter
from siteprofile.schedulers import run_cache_cleanup_scheduler
from siteprofile.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

log = structlog.get_logger()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REJECTED = 2


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout carries the report
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def open_app_state(settings: Settings) -> AsyncIterator[AppState]:
    """Create and tear down all shared resources for the application's lifetime."""
    log.info("app_starting", version=__version__, model=settings.llm.model)

    llm_client = build_llm_client(settings)
    caches = AnalysisCacheManager(settings)
    pool = BrowserPool(settings.scraper)

    state = AppState(
        settings=settings,
        caches=caches,
        browser_pool=pool,
        extractor=ContentExtractor(pool, settings),
        analyzer=AnalysisOrchestrator(llm_client, settings),
        rate_limiter=RateLimiter(settings.rate_limit),
        llm_client=llm_client,
    )

    cache_cleanup_task = asyncio.create_task(
        run_cache_cleanup_scheduler(caches, settings.cache.cleanup_interval_minutes * 60)
    )
    log.info("app_started", allowed_domains=settings.security.allowed_domains)

    try:
        yield state
    finally:
        cache_cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cache_cleanup_task
        await pool.close()
        await llm_client.close()
        log.info("app_stopping", cache=format_cache_metrics(caches.metrics()))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="siteprofile",
        description="Extract a website's content and generate an AI business profile.",
    )
    parser.add_argument("url", nargs="?", help="public http(s) URL to analyse")
    parser.add_argument(
        "--force", action="store_true", help="ignore cached analyses and re-run the model"
    )
    parser.add_argument("--language", choices=["nl", "en"], default="nl")
    parser.add_argument("--caller", default=None, help="caller id used for rate limiting")
    parser.add_argument(
        "--diagnose",
        action="store_true",
        help="check configuration and LLM connectivity instead of analysing a URL",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)
    if args.url is None and not args.diagnose:
        parser.error("a URL is required unless --diagnose is given")
    return args


async def _diagnose(args: argparse.Namespace, settings: Settings) -> int:
    try:
        async with open_app_state(settings) as state:
            report = await diagnose(state, args.caller)
    except SiteProfileError as exc:
        if exc.code != ErrorCode.INVALID_CONFIG:
            raise
        # Without an LLM client only the static checks can run
        report = run_diagnostics(settings)

    print(report.model_dump_json(indent=2))
    return EXIT_OK if report.ok else EXIT_ERROR


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    if args.diagnose:
        return await _diagnose(args, settings)

    options = PipelineOptions(
        force_reanalyze=args.force,
        analysis=AnalysisOptions(language=args.language),
    )
    try:
        async with open_app_state(settings) as state:
            report = await analyze_website(
                args.url, state, options=options, caller_id=args.caller
            )
    except SiteProfileError as exc:
        log.warning("analysis_rejected", code=exc.code, message=exc.message)
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        if exc.code in (ErrorCode.VALIDATION_REJECTED, ErrorCode.RATE_LIMITED):
            return EXIT_REJECTED
        return EXIT_ERROR

    print(report.model_dump_json(by_alias=True, indent=2))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = Settings()
    setup_logging(settings)
    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    sys.exit(main())

"""Background scheduler coroutines."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from siteprofile.cache_manager import AnalysisCacheManager

log = structlog.get_logger()


async def run_cache_cleanup_scheduler(
    caches: AnalysisCacheManager, interval_seconds: float
) -> None:
    """Sweep expired entries from every cache on a fixed interval until cancelled."""
    if interval_seconds <= 0:
        log.info("cache_cleanup_scheduler_disabled")
        return

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            caches.cleanup()
        except Exception:
            log.warning("cache_cleanup_scheduler_error", exc_info=True)

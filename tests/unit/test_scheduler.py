"""Unit tests for the background cache cleanup scheduler."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from unittest.mock import MagicMock, patch

from siteprofile.schedulers import run_cache_cleanup_scheduler


class _StopLoop(Exception):
    pass


async def test_runs_cleanup_after_each_interval() -> None:
    caches = MagicMock()
    sleep_calls: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleep_calls.append(seconds)
        if len(sleep_calls) > 3:
            raise _StopLoop

    with patch("siteprofile.schedulers.asyncio.sleep", side_effect=fake_sleep):
        with suppress(_StopLoop):
            await run_cache_cleanup_scheduler(caches, 900)

    assert sleep_calls == [900, 900, 900, 900]
    assert caches.cleanup.call_count == 3


async def test_cleanup_errors_do_not_stop_the_loop() -> None:
    caches = MagicMock()
    caches.cleanup.side_effect = [RuntimeError("boom"), 0, 0]
    calls = 0

    async def fake_sleep(_seconds: float) -> None:
        nonlocal calls
        calls += 1
        if calls > 3:
            raise _StopLoop

    with patch("siteprofile.schedulers.asyncio.sleep", side_effect=fake_sleep):
        with suppress(_StopLoop):
            await run_cache_cleanup_scheduler(caches, 60)

    assert caches.cleanup.call_count == 3


async def test_disabled_interval_returns_immediately() -> None:
    caches = MagicMock()
    await run_cache_cleanup_scheduler(caches, 0)
    caches.cleanup.assert_not_called()


async def test_cancellation_stops_scheduler() -> None:
    caches = MagicMock()
    task = asyncio.create_task(run_cache_cleanup_scheduler(caches, 3_600))
    await asyncio.sleep(0)
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
    assert task.cancelled()
    caches.cleanup.assert_not_called()

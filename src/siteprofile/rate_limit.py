"""Per-caller sliding-window rate limiting for analysis requests."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from siteprofile.errors import ErrorCode, SiteProfileError

if TYPE_CHECKING:
    from collections.abc import Callable

    from siteprofile.config import RateLimitSettings

log = structlog.get_logger()

HOUR_SECONDS = 3_600.0
DAY_SECONDS = 86_400.0


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int  # Analyses left in the tighter of the two windows
    reset_at: float  # Clock reading at which the oldest counted request expires
    retry_after: float | None = None  # Seconds; set only when not allowed


class RateLimiter:
    """Hourly and daily sliding windows per caller id."""

    def __init__(
        self,
        settings: RateLimitSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: dict[str, deque[float]] = {}

    def _window(self, caller_id: str, now: float) -> deque[float]:
        """Prune ``caller_id``'s window; callers with nothing left are forgotten.

        Returns an empty, unregistered deque for unknown callers.
        """
        window = self._requests.get(caller_id)
        if window is None:
            return deque()
        while window and now - window[0] >= DAY_SECONDS:
            window.popleft()
        if not window:
            del self._requests[caller_id]
        return window

    def _prune(self, now: float) -> None:
        for caller_id in list(self._requests):
            self._window(caller_id, now)

    def _evaluate(self, window: deque[float], now: float) -> RateLimitResult:
        last_hour = [t for t in window if now - t < HOUR_SECONDS]
        hour_left = self._settings.analyses_per_hour - len(last_hour)
        day_left = self._settings.analyses_per_day - len(window)

        if day_left <= 0:
            reset_at = window[0] + DAY_SECONDS
            return RateLimitResult(False, 0, reset_at, retry_after=reset_at - now)
        if hour_left <= 0:
            reset_at = last_hour[0] + HOUR_SECONDS
            return RateLimitResult(False, 0, reset_at, retry_after=reset_at - now)

        reset_at = last_hour[0] + HOUR_SECONDS if last_hour else now + HOUR_SECONDS
        return RateLimitResult(True, min(hour_left, day_left), reset_at)

    def check(self, caller_id: str) -> RateLimitResult:
        """Report whether ``caller_id`` may start another analysis, without recording one."""
        with self._lock:
            now = self._clock()
            return self._evaluate(self._window(caller_id, now), now)

    def acquire(self, caller_id: str) -> RateLimitResult:
        """Record an analysis for ``caller_id``, or raise ``RATE_LIMITED``."""
        with self._lock:
            now = self._clock()
            window = self._window(caller_id, now)
            result = self._evaluate(window, now)
            if result.allowed:
                if caller_id not in self._requests:
                    self._prune(now)
                window.append(now)
                self._requests[caller_id] = window
                return RateLimitResult(True, result.remaining - 1, result.reset_at)

        log.warning("rate_limited", caller_id=caller_id, retry_after=result.retry_after)
        raise SiteProfileError(
            code=ErrorCode.RATE_LIMITED,
            message=f"Rate limit exceeded for '{caller_id}'",
            suggestion=f"Retry in {int(result.retry_after or 0) + 1} seconds.",
            recoverable=True,
        )

    def reset(self, caller_id: str | None = None) -> None:
        with self._lock:
            if caller_id is None:
                self._requests.clear()
            else:
                self._requests.pop(caller_id, None)

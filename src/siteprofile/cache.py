"""In-process result cache with LRU eviction, per-entry TTL and integrity hashes.

One generic ``ResultCache`` class, instantiated once per pipeline stage
(scraped content, AI analysis, final report) by ``AnalysisCacheManager``.

Eviction order is tracked with a monotonically increasing access counter, not
wall-clock time. Size and entry-count limits take priority over freshness: an
unexpired entry is evicted if the budget requires it.

Corrupted entries (stored hash no longer matches the data) are dropped and
reported as a miss. Cache problems never propagate to callers.
"""

from __future__ import annotations

import copy
import hashlib
import json
import threading
import time
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog
from pydantic import BaseModel

from siteprofile.errors import ErrorCode
from siteprofile.models.cache import CacheEntry, CacheStats

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()

T = TypeVar("T")


def _digest(value: bytes) -> str:
    return hashlib.sha256(value).hexdigest()


def canonical_json(value: object) -> str:
    """Stable JSON text for ``value``: pydantic models dumped, keys sorted."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def serialise(data: object) -> bytes:
    if isinstance(data, BaseModel):
        return data.model_dump_json().encode("utf-8")
    return canonical_json(data).encode("utf-8")


def make_key(url: str, options: object | None = None) -> str:
    """Content-addressed key: digest of the URL, plus a digest of the options."""
    base = _digest(url.encode("utf-8"))
    if options is None:
        return base
    return f"{base}-{_digest(canonical_json(options).encode('utf-8'))}"


def _copy(data: T) -> T:
    if isinstance(data, BaseModel):
        return data.model_copy(deep=True)
    return copy.deepcopy(data)


class ResultCache(Generic[T]):
    """Bounded key/value store keyed by URL (+ options)."""

    def __init__(
        self,
        name: str,
        *,
        max_size_bytes: int,
        max_entries: int,
        default_ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size_bytes <= 0 or max_entries <= 0 or default_ttl_seconds <= 0:
            raise ValueError("cache limits and default TTL must be positive")
        self.name = name
        self.max_size_bytes = max_size_bytes
        self.max_entries = max_entries
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, CacheEntry[T]] = {}
        self._bytes = 0
        self._access_counter = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self, url: str, options: object | None = None) -> T | None:
        """Return a copy of the cached value, or ``None`` on miss."""
        key = make_key(url, options)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                log.debug("cache_miss", cache=self.name, url=url)
                return None

            now = self._clock()
            if entry.expired(now):
                self._remove(key)
                self._misses += 1
                log.debug("cache_expired", cache=self.name, url=url)
                return None

            if _digest(serialise(entry.data)) != entry.hash:
                self._remove(key)
                self._evictions += 1
                self._misses += 1
                log.warning(
                    "cache_entry_corrupted",
                    cache=self.name,
                    url=url,
                    code=ErrorCode.CACHE_CORRUPTED,
                )
                return None

            self._access_counter += 1
            entry.access_order = self._access_counter
            entry.access_count += 1
            entry.last_accessed = now
            self._hits += 1
            log.debug("cache_hit", cache=self.name, url=url, access_count=entry.access_count)
            return _copy(entry.data)

    def set(
        self,
        url: str,
        data: T,
        options: object | None = None,
        ttl_seconds: float | None = None,
    ) -> None:
        """Store ``data``, evicting least-recently-used entries to make room."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")

        key = make_key(url, options)
        payload = serialise(data)
        size = len(payload)

        with self._lock:
            self._remove(key)

            if size > self.max_size_bytes:
                log.warning(
                    "cache_entry_too_large",
                    cache=self.name,
                    url=url,
                    size=size,
                    max_size_bytes=self.max_size_bytes,
                )
                return

            while self._entries and (
                self._bytes + size > self.max_size_bytes or len(self._entries) >= self.max_entries
            ):
                self._evict_lru()

            now = self._clock()
            self._access_counter += 1
            self._entries[key] = CacheEntry(
                key=key,
                data=_copy(data),
                timestamp=now,
                ttl=ttl,
                access_count=1,
                last_accessed=now,
                size=size,
                hash=_digest(payload),
                access_order=self._access_counter,
            )
            self._bytes += size
            log.debug("cache_set", cache=self.name, url=url, size=size, ttl_seconds=ttl)

    def delete(self, url: str, options: object | None = None) -> bool:
        with self._lock:
            return self._remove(make_key(url, options))

    def invalidate_url(self, url: str) -> int:
        """Drop every entry for ``url`` regardless of the options it was stored with."""
        base = make_key(url)
        with self._lock:
            keys = [k for k in self._entries if k == base or k.startswith(f"{base}-")]
            for key in keys:
                self._remove(key)
        return len(keys)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                self._remove(key)
                self._evictions += 1
        if expired:
            log.info("cache_cleanup_complete", cache=self.name, removed=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._bytes = 0
            self._access_counter = 0
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            timestamps = [entry.timestamp for entry in self._entries.values()]
            return CacheStats(
                entries=len(self._entries),
                bytes=self._bytes,
                hits=self._hits,
                misses=self._misses,
                hit_rate=(self._hits / total) * 100 if total else 0.0,
                evictions=self._evictions,
                oldest_entry=min(timestamps) if timestamps else None,
                newest_entry=max(timestamps) if timestamps else None,
            )

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._bytes -= entry.size
        return True

    def _evict_lru(self) -> None:
        victim = min(self._entries.values(), key=lambda entry: entry.access_order)
        self._remove(victim.key)
        self._evictions += 1
        log.debug("cache_evicted", cache=self.name, key=victim.key, size=victim.size)

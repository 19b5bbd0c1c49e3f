from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """One cached value plus its bookkeeping. Owned exclusively by the cache."""

    key: str
    data: T
    timestamp: float  # Clock reading at write time (seconds)
    ttl: float  # Seconds
    access_count: int
    last_accessed: float
    size: int  # Serialised byte length
    hash: str  # SHA-256 of the serialised data at write time
    access_order: int  # Monotonic access counter value, lowest = least recently used

    def expired(self, now: float) -> bool:
        return now - self.timestamp >= self.ttl


class CacheStats(BaseModel):
    entries: int = 0
    bytes: int = 0
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0  # Percentage 0-100
    evictions: int = 0
    oldest_entry: float | None = None
    newest_entry: float | None = None

    @property
    def memory_mb(self) -> float:
        return self.bytes / (1024 * 1024)


class CacheMetrics(BaseModel):
    scrape: CacheStats
    ai: CacheStats
    final: CacheStats
    overall: CacheStats


class CacheHealth(BaseModel):
    is_healthy: bool
    warnings: list[str] = []
    recommendations: list[str] = []

"""
Short-TTL cache with stale-on-error fallback for upstream statistics.

Entries are refreshed lazily: a read past the TTL triggers a fetch. A failed
refresh never evicts the previous value; it is served stale instead, and the
error only surfaces when nothing has ever been cached for that key.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from loguru import logger

from .model import CacheEntryStatus
from .type_aliases import CacheKeyString, DurationMilliseconds, JsonDict

T = TypeVar("T")

DEFAULT_CACHE_TTL_MS: DurationMilliseconds = 30_000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(slots=True)
class CacheEntry:
    data: Any
    timestamp: float  # milliseconds on the cache clock


@dataclass(slots=True)
class CacheStatistics:
    hits: int = 0
    misses: int = 0
    stale_served: int = 0
    fetch_failures: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.stale_served = 0
        self.fetch_failures = 0

    def to_dict(self) -> JsonDict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "staleServed": self.stale_served,
            "fetchFailures": self.fetch_failures,
            "hitRate": round(self.hit_rate, 4),
        }


@dataclass(slots=True)
class StatsCache:
    """Keyed cache of upstream snapshots.

    With ``single_flight`` enabled, concurrent misses on the same key share a
    single fetch; otherwise every miss fetches independently.
    """

    ttl_ms: DurationMilliseconds = DEFAULT_CACHE_TTL_MS
    single_flight: bool = False
    clock: Callable[[], float] = _monotonic_ms
    statistics: CacheStatistics = field(default_factory=CacheStatistics)
    _entries: dict[CacheKeyString, CacheEntry] = field(default_factory=dict)
    _in_flight: dict[CacheKeyString, asyncio.Future[Any]] = field(
        default_factory=dict
    )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def peek(self, key: CacheKeyString) -> CacheEntry | None:
        """Return the raw entry for ``key`` regardless of age."""
        return self._entries.get(key)

    def is_fresh(self, key: CacheKeyString) -> bool:
        entry = self.peek(key)
        return entry is not None and (self.clock() - entry.timestamp) < self.ttl_ms

    async def get_or_fetch(
        self, key: CacheKeyString, fetch_fn: Callable[[], Awaitable[T]]
    ) -> T:
        if self.is_fresh(key):
            self.statistics.hits += 1
            return self._entries[key].data

        self.statistics.misses += 1

        if not self.single_flight:
            return await self._refresh(key, fetch_fn)

        pending = self._in_flight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(key, fetch_fn))
            self._in_flight[key] = pending
            pending.add_done_callback(
                lambda done, key=key: self._release_in_flight(key, done)
            )
        else:
            logger.debug(f"Joining in-flight fetch for {key}")
        return await asyncio.shield(pending)

    async def _refresh(
        self, key: CacheKeyString, fetch_fn: Callable[[], Awaitable[T]]
    ) -> T:
        started_at = self.clock()
        try:
            data = await fetch_fn()
        except Exception as e:
            self.statistics.fetch_failures += 1
            cached = self.peek(key)
            if cached is not None:
                self.statistics.stale_served += 1
                logger.warning(f"Using stale cache for {key} due to fetch error: {e}")
                return cached.data
            raise

        self._entries[key] = CacheEntry(data=data, timestamp=started_at)
        return data

    def _release_in_flight(
        self, key: CacheKeyString, done: asyncio.Future[Any]
    ) -> None:
        if self._in_flight.get(key) is done:
            del self._in_flight[key]
        # mark the exception as retrieved when every waiter has gone away
        if not done.cancelled():
            done.exception()

    def clear(self) -> None:
        """Drop every entry and start a fresh set of statistics."""
        self._entries.clear()
        self.statistics.reset()

    def status(self) -> dict[CacheKeyString, CacheEntryStatus]:
        now = self.clock()
        report: dict[CacheKeyString, CacheEntryStatus] = {}
        for key, entry in self._entries.items():
            age = now - entry.timestamp
            report[key] = CacheEntryStatus(age=round(age), valid=age < self.ttl_ms)
        return report

"""
Aggregation and caching of upstream statistics.

``StatsService`` is the single coordination point between the HTTP API and the
two upstream clients. It owns the ``StatsCache`` (no other component mutates
it) and composes the unified snapshot together with local process metrics.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

from loguru import logger

from ..client.daemon_client import MonerodClient
from ..client.pool_client import P2PoolClient
from ..config import MoneroMeshSettings
from .formatting import iso_timestamp
from .model import (
    AggregatedStats,
    CacheEntryStatus,
    ConnectionStatus,
    DaemonStats,
    PoolStats,
    SystemStats,
)
from .process_metrics import ProcessMetricsProvider, PsutilProcessMetrics
from .stats_cache import DEFAULT_CACHE_TTL_MS, CacheStatistics, StatsCache
from .type_aliases import CacheKeyString

T = TypeVar("T")

MONEROD_CACHE_KEY: CacheKeyString = "monerod"
P2POOL_CACHE_KEY: CacheKeyString = "p2pool"


class StatsSource[S](Protocol):
    async def get_stats(self) -> S: ...

    async def test_connection(self) -> bool: ...


class StatsService:
    def __init__(
        self,
        monerod_client: StatsSource[DaemonStats],
        p2pool_client: StatsSource[PoolStats],
        *,
        metrics_provider: ProcessMetricsProvider | None = None,
        cache: StatsCache | None = None,
    ) -> None:
        self.monerod_client = monerod_client
        self.p2pool_client = p2pool_client
        self.metrics_provider = metrics_provider or PsutilProcessMetrics()
        self.cache = cache or StatsCache(ttl_ms=DEFAULT_CACHE_TTL_MS)

    @classmethod
    def from_settings(
        cls, settings: MoneroMeshSettings, *, single_flight: bool = False
    ) -> StatsService:
        return cls(
            MonerodClient.from_settings(settings),
            P2PoolClient.from_settings(settings),
            cache=StatsCache(ttl_ms=settings.cache_ttl_ms, single_flight=single_flight),
        )

    async def get_cached_data(
        self, key: CacheKeyString, fetch_fn: Callable[[], Awaitable[T]]
    ) -> T:
        """Serve ``key`` from cache, refreshing through ``fetch_fn`` when expired.

        A failed refresh returns the previous value, however old. The error only
        propagates when ``key`` has never been fetched successfully.
        """
        return await self.cache.get_or_fetch(key, fetch_fn)

    async def get_monerod_stats(self) -> DaemonStats:
        return await self.get_cached_data(
            MONEROD_CACHE_KEY, self.monerod_client.get_stats
        )

    async def get_p2pool_stats(self) -> PoolStats:
        return await self.get_cached_data(P2POOL_CACHE_KEY, self.p2pool_client.get_stats)

    def get_system_stats(self) -> SystemStats:
        return self.metrics_provider.snapshot()

    async def get_all_stats(self) -> AggregatedStats:
        try:
            monerod_stats, p2pool_stats = await asyncio.gather(
                self.get_monerod_stats(),
                self.get_p2pool_stats(),
            )
        except Exception as e:
            logger.error(f"Failed to get aggregated stats: {e}")
            raise

        return AggregatedStats(
            monerod=monerod_stats,
            p2pool=p2pool_stats,
            system=self.get_system_stats(),
            last_updated=iso_timestamp(),
        )

    async def test_connections(self) -> ConnectionStatus:
        monerod_connected, p2pool_connected = await asyncio.gather(
            self.monerod_client.test_connection(),
            self.p2pool_client.test_connection(),
            return_exceptions=True,
        )
        return ConnectionStatus(
            monerod=monerod_connected is True,
            p2pool=p2pool_connected is True,
        )

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Statistics cache cleared")

    def get_cache_status(self) -> dict[CacheKeyString, CacheEntryStatus]:
        return self.cache.status()

    def get_cache_statistics(self) -> CacheStatistics:
        """Hit, miss and stale-fallback counters since the last clear."""
        return self.cache.statistics

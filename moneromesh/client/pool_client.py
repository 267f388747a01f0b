"""
Typed client for the P2Pool statistics API.

The pool exposes three independent endpoints (``/stats``, ``/miners`` and
``/network``). ``get_stats`` queries all of them concurrently and merges
whatever subset answered into a single ``PoolStats`` snapshot.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any

import aiohttp
from loguru import logger

from ..config import MoneroMeshSettings
from ..core.errors import HttpPayloadError, HttpStatusError, HttpTransportError
from ..core.formatting import atomic_to_decimal, format_hashrate, iso_timestamp
from ..core.model import PoolStats, PoolStatus
from ..core.type_aliases import IsoTimestamp, JsonDict, UrlString

DEFAULT_TIMEOUT_SECONDS = 10.0

type PoolResponse = JsonDict | None


def _field(response: PoolResponse, name: str) -> Any:
    if isinstance(response, dict):
        return response.get(name)
    return None


def _miner_entries(miner_stats: PoolResponse) -> list[JsonDict]:
    miners = _field(miner_stats, "miners")
    if isinstance(miners, list):
        return [miner for miner in miners if isinstance(miner, dict)]
    return []


def _miner_count(miner_stats: PoolResponse) -> int:
    miners = _field(miner_stats, "miners")
    if isinstance(miners, list):
        return len(miners)
    if isinstance(miners, int | float):
        return int(miners)
    return 0


def last_share_time(miner_stats: PoolResponse) -> IsoTimestamp:
    """Latest miner share time, or now when no miner reported one."""
    share_times = [
        float(miner.get("last_share_time") or 0)
        for miner in _miner_entries(miner_stats)
    ]
    latest = max(share_times, default=0.0)
    if latest > 0:
        return iso_timestamp(latest)
    return iso_timestamp()


def merge_pool_stats(
    pool_stats: PoolResponse,
    miner_stats: PoolResponse,
    network_stats: PoolResponse,
) -> PoolStats:
    """Merge the three partial pool responses into one snapshot.

    Each field walks an ordered fallback chain across the responses; falsy
    values fall through to the next candidate.
    """
    pool_hashrate = _field(pool_stats, "pool_hashrate") or 0
    network_hashrate = (
        _field(network_stats, "network_hashrate")
        or _field(pool_stats, "network_hashrate")
        or 0
    )
    live_hashrate = _field(pool_stats, "live_hashrate") or pool_hashrate
    miners = _miner_count(miner_stats) or _field(pool_stats, "miners") or 0
    workers = _field(miner_stats, "workers") or _field(pool_stats, "workers") or 0

    return PoolStats(
        status=PoolStatus.ACTIVE if pool_stats is not None else PoolStatus.INACTIVE,
        pool_hashrate=format_hashrate(pool_hashrate),
        network_hashrate=format_hashrate(network_hashrate),
        live_hashrate=format_hashrate(live_hashrate),
        miners=miners,
        workers=workers,
        shares=_field(pool_stats, "shares") or 0,
        last_share_time=last_share_time(miner_stats),
        uptime=_field(pool_stats, "uptime") or 0,
        pool_fee=_field(pool_stats, "pool_fee") or 0,
        min_payout=atomic_to_decimal(_field(pool_stats, "min_payout") or "0"),
        total_paid=atomic_to_decimal(_field(pool_stats, "total_paid") or "0"),
        average_effort=_field(pool_stats, "average_effort") or 0,
        current_effort=_field(pool_stats, "current_effort") or 0,
    )


async def _or_none(request: Awaitable[JsonDict]) -> PoolResponse:
    try:
        return await request
    except Exception:
        # already logged by _get
        return None


class P2PoolClient:
    def __init__(
        self,
        api_url: UrlString,
        username: str = "",
        password: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self._auth = (
            aiohttp.BasicAuth(username, password) if username and password else None
        )
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @classmethod
    def from_settings(cls, settings: MoneroMeshSettings) -> P2PoolClient:
        return cls(
            settings.p2pool_rpc_url,
            settings.p2pool_rpc_username,
            settings.p2pool_rpc_password,
            timeout=settings.request_timeout,
        )

    async def _get(self, path: str, description: str) -> JsonDict:
        url = f"{self.api_url}{path}"
        try:
            async with (
                aiohttp.ClientSession(auth=self._auth, timeout=self._timeout) as session,
                session.get(url) as response,
            ):
                if not 200 <= response.status < 300:
                    raise HttpStatusError(path, response.status, response.reason or "")
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise HttpPayloadError(path, f"Malformed JSON from {path}: {e}") from e
        except (HttpStatusError, HttpPayloadError) as e:
            logger.error(f"Failed to get P2Pool {description}: {e}")
            raise
        except (aiohttp.ClientError, TimeoutError) as e:
            error = HttpTransportError(
                path, f"Request to {path} failed: {str(e) or type(e).__name__}"
            )
            logger.error(f"Failed to get P2Pool {description}: {error}")
            raise error from e

    async def get_pool_stats(self) -> JsonDict:
        return await self._get("/stats", "stats")

    async def get_miner_stats(self) -> JsonDict:
        return await self._get("/miners", "miner stats")

    async def get_network_stats(self) -> JsonDict:
        return await self._get("/network", "network stats")

    async def get_stats(self) -> PoolStats:
        try:
            pool_stats, miner_stats, network_stats = await asyncio.gather(
                _or_none(self.get_pool_stats()),
                _or_none(self.get_miner_stats()),
                _or_none(self.get_network_stats()),
            )
            return merge_pool_stats(pool_stats, miner_stats, network_stats)
        except Exception as e:
            logger.error(f"Failed to get P2Pool stats: {e}")
            return PoolStats.inactive()

    async def test_connection(self) -> bool:
        try:
            await self.get_pool_stats()
            return True
        except Exception:
            return False

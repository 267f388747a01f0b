"""
Typed client for the monerod JSON-RPC interface.

Leaf accessors come in two flavors: ``fetch_*`` methods return an
``Outcome`` that records success or the failure reason, and ``get_*``
methods collapse that outcome to a documented default. ``get_stats`` consumes
the outcomes directly and decides how failures shape the snapshot.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
from loguru import logger

from ..config import MoneroMeshSettings
from ..core.errors import InsufficientDataError, RpcResponseError, RpcTransportError
from ..core.formatting import atomic_to_decimal, format_hashrate, iso_timestamp
from ..core.model import (
    TARGET_BLOCK_TIME,
    BlockSample,
    DaemonStats,
    DaemonStatus,
    HashrateEstimate,
    HashrateMethod,
    LastBlockInfo,
)
from ..core.outcome import Failure, Outcome, capture
from ..core.type_aliases import (
    BlockHeight,
    DecimalString,
    Difficulty,
    FormattedHashrate,
    JsonDict,
    RpcMethod,
    UrlString,
)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_HASHRATE_BLOCK_COUNT = 10


def weighted_hashrate(samples: list[BlockSample]) -> float:
    """Recency-weighted mean of per-interval hashrates.

    ``samples`` are ordered newest first. Interval ``i`` (between sample ``i``
    and ``i + 1``) contributes ``difficulty / delta`` with weight ``1/(i+1)``.
    Intervals with a non-positive timestamp delta are skipped.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for index in range(len(samples) - 1):
        newer = samples[index]
        older = samples[index + 1]
        delta = newer.timestamp - older.timestamp
        if delta <= 0:
            continue
        weight = 1.0 / (index + 1)
        weighted_sum += (newer.difficulty / delta) * weight
        total_weight += weight

    if total_weight == 0:
        raise InsufficientDataError(0, 1, unit="usable block interval")
    return weighted_sum / total_weight


def time_based_hashrate(samples: list[BlockSample]) -> float:
    """Mean difficulty over the span between oldest and newest sample."""
    if not samples:
        return 0.0
    span = samples[0].timestamp - samples[-1].timestamp
    if span <= 0:
        return 0.0
    average_difficulty = sum(s.difficulty for s in samples) / len(samples)
    return average_difficulty / span


class MonerodClient:
    def __init__(
        self,
        rpc_url: UrlString,
        username: str = "",
        password: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        hashrate_block_count: int = DEFAULT_HASHRATE_BLOCK_COUNT,
    ) -> None:
        self.rpc_url = rpc_url
        self._auth = (
            aiohttp.BasicAuth(username, password) if username and password else None
        )
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self.hashrate_block_count = hashrate_block_count

    @classmethod
    def from_settings(cls, settings: MoneroMeshSettings) -> MonerodClient:
        return cls(
            settings.monerod_rpc_url,
            settings.monerod_rpc_username,
            settings.monerod_rpc_password,
            timeout=settings.request_timeout,
            hashrate_block_count=settings.hashrate_block_count,
        )

    async def rpc_call(self, method: RpcMethod, params: JsonDict | None = None) -> Any:
        """Issue one JSON-RPC call and return its ``result`` member."""
        payload = {
            "jsonrpc": "2.0",
            "id": "0",
            "method": method,
            "params": params or {},
        }
        try:
            async with (
                aiohttp.ClientSession(auth=self._auth, timeout=self._timeout) as session,
                session.post(self.rpc_url, json=payload) as response,
            ):
                if response.status >= 400:
                    raise RpcResponseError(
                        method, f"HTTP {response.status} {response.reason or ''}".strip()
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise RpcResponseError(method, f"malformed response: {e}") from e
        except (aiohttp.ClientError, TimeoutError) as e:
            error = RpcTransportError(
                method, f"RPC transport error for {method}: {str(e) or type(e).__name__}"
            )
            logger.error(f"Monerod RPC call failed for method {method}: {error}")
            raise error from e
        except RpcResponseError as e:
            logger.error(f"Monerod RPC call failed for method {method}: {e}")
            raise

        if not isinstance(data, dict):
            error = RpcResponseError(method, "malformed response: expected an object")
            logger.error(f"Monerod RPC call failed for method {method}: {error}")
            raise error

        if data.get("error"):
            rpc_error = data["error"]
            if isinstance(rpc_error, dict):
                error = RpcResponseError(
                    method, str(rpc_error.get("message", rpc_error)), rpc_error.get("code")
                )
            else:
                error = RpcResponseError(method, str(rpc_error))
            logger.error(f"Monerod RPC call failed for method {method}: {error}")
            raise error

        return data.get("result")

    # Raw accessors: raise on any failure

    async def _block_height(self) -> BlockHeight:
        result = await self.rpc_call("get_block_count")
        return int(result["count"])

    async def _difficulty(self) -> Difficulty:
        result = await self.rpc_call("get_difficulty")
        return result["difficulty"]

    async def _block_header(self, height: BlockHeight) -> JsonDict:
        result = await self.rpc_call("get_block", {"height": height})
        return result["block_header"]

    async def _last_block_info(self) -> LastBlockInfo:
        height = await self._block_height()
        header = await self._block_header(height - 1)
        return LastBlockInfo(
            timestamp=iso_timestamp(header["timestamp"]),
            reward=atomic_to_decimal(header["reward"]),
        )

    async def _total_supply(self) -> DecimalString:
        result = await self.rpc_call("get_supply")
        return atomic_to_decimal(result["total_supply"])

    async def _network_hashrate(self) -> FormattedHashrate:
        return format_hashrate(await self._difficulty() / TARGET_BLOCK_TIME)

    # Tagged accessors

    async def fetch_block_height(self) -> Outcome[BlockHeight]:
        return await capture(self._block_height(), "get block height")

    async def fetch_difficulty(self) -> Outcome[Difficulty]:
        return await capture(self._difficulty(), "get difficulty")

    async def fetch_network_hashrate(self) -> Outcome[FormattedHashrate]:
        return await capture(self._network_hashrate(), "get network hashrate")

    async def fetch_last_block_info(self) -> Outcome[LastBlockInfo]:
        return await capture(self._last_block_info(), "get last block info")

    async def fetch_total_supply(self) -> Outcome[DecimalString]:
        return await capture(self._total_supply(), "get total supply")

    # Defaulting accessors

    async def get_block_height(self) -> BlockHeight:
        return (await self.fetch_block_height()).value_or(0)

    async def get_difficulty(self) -> Difficulty:
        return (await self.fetch_difficulty()).value_or(0)

    async def get_network_hashrate(self) -> FormattedHashrate:
        return (await self.fetch_network_hashrate()).value_or("0 H/s")

    async def get_last_block_info(self) -> LastBlockInfo:
        outcome = await self.fetch_last_block_info()
        return outcome.value_or(LastBlockInfo(timestamp=iso_timestamp(), reward="0"))

    async def get_total_supply(self) -> DecimalString:
        return (await self.fetch_total_supply()).value_or("0")

    async def sample_blocks(self, block_count: int) -> list[BlockSample]:
        """Fetch up to ``block_count`` most recent block headers, newest first.

        Blocks are requested one at a time to bound the load on the daemon.
        """
        height = await self._block_height()
        samples: list[BlockSample] = []
        for offset in range(block_count):
            block_height = height - 1 - offset
            if block_height < 0:
                break
            header = await self._block_header(block_height)
            samples.append(
                BlockSample(
                    height=int(header.get("height", block_height)),
                    timestamp=int(header["timestamp"]),
                    difficulty=header["difficulty"],
                )
            )
        return samples

    async def calculate_network_hashrate(
        self, block_count: int | None = None
    ) -> HashrateEstimate:
        """Estimate network hashrate from recent block intervals.

        The recency-weighted estimator is authoritative. Any failure while
        sampling or estimating falls back to ``difficulty / 120``.
        """
        count = self.hashrate_block_count if block_count is None else block_count
        try:
            samples = await self.sample_blocks(count)
            if len(samples) < 2:
                raise InsufficientDataError(len(samples))

            simple = samples[0].difficulty / TARGET_BLOCK_TIME
            weighted = weighted_hashrate(samples)
            time_based = time_based_hashrate(samples)
            logger.debug(
                f"Hashrate estimates over {len(samples)} blocks: "
                f"simple={simple:.2f} weighted={weighted:.2f} "
                f"time_based={time_based:.2f}"
            )
            return HashrateEstimate(
                hashrate=format_hashrate(weighted),
                hashrate_number=weighted,
                method=HashrateMethod.WEIGHTED,
                simple=simple,
                weighted=weighted,
                time_based=time_based,
                blocks_sampled=len(samples),
            )
        except Exception as e:
            logger.warning(f"Weighted hashrate estimation failed, using difficulty: {e}")
            hashrate = await self.get_difficulty() / TARGET_BLOCK_TIME
            return HashrateEstimate(
                hashrate=format_hashrate(hashrate),
                hashrate_number=hashrate,
                method=HashrateMethod.DIFFICULTY_FALLBACK,
            )

    async def get_stats(self) -> DaemonStats:
        try:
            height, difficulty, last_block, supply = await asyncio.gather(
                self.fetch_block_height(),
                self.fetch_difficulty(),
                self.fetch_last_block_info(),
                self.fetch_total_supply(),
            )
            hashrate = await self.fetch_network_hashrate()

            outcomes = (height, difficulty, last_block, supply, hashrate)
            if all(isinstance(outcome, Failure) for outcome in outcomes):
                logger.error("Monerod unreachable, reporting disconnected snapshot")
                return DaemonStats.disconnected()

            block_height = height.value_or(0)
            total_supply = supply.value_or("0")
            block_info = last_block.value_or(
                LastBlockInfo(timestamp=iso_timestamp(), reward="0")
            )
            return DaemonStats(
                status=(
                    DaemonStatus.CONNECTED
                    if block_height > 0
                    else DaemonStatus.DISCONNECTED
                ),
                block_height=block_height,
                network_hashrate=hashrate.value_or("0 H/s"),
                difficulty=difficulty.value_or(0),
                last_block_time=block_info.timestamp,
                total_supply=total_supply,
                circulating_supply=total_supply,
                block_reward=block_info.reward,
            )
        except Exception as e:
            logger.error(f"Failed to get Monerod stats: {e}")
            return DaemonStats.disconnected()

    async def test_connection(self) -> bool:
        """Report whether the daemon answered a block-count call.

        A reachable daemon reporting height 0 still counts as connected.
        """
        outcome = await self.fetch_block_height()
        return outcome.ok

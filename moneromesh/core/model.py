"""
Statistics models exposed by MoneroMesh.

Every model is an immutable dataclass whose ``to_dict`` emits the camelCase
field names used by the HTTP API.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .formatting import iso_timestamp
from .type_aliases import (
    BlockHeight,
    DecimalString,
    Difficulty,
    DurationMilliseconds,
    DurationSeconds,
    EpochSeconds,
    FormattedHashrate,
    IsoTimestamp,
    JsonDict,
)

# Monero target block time in seconds
TARGET_BLOCK_TIME = 120


class DaemonStatus(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class PoolStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class HashrateMethod(Enum):
    """Estimator that produced a network hashrate figure."""

    WEIGHTED = "weighted"
    DIFFICULTY_FALLBACK = "difficulty_fallback"


@dataclass(frozen=True, slots=True)
class DaemonStats:
    status: DaemonStatus
    block_height: BlockHeight
    network_hashrate: FormattedHashrate
    difficulty: Difficulty
    last_block_time: IsoTimestamp
    total_supply: DecimalString
    circulating_supply: DecimalString
    block_reward: DecimalString
    average_block_time: int = TARGET_BLOCK_TIME

    @classmethod
    def disconnected(cls) -> DaemonStats:
        """Snapshot reported when the daemon cannot be polled at all."""
        return cls(
            status=DaemonStatus.DISCONNECTED,
            block_height=0,
            network_hashrate="0 H/s",
            difficulty=0,
            last_block_time=iso_timestamp(),
            total_supply="0",
            circulating_supply="0",
            block_reward="0",
        )

    def to_dict(self) -> JsonDict:
        return {
            "status": self.status.value,
            "blockHeight": self.block_height,
            "networkHashrate": self.network_hashrate,
            "difficulty": self.difficulty,
            "lastBlockTime": self.last_block_time,
            "totalSupply": self.total_supply,
            "circulatingSupply": self.circulating_supply,
            "blockReward": self.block_reward,
            "averageBlockTime": self.average_block_time,
        }


@dataclass(frozen=True, slots=True)
class PoolStats:
    status: PoolStatus
    pool_hashrate: FormattedHashrate
    network_hashrate: FormattedHashrate
    live_hashrate: FormattedHashrate
    miners: int
    workers: int
    shares: int
    last_share_time: IsoTimestamp
    uptime: float
    pool_fee: float
    min_payout: DecimalString
    total_paid: DecimalString
    average_effort: float
    current_effort: float

    @classmethod
    def inactive(cls) -> PoolStats:
        """Snapshot reported when the pool statistics cannot be merged."""
        return cls(
            status=PoolStatus.INACTIVE,
            pool_hashrate="0 H/s",
            network_hashrate="0 H/s",
            live_hashrate="0 H/s",
            miners=0,
            workers=0,
            shares=0,
            last_share_time=iso_timestamp(),
            uptime=0,
            pool_fee=0,
            min_payout="0",
            total_paid="0",
            average_effort=0,
            current_effort=0,
        )

    def to_dict(self) -> JsonDict:
        return {
            "status": self.status.value,
            "poolHashrate": self.pool_hashrate,
            "networkHashrate": self.network_hashrate,
            "liveHashrate": self.live_hashrate,
            "miners": self.miners,
            "workers": self.workers,
            "shares": self.shares,
            "lastShareTime": self.last_share_time,
            "uptime": self.uptime,
            "poolFee": self.pool_fee,
            "minPayout": self.min_payout,
            "totalPaid": self.total_paid,
            "averageEffort": self.average_effort,
            "currentEffort": self.current_effort,
        }


@dataclass(frozen=True, slots=True)
class MemoryUsage:
    """Process memory figures in whole megabytes."""

    used: int
    total: int
    external: int


@dataclass(frozen=True, slots=True)
class CpuUsage:
    """Cumulative process CPU time in microseconds."""

    user: int
    system: int


@dataclass(frozen=True, slots=True)
class SystemStats:
    uptime: DurationSeconds
    memory_usage: MemoryUsage
    cpu_usage: CpuUsage
    timestamp: IsoTimestamp

    def to_dict(self) -> JsonDict:
        return {
            "uptime": self.uptime,
            "memoryUsage": {
                "used": self.memory_usage.used,
                "total": self.memory_usage.total,
                "external": self.memory_usage.external,
            },
            "cpuUsage": {
                "user": self.cpu_usage.user,
                "system": self.cpu_usage.system,
            },
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class AggregatedStats:
    monerod: DaemonStats
    p2pool: PoolStats
    system: SystemStats
    last_updated: IsoTimestamp

    def to_dict(self) -> JsonDict:
        return {
            "monerod": self.monerod.to_dict(),
            "p2pool": self.p2pool.to_dict(),
            "system": self.system.to_dict(),
            "lastUpdated": self.last_updated,
        }


@dataclass(frozen=True, slots=True)
class BlockSample:
    height: BlockHeight
    timestamp: EpochSeconds
    difficulty: Difficulty


@dataclass(frozen=True, slots=True)
class LastBlockInfo:
    timestamp: IsoTimestamp
    reward: DecimalString


@dataclass(frozen=True, slots=True)
class HashrateEstimate:
    """Network hashrate estimate and the estimator that produced it.

    ``simple``, ``weighted`` and ``time_based`` carry the raw per-method
    figures when the block walk succeeded; they are ``None`` for fallbacks.
    """

    hashrate: FormattedHashrate
    hashrate_number: float
    method: HashrateMethod
    simple: float | None = None
    weighted: float | None = None
    time_based: float | None = None
    blocks_sampled: int = 0

    def to_dict(self) -> JsonDict:
        return {
            "hashrate": self.hashrate,
            "hashrateNumber": self.hashrate_number,
            "method": self.method.value,
            "simple": self.simple,
            "weighted": self.weighted,
            "timeBased": self.time_based,
            "blocksSampled": self.blocks_sampled,
        }


@dataclass(frozen=True, slots=True)
class CacheEntryStatus:
    age: DurationMilliseconds
    valid: bool

    def to_dict(self) -> JsonDict:
        return {"age": self.age, "valid": self.valid}


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    monerod: bool
    p2pool: bool

    def to_dict(self) -> JsonDict:
        return {"monerod": self.monerod, "p2pool": self.p2pool}

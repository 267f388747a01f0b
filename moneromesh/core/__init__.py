"""
MoneroMesh Core Module

Statistics models, display formatting, the error taxonomy, the TTL cache and
the aggregation service. Import ``StatsService`` from
``moneromesh.core.stats_service`` directly.
"""

from .errors import (
    HttpError,
    InsufficientDataError,
    MoneroMeshError,
    RpcError,
    TransportError,
    UpstreamProtocolError,
)
from .formatting import atomic_to_decimal, format_hashrate
from .model import (
    AggregatedStats,
    DaemonStats,
    HashrateEstimate,
    PoolStats,
    SystemStats,
)

__all__ = [
    "AggregatedStats",
    "DaemonStats",
    "HashrateEstimate",
    "HttpError",
    "InsufficientDataError",
    "MoneroMeshError",
    "PoolStats",
    "RpcError",
    "SystemStats",
    "TransportError",
    "UpstreamProtocolError",
    "atomic_to_decimal",
    "format_hashrate",
]

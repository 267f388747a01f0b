"""Upstream clients for monerod and P2Pool."""

from .daemon_client import MonerodClient
from .pool_client import P2PoolClient

__all__ = ["MonerodClient", "P2PoolClient"]

"""HTTP API for MoneroMesh statistics."""

from .http_api import StatsApi, create_stats_api

__all__ = ["StatsApi", "create_stats_api"]

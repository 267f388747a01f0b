"""
Tests for the MoneroMesh HTTP endpoints.

The API runs on an ephemeral port backed by a StatsService over stub sources,
and is exercised through a real aiohttp client.
"""

from collections.abc import AsyncGenerator
from typing import Any

import aiohttp
import pytest_asyncio

from moneromesh.config import MoneroMeshSettings
from moneromesh.core.stats_cache import StatsCache
from moneromesh.core.stats_service import StatsService
from moneromesh.server.http_api import StatsApi, create_stats_api
from tests.conftest import StubMetrics, StubSource, make_daemon_stats, make_pool_stats


class ApiHarness:
    def __init__(self, api: StatsApi, daemon: StubSource, pool: StubSource) -> None:
        self.api = api
        self.daemon = daemon
        self.pool = pool
        self.base_url = f"http://127.0.0.1:{api.port}"

    async def get(self, path: str) -> tuple[int, dict, Any]:
        async with (
            aiohttp.ClientSession() as session,
            session.get(f"{self.base_url}{path}") as response,
        ):
            return response.status, await response.json(), response.headers

    async def options(self, path: str) -> tuple[int, Any]:
        headers = {
            "Origin": "http://dashboard.example",
            "Access-Control-Request-Method": "POST",
        }
        async with (
            aiohttp.ClientSession() as session,
            session.options(f"{self.base_url}{path}", headers=headers) as response,
        ):
            return response.status, response.headers

    async def post(self, path: str) -> tuple[int, dict]:
        async with (
            aiohttp.ClientSession() as session,
            session.post(f"{self.base_url}{path}") as response,
        ):
            return response.status, await response.json()


@pytest_asyncio.fixture
async def harness(fake_clock) -> AsyncGenerator[ApiHarness, None]:
    daemon = StubSource(make_daemon_stats())
    pool = StubSource(make_pool_stats())
    service = StatsService(
        daemon,
        pool,
        metrics_provider=StubMetrics(),
        cache=StatsCache(clock=fake_clock),
    )
    settings = MoneroMeshSettings(host="127.0.0.1", port=0, node_env="test")
    api = create_stats_api(settings, service)
    await api.start()
    try:
        yield ApiHarness(api, daemon, pool)
    finally:
        await api.stop()


class TestHealthEndpoints:
    async def test_liveness(self, harness):
        status, body, _ = await harness.get("/health")

        assert status == 200
        assert body["status"] == "OK"
        assert body["uptime"] == 12.5
        assert body["timestamp"].endswith("Z")

    async def test_api_index(self, harness):
        status, body, _ = await harness.get("/api")

        assert status == 200
        assert body["message"] == "MoneroMesh API"
        assert body["endpoints"] == {"stats": "/api/stats", "health": "/api/health"}
        assert body["version"]

    async def test_detailed_health(self, harness):
        status, body, _ = await harness.get("/api/health")

        assert status == 200
        assert body["environment"] == "test"
        assert body["memory"] == {"used": 42, "total": 128, "external": 3}
        assert body["cpu"] == {"usage": {"user": 1_000, "system": 500}}

    async def test_ping(self, harness):
        status, body, _ = await harness.get("/api/health/ping")

        assert status == 200
        assert body["message"] == "pong"


class TestStatsEndpoints:
    async def test_aggregated_stats(self, harness):
        status, body, _ = await harness.get("/api/stats")

        assert status == 200
        assert body["success"] is True
        assert body["data"]["monerod"] == make_daemon_stats().to_dict()
        assert body["data"]["p2pool"] == make_pool_stats().to_dict()
        assert body["data"]["system"]["uptime"] == 12.5
        assert "lastUpdated" in body["data"]

    async def test_per_source_stats(self, harness):
        _, monerod, _ = await harness.get("/api/stats/monerod")
        _, p2pool, _ = await harness.get("/api/stats/p2pool")
        _, system, _ = await harness.get("/api/stats/system")

        assert monerod["data"]["status"] == "connected"
        assert monerod["data"]["blockHeight"] == 100
        assert p2pool["data"]["status"] == "active"
        assert p2pool["data"]["miners"] == 3
        assert system["data"]["cpuUsage"] == {"user": 1_000, "system": 500}

    async def test_cold_failure_returns_500(self, harness):
        harness.daemon.error = ConnectionError("daemon offline")

        status, body, _ = await harness.get("/api/stats")

        assert status == 500
        assert body == {
            "success": False,
            "error": "Failed to fetch stats",
            "message": "daemon offline",
        }

    async def test_monerod_failure_message(self, harness):
        harness.daemon.error = ConnectionError("daemon offline")

        status, body, _ = await harness.get("/api/stats/monerod")

        assert status == 500
        assert body["error"] == "Failed to fetch monerod stats"

    async def test_connections(self, harness):
        harness.pool.connected = False

        status, body, _ = await harness.get("/api/stats/connections")

        assert status == 200
        assert body == {"success": True, "data": {"monerod": True, "p2pool": False}}


class TestCacheEndpoints:
    async def test_status_then_clear(self, harness, fake_clock):
        await harness.get("/api/stats")
        fake_clock.advance(1_500)

        _, status_body, _ = await harness.get("/api/stats/cache")
        assert status_body["data"] == {
            "monerod": {"age": 1_500, "valid": True},
            "p2pool": {"age": 1_500, "valid": True},
        }

        status, cleared = await harness.post("/api/stats/cache/clear")
        assert status == 200
        assert cleared == {"success": True, "message": "Cache cleared successfully"}

        _, status_body, _ = await harness.get("/api/stats/cache")
        assert status_body["data"] == {}

    async def test_statistics_count_hits_and_misses(self, harness):
        await harness.get("/api/stats")
        await harness.get("/api/stats")

        status, body, _ = await harness.get("/api/stats/cache/statistics")

        assert status == 200
        assert body["data"] == {
            "hits": 2,
            "misses": 2,
            "staleServed": 0,
            "fetchFailures": 0,
            "hitRate": 0.5,
        }

        await harness.post("/api/stats/cache/clear")
        _, body, _ = await harness.get("/api/stats/cache/statistics")
        assert body["data"]["hits"] == 0
        assert body["data"]["misses"] == 0

    async def test_age_is_whole_milliseconds(self, harness, fake_clock):
        await harness.get("/api/stats/monerod")
        fake_clock.advance(1_234.6)

        _, body, _ = await harness.get("/api/stats/cache")

        assert body["data"]["monerod"] == {"age": 1_235, "valid": True}

    async def test_cached_stats_are_reused(self, harness):
        await harness.get("/api/stats")
        await harness.get("/api/stats")

        assert harness.daemon.calls == 1
        assert harness.pool.calls == 1


class TestMiddleware:
    async def test_unknown_route_returns_json_404(self, harness):
        status, body, _ = await harness.get("/api/unknown?x=1")

        assert status == 404
        assert body == {"error": "Route not found", "path": "/api/unknown?x=1"}

    async def test_cors_and_security_headers(self, harness):
        _, _, headers = await harness.get("/health")

        assert headers["Access-Control-Allow-Origin"] == "*"
        assert headers["X-Content-Type-Options"] == "nosniff"
        assert headers["X-Frame-Options"] == "SAMEORIGIN"

    async def test_preflight_is_answered_with_cors_headers(self, harness):
        status, headers = await harness.options("/api/stats/cache/clear")

        assert status == 204
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert "POST" in headers["Access-Control-Allow-Methods"]

    async def test_wrong_method_returns_json_404(self, harness):
        status, body, headers = await harness.get("/api/stats/cache/clear")

        assert status == 404
        assert body == {
            "error": "Route not found",
            "path": "/api/stats/cache/clear",
        }
        assert headers["Access-Control-Allow-Origin"] == "*"

    async def test_not_found_also_carries_headers(self, harness):
        _, _, headers = await harness.get("/missing")

        assert headers["Access-Control-Allow-Origin"] == "*"


async def test_start_resolves_ephemeral_port():
    service = StatsService(
        StubSource(make_daemon_stats()),
        StubSource(make_pool_stats()),
        metrics_provider=StubMetrics(),
    )
    api = create_stats_api(MoneroMeshSettings(host="127.0.0.1", port=0), service)

    await api.start()
    try:
        assert api.port is not None
        assert api.port > 0
    finally:
        await api.stop()

    assert api.runner is None
    assert api.site is None

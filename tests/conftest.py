"""Pytest configuration and fixtures for MoneroMesh testing.

Upstreams are faked with real aiohttp applications served on ephemeral ports,
so the clients exercise their actual HTTP and JSON-RPC code paths. All
servers are torn down by ``UpstreamTestContext`` when a test finishes.
"""

import base64
import socket
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from loguru import logger

from moneromesh.client.daemon_client import MonerodClient
from moneromesh.client.pool_client import P2PoolClient
from moneromesh.core.formatting import iso_timestamp
from moneromesh.core.model import (
    CpuUsage,
    DaemonStats,
    DaemonStatus,
    MemoryUsage,
    PoolStats,
    PoolStatus,
    SystemStats,
)

GENESIS_TIMESTAMP = 1_700_000_000
DEFAULT_DIFFICULTY = 1_200_000


class UpstreamTestContext:
    """Context manager that serves aiohttp apps and cleans them up."""

    def __init__(self) -> None:
        self.runners: list[web.AppRunner] = []

    async def __aenter__(self) -> "UpstreamTestContext":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for runner in self.runners:
            try:
                await runner.cleanup()
            except Exception as e:
                logger.warning(f"Error cleaning up fake upstream: {e}")
        self.runners.clear()

    async def serve(self, app: web.Application) -> str:
        """Serve ``app`` on an ephemeral localhost port and return its base URL."""
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, host="127.0.0.1", port=0)
        await site.start()
        self.runners.append(runner)
        port = site._server.sockets[0].getsockname()[1]
        return f"http://127.0.0.1:{port}"


def _basic_auth_ok(request: web.Request, credentials: tuple[str, str] | None) -> bool:
    if credentials is None:
        return True
    expected = base64.b64encode(":".join(credentials).encode()).decode()
    return request.headers.get("Authorization") == f"Basic {expected}"


class FakeMonerod:
    """In-memory monerod answering the JSON-RPC methods MoneroMesh consumes."""

    def __init__(self) -> None:
        self.height = 100
        self.difficulty = DEFAULT_DIFFICULTY
        self.total_supply = 18_000_000 * 10**12
        self.blocks: dict[int, dict[str, Any]] = {}
        self.failing: set[str] = set()
        self.http_status: int | None = None
        self.credentials: tuple[str, str] | None = None
        self.calls: list[str] = []
        self.url = ""
        self.app = web.Application()
        self.app.router.add_post("/json_rpc", self._handle)

    def build_chain(
        self,
        height: int,
        *,
        interval: int = 120,
        difficulty: int = DEFAULT_DIFFICULTY,
        reward: int = 600_000_000_000,
    ) -> None:
        """Populate blocks ``0..height-1`` with evenly spaced timestamps."""
        self.height = height
        self.blocks = {
            h: {
                "height": h,
                "timestamp": GENESIS_TIMESTAMP + h * interval,
                "difficulty": difficulty,
                "reward": reward,
            }
            for h in range(height)
        }

    def _error(self, message: str) -> web.Response:
        return web.json_response(
            {"jsonrpc": "2.0", "id": "0", "error": {"code": -1, "message": message}}
        )

    async def _handle(self, request: web.Request) -> web.Response:
        if not _basic_auth_ok(request, self.credentials):
            return web.Response(status=401, reason="Unauthorized")
        if self.http_status is not None:
            return web.Response(status=self.http_status)

        body = await request.json()
        method = body["method"]
        params = body.get("params") or {}
        self.calls.append(method)

        if method in self.failing:
            return self._error(f"{method} unavailable")

        if method == "get_block_count":
            result: dict[str, Any] = {"count": self.height, "status": "OK"}
        elif method == "get_difficulty":
            result = {"difficulty": self.difficulty, "status": "OK"}
        elif method == "get_supply":
            result = {"total_supply": self.total_supply, "status": "OK"}
        elif method == "get_block":
            header = self.blocks.get(params.get("height"))
            if header is None:
                return self._error(f"Block at height {params.get('height')} not found")
            result = {"block_header": header, "status": "OK"}
        else:
            return self._error(f"Method not found: {method}")

        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": result})


class FakeP2Pool:
    """In-memory P2Pool stats API with per-endpoint failure injection."""

    def __init__(self) -> None:
        self.payloads: dict[str, Any] = {
            "/stats": {},
            "/miners": {},
            "/network": {},
        }
        self.failing: set[str] = set()
        self.credentials: tuple[str, str] | None = None
        self.url = ""
        self.app = web.Application()
        for path in self.payloads:
            self.app.router.add_get(path, self._handle)

    async def _handle(self, request: web.Request) -> web.Response:
        if not _basic_auth_ok(request, self.credentials):
            return web.Response(status=401, reason="Unauthorized")
        if request.path in self.failing:
            return web.json_response({"error": "unavailable"}, status=500)
        return web.json_response(self.payloads[request.path])


class StubSource:
    """Stand-in for an upstream client inside ``StatsService``."""

    def __init__(self, stats: Any, *, connected: bool = True) -> None:
        self.stats = stats
        self.connected = connected
        self.error: Exception | None = None
        self.connection_error: Exception | None = None
        self.calls = 0

    async def get_stats(self) -> Any:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.stats

    async def test_connection(self) -> bool:
        if self.connection_error is not None:
            raise self.connection_error
        return self.connected


class StubMetrics:
    def __init__(self) -> None:
        self.calls = 0

    def snapshot(self) -> SystemStats:
        self.calls += 1
        return SystemStats(
            uptime=12.5,
            memory_usage=MemoryUsage(used=42, total=128, external=3),
            cpu_usage=CpuUsage(user=1_000, system=500),
            timestamp=iso_timestamp(),
        )


class FakeClock:
    """Millisecond clock advanced explicitly by tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, milliseconds: float) -> None:
        self.now += milliseconds


def make_daemon_stats(block_height: int = 100) -> DaemonStats:
    return DaemonStats(
        status=DaemonStatus.CONNECTED if block_height > 0 else DaemonStatus.DISCONNECTED,
        block_height=block_height,
        network_hashrate="10.00 KH/s",
        difficulty=DEFAULT_DIFFICULTY,
        last_block_time=iso_timestamp(GENESIS_TIMESTAMP),
        total_supply="18000000.000000000000",
        circulating_supply="18000000.000000000000",
        block_reward="0.600000000000",
    )


def make_pool_stats(miners: int = 3) -> PoolStats:
    return PoolStats(
        status=PoolStatus.ACTIVE,
        pool_hashrate="1.50 MH/s",
        network_hashrate="2.50 GH/s",
        live_hashrate="1.50 MH/s",
        miners=miners,
        workers=5,
        shares=40,
        last_share_time=iso_timestamp(GENESIS_TIMESTAMP),
        uptime=3600,
        pool_fee=0,
        min_payout="0.000300000000",
        total_paid="2.000000000000",
        average_effort=98.5,
        current_effort=42.1,
    )


@pytest_asyncio.fixture
async def upstream_context() -> AsyncGenerator[UpstreamTestContext, None]:
    """Provides a clean upstream context with automatic server cleanup."""
    async with UpstreamTestContext() as ctx:
        yield ctx


@pytest_asyncio.fixture
async def fake_monerod(upstream_context: UpstreamTestContext) -> FakeMonerod:
    fake = FakeMonerod()
    fake.build_chain(100)
    fake.url = f"{await upstream_context.serve(fake.app)}/json_rpc"
    return fake


@pytest_asyncio.fixture
async def fake_p2pool(upstream_context: UpstreamTestContext) -> FakeP2Pool:
    fake = FakeP2Pool()
    fake.url = await upstream_context.serve(fake.app)
    return fake


@pytest.fixture
def unreachable_url() -> str:
    """URL of a localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}"


@pytest.fixture
def monerod_client(fake_monerod: FakeMonerod) -> MonerodClient:
    return MonerodClient(fake_monerod.url, timeout=5.0)


@pytest.fixture
def p2pool_client(fake_p2pool: FakeP2Pool) -> P2PoolClient:
    return P2PoolClient(fake_p2pool.url, timeout=5.0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def log_messages() -> Any:
    """Collect loguru messages at WARNING and above."""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="WARNING")
    yield messages
    logger.remove(handler_id)

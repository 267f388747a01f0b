"""
HTTP endpoints for MoneroMesh statistics.

Thin request/response mapping over ``StatsService``:

- ``/health``                    liveness probe
- ``/api``                       API index
- ``/api/health``                detailed health with process metrics
- ``/api/health/ping``           ping
- ``/api/stats``                 aggregated daemon, pool and system stats
- ``/api/stats/monerod``         daemon stats
- ``/api/stats/p2pool``          pool stats
- ``/api/stats/system``          process stats
- ``/api/stats/connections``     upstream connectivity
- ``/api/stats/cache``           cache ages and validity
- ``/api/stats/cache/statistics`` cache hit, miss and stale counters
- ``/api/stats/cache/clear``     (POST) drop all cached stats
"""

from __future__ import annotations

import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError, version
from typing import Any

from aiohttp import web
from loguru import logger

from ..config import MoneroMeshSettings
from ..core.formatting import iso_timestamp
from ..core.stats_service import StatsService
from ..core.type_aliases import JsonDict

type Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

API_NAME = "MoneroMesh API"


def _package_version() -> str:
    try:
        return version("moneromesh")
    except PackageNotFoundError:
        return "1.0.0"


def _success(data: Any) -> web.Response:
    return web.json_response({"success": True, "data": data})


def _failure(message: str, error: Exception) -> web.Response:
    return web.json_response(
        {"success": False, "error": message, "message": str(error)}, status=500
    )


@dataclass(slots=True)
class StatsApi:
    """aiohttp application exposing statistics from a ``StatsService``."""

    settings: MoneroMeshSettings
    stats_service: StatsService

    app: web.Application = field(init=False)
    runner: web.AppRunner | None = field(default=None, init=False)
    site: web.TCPSite | None = field(default=None, init=False)
    port: int | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.app = web.Application()
        self._setup_routes()
        self._setup_middleware()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/health", self._get_liveness)

        self.app.router.add_get("/api", self._get_index)
        self.app.router.add_get("/api/health", self._get_health)
        self.app.router.add_get("/api/health/ping", self._get_ping)

        self.app.router.add_get("/api/stats", self._get_all_stats)
        self.app.router.add_get("/api/stats/monerod", self._get_monerod_stats)
        self.app.router.add_get("/api/stats/p2pool", self._get_p2pool_stats)
        self.app.router.add_get("/api/stats/system", self._get_system_stats)
        self.app.router.add_get("/api/stats/connections", self._get_connections)
        self.app.router.add_get("/api/stats/cache", self._get_cache_status)
        self.app.router.add_get(
            "/api/stats/cache/statistics", self._get_cache_statistics
        )
        self.app.router.add_post("/api/stats/cache/clear", self._clear_cache)

    def _setup_middleware(self) -> None:
        @web.middleware
        async def headers_middleware(
            request: web.Request, handler: Handler
        ) -> web.StreamResponse:
            """Attach CORS and basic hardening headers, answering preflights."""
            if request.method == "OPTIONS":
                response: web.StreamResponse = web.Response(status=204)
            else:
                response = await handler(request)
            response.headers["Access-Control-Allow-Origin"] = "*"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "SAMEORIGIN"
            response.headers["Referrer-Policy"] = "no-referrer"
            return response

        @web.middleware
        async def not_found_middleware(
            request: web.Request, handler: Handler
        ) -> web.StreamResponse:
            try:
                return await handler(request)
            except (web.HTTPNotFound, web.HTTPMethodNotAllowed):
                return web.json_response(
                    {"error": "Route not found", "path": request.path_qs}, status=404
                )

        self.app.middlewares.append(headers_middleware)
        self.app.middlewares.append(not_found_middleware)

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(
            self.runner, host=self.settings.host, port=self.settings.port
        )
        await self.site.start()

        self.port = self.settings.port
        server = self.site._server
        if server is not None and getattr(server, "sockets", None):
            self.port = server.sockets[0].getsockname()[1]

        logger.info(f"Server running on http://{self.settings.host}:{self.port}")
        logger.info(f"Health check: http://{self.settings.host}:{self.port}/health")
        logger.info(f"API endpoints: http://{self.settings.host}:{self.port}/api")

    async def stop(self) -> None:
        if self.site:
            await self.site.stop()
            self.site = None
        if self.runner:
            with contextlib.suppress(AttributeError):
                await self.runner.cleanup()
            self.runner = None
        logger.debug("Stats API server stopped")

    # Health endpoints

    async def _get_liveness(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "OK",
                "timestamp": iso_timestamp(),
                "uptime": self.stats_service.get_system_stats().uptime,
            }
        )

    async def _get_index(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "message": API_NAME,
                "version": _package_version(),
                "endpoints": {"stats": "/api/stats", "health": "/api/health"},
            }
        )

    async def _get_health(self, request: web.Request) -> web.Response:
        system = self.stats_service.get_system_stats().to_dict()
        body: JsonDict = {
            "status": "OK",
            "timestamp": iso_timestamp(),
            "uptime": system["uptime"],
            "environment": self.settings.node_env,
            "version": _package_version(),
            "memory": system["memoryUsage"],
            "cpu": {"usage": system["cpuUsage"]},
        }
        return web.json_response(body)

    async def _get_ping(self, request: web.Request) -> web.Response:
        return web.json_response({"message": "pong", "timestamp": iso_timestamp()})

    # Stats endpoints

    async def _get_all_stats(self, request: web.Request) -> web.Response:
        try:
            stats = await self.stats_service.get_all_stats()
            return _success(stats.to_dict())
        except Exception as e:
            logger.error(f"Failed to fetch all stats: {e}")
            return _failure("Failed to fetch stats", e)

    async def _get_monerod_stats(self, request: web.Request) -> web.Response:
        try:
            stats = await self.stats_service.get_monerod_stats()
            return _success(stats.to_dict())
        except Exception as e:
            logger.error(f"Failed to fetch monerod stats: {e}")
            return _failure("Failed to fetch monerod stats", e)

    async def _get_p2pool_stats(self, request: web.Request) -> web.Response:
        try:
            stats = await self.stats_service.get_p2pool_stats()
            return _success(stats.to_dict())
        except Exception as e:
            logger.error(f"Failed to fetch p2pool stats: {e}")
            return _failure("Failed to fetch p2pool stats", e)

    async def _get_system_stats(self, request: web.Request) -> web.Response:
        try:
            return _success(self.stats_service.get_system_stats().to_dict())
        except Exception as e:
            logger.error(f"Failed to fetch system stats: {e}")
            return _failure("Failed to fetch system stats", e)

    async def _get_connections(self, request: web.Request) -> web.Response:
        try:
            connections = await self.stats_service.test_connections()
            return _success(connections.to_dict())
        except Exception as e:
            logger.error(f"Failed to test connections: {e}")
            return _failure("Failed to test connections", e)

    async def _get_cache_status(self, request: web.Request) -> web.Response:
        status = self.stats_service.get_cache_status()
        return _success({key: entry.to_dict() for key, entry in status.items()})

    async def _get_cache_statistics(self, request: web.Request) -> web.Response:
        return _success(self.stats_service.get_cache_statistics().to_dict())

    async def _clear_cache(self, request: web.Request) -> web.Response:
        self.stats_service.clear_cache()
        return web.json_response(
            {"success": True, "message": "Cache cleared successfully"}
        )


def create_stats_api(
    settings: MoneroMeshSettings, stats_service: StatsService | None = None
) -> StatsApi:
    """Build a ``StatsApi`` wired to real upstream clients unless one is given."""
    return StatsApi(
        settings=settings,
        stats_service=stats_service or StatsService.from_settings(settings),
    )

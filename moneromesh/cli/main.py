#!/usr/bin/env python3
"""
Main CLI entry point for MoneroMesh.

- ``serve``: run the statistics HTTP API
- ``stats``: one-shot fetch of daemon, pool or process statistics
- ``check``: test connectivity to monerod and P2Pool
"""

import asyncio
import contextlib
import json
import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from ..config import MoneroMeshSettings
from ..core.logging import configure_logging, parse_debug_scopes
from ..core.stats_service import StatsService
from ..server.http_api import create_stats_api

console = Console()

STAT_SOURCES = ("all", "monerod", "p2pool", "system")


def _status_style(value: str) -> str:
    return {
        "connected": "[green]🟢 connected[/green]",
        "active": "[green]🟢 active[/green]",
        "disconnected": "[red]🔴 disconnected[/red]",
        "inactive": "[red]🔴 inactive[/red]",
    }.get(value, value)


def _flatten(prefix: str, value: Any, rows: list[tuple[str, str]]) -> None:
    if isinstance(value, dict):
        for key, nested in value.items():
            _flatten(f"{prefix}.{key}" if prefix else key, nested, rows)
    else:
        rows.append((prefix, str(value)))


def display_stats_table(title: str, data: dict[str, Any]) -> None:
    """Render a statistics mapping as a two-column rich table."""
    table = Table(title=title)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")

    rows: list[tuple[str, str]] = []
    _flatten("", data, rows)
    for field_name, value in rows:
        if field_name.endswith("status"):
            value = _status_style(value)
        table.add_row(field_name, value)

    console.print(table)


async def fetch_stats(service: StatsService, source: str) -> dict[str, Any]:
    if source == "monerod":
        return (await service.get_monerod_stats()).to_dict()
    if source == "p2pool":
        return (await service.get_p2pool_stats()).to_dict()
    if source == "system":
        return service.get_system_stats().to_dict()
    return (await service.get_all_stats()).to_dict()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--debug-scope",
    "debug_scopes",
    multiple=True,
    help="Log this module scope at DEBUG (repeatable, e.g. client.daemon_client)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug_scopes: tuple[str, ...]) -> None:
    """
    MoneroMesh statistics backend.

    Polls a monerod node and a P2Pool instance and serves normalized,
    briefly cached statistics over HTTP.
    """
    settings = MoneroMeshSettings()
    configure_logging(
        "DEBUG" if verbose else settings.log_level,
        debug_scopes=(*parse_debug_scopes(settings.log_debug_scopes), *debug_scopes),
        colorize=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["settings"] = settings


@cli.command()
@click.option("--host", help="Override the listen address")
@click.option("--port", "-p", type=int, help="Override the listen port")
@click.option(
    "--single-flight",
    is_flag=True,
    help="Share one upstream fetch between concurrent cache misses",
)
@click.pass_context
def serve(
    ctx: click.Context, host: str | None, port: int | None, single_flight: bool
) -> None:
    """Run the statistics HTTP API until interrupted."""
    settings: MoneroMeshSettings = ctx.obj["settings"]
    overrides: dict[str, Any] = {}
    if host:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if overrides:
        settings = settings.model_copy(update=overrides)

    async def _serve() -> None:
        api = create_stats_api(
            settings, StatsService.from_settings(settings, single_flight=single_flight)
        )
        await api.start()
        try:
            await asyncio.Event().wait()
        finally:
            await api.stop()

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve())


@cli.command()
@click.option(
    "--source",
    "-s",
    type=click.Choice(STAT_SOURCES),
    default="all",
    help="Statistics to fetch",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def stats(ctx: click.Context, source: str, output: str) -> None:
    """Fetch statistics once and print them."""
    settings: MoneroMeshSettings = ctx.obj["settings"]

    async def _stats() -> dict[str, Any]:
        return await fetch_stats(StatsService.from_settings(settings), source)

    try:
        data = asyncio.run(_stats())
    except Exception as e:
        console.print(f"[red]❌ Failed to fetch {source} stats: {e}[/red]")
        sys.exit(1)

    if output == "json":
        console.print(json.dumps(data, indent=2))
    elif source == "all":
        for section in ("monerod", "p2pool", "system"):
            display_stats_table(f"📊 {section}", data[section])
        console.print(f"Last updated: {data['lastUpdated']}")
    else:
        display_stats_table(f"📊 {source}", data)


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Test connectivity to monerod and P2Pool."""
    settings: MoneroMeshSettings = ctx.obj["settings"]

    async def _check() -> dict[str, bool]:
        service = StatsService.from_settings(settings)
        return (await service.test_connections()).to_dict()

    connections = asyncio.run(_check())
    for name, connected in connections.items():
        marker = "[green]✅ reachable[/green]" if connected else "[red]❌ unreachable[/red]"
        console.print(f"{name}: {marker}")

    if not all(connections.values()):
        sys.exit(1)


def main():
    """Main CLI entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️ Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]❌ Unexpected error: {e}[/red]")
        if "--verbose" in sys.argv or "-v" in sys.argv:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()

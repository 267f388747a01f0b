"""
Loguru setup for MoneroMesh.

The process logs to stderr at one configured level. Selected module scopes,
such as ``client.daemon_client``, can additionally be opened up to DEBUG
without lowering the level for everything else.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

PACKAGE_NAME = "moneromesh"

DEFAULT_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"
)


def parse_debug_scopes(raw: str | Iterable[str]) -> tuple[str, ...]:
    """Normalize debug scopes to fully qualified module prefixes.

    Accepts a comma-separated string or an iterable of names. Blank entries
    are dropped, duplicates collapse, and names outside the package gain the
    ``moneromesh.`` prefix.
    """
    items = raw.split(",") if isinstance(raw, str) else raw
    scopes: list[str] = []
    for item in items:
        scope = item.strip()
        if not scope:
            continue
        if scope != PACKAGE_NAME and not scope.startswith(f"{PACKAGE_NAME}."):
            scope = f"{PACKAGE_NAME}.{scope}"
        if scope not in scopes:
            scopes.append(scope)
    return tuple(scopes)


@dataclass(frozen=True, slots=True)
class ScopedDebugFilter:
    """Pass DEBUG records emitted from one of ``scopes`` or their submodules."""

    scopes: tuple[str, ...]

    def matches(self, module_name: str) -> bool:
        return any(
            module_name == scope or module_name.startswith(f"{scope}.")
            for scope in self.scopes
        )

    def __call__(self, record: dict[str, Any]) -> bool:
        if record["level"].name != "DEBUG":
            return False
        return self.matches(record["name"] or "")


def configure_logging(
    level: str,
    *,
    debug_scopes: str | Iterable[str] = (),
    colorize: bool = False,
) -> tuple[int, ...]:
    """Replace all loguru handlers and return the ids of the new ones."""
    logger.remove()
    level = level.upper()
    handler_ids = [
        logger.add(sys.stderr, level=level, format=DEFAULT_LOG_FORMAT, colorize=colorize)
    ]

    scopes = parse_debug_scopes(debug_scopes)
    if scopes and level != "DEBUG":
        handler_ids.append(
            logger.add(
                sys.stderr,
                level="DEBUG",
                format=DEFAULT_LOG_FORMAT,
                colorize=colorize,
                filter=ScopedDebugFilter(scopes),
            )
        )
    return tuple(handler_ids)

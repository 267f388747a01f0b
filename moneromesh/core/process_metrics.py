from __future__ import annotations

import time
from typing import Protocol

import psutil

from .formatting import iso_timestamp
from .model import CpuUsage, MemoryUsage, SystemStats

_BYTES_PER_MB = 1024 * 1024


class ProcessMetricsProvider(Protocol):
    """Source of local process metrics for system statistics."""

    def snapshot(self) -> SystemStats: ...


class PsutilProcessMetrics:
    """Process metrics for the running interpreter, read through psutil.

    ``used`` is the resident set size, ``total`` the virtual memory size and
    ``external`` shared memory where the platform reports it.
    """

    def __init__(self, process: psutil.Process | None = None) -> None:
        self._process = process or psutil.Process()

    def snapshot(self) -> SystemStats:
        with self._process.oneshot():
            memory = self._process.memory_info()
            cpu = self._process.cpu_times()
            started = self._process.create_time()

        return SystemStats(
            uptime=max(time.time() - started, 0.0),
            memory_usage=MemoryUsage(
                used=round(memory.rss / _BYTES_PER_MB),
                total=round(memory.vms / _BYTES_PER_MB),
                external=round(getattr(memory, "shared", 0) / _BYTES_PER_MB),
            ),
            cpu_usage=CpuUsage(
                user=int(cpu.user * 1_000_000),
                system=int(cpu.system * 1_000_000),
            ),
            timestamp=iso_timestamp(),
        )

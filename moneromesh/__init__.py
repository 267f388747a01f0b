"""
MoneroMesh - Monero node and P2Pool statistics backend

Polls a monerod daemon over JSON-RPC and a P2Pool stats API, normalizes their
responses into typed snapshots, caches them briefly and serves them over HTTP
together with local process metrics.

## Architecture

- **core**: models, formatting, the stats cache and the aggregation service
- **client**: upstream clients for monerod and P2Pool
- **server**: aiohttp routes over the aggregation service
- **cli**: command-line entry points

## Quick Start

```python
from moneromesh.config import MoneroMeshSettings
from moneromesh.core.stats_service import StatsService

service = StatsService.from_settings(MoneroMeshSettings())
stats = await service.get_all_stats()
print(stats.to_dict())
```
"""

__version__ = "1.0.0"

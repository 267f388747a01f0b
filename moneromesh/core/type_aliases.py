"""
Semantic type aliases for MoneroMesh.

Raw numeric and string types carry very different meanings across the
daemon, pool and cache layers (atomic units vs. display strings, seconds vs.
milliseconds). These aliases keep signatures self-documenting.
"""

from typing import Any

# Time and timestamp types
type EpochSeconds = int
type IsoTimestamp = str
type DurationSeconds = float
type DurationMilliseconds = float

# Chain and pool quantities
type BlockHeight = int
type Difficulty = int | float
type HashesPerSecond = float
type AtomicUnits = int | float | str
type DecimalString = str
type FormattedHashrate = str

# Cache and transport types
type CacheKeyString = str
type UrlString = str
type RpcMethod = str

# JSON payloads
type JsonDict = dict[str, Any]

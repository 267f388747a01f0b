"""Display formatting for hashrates and atomic currency amounts."""

from __future__ import annotations

from datetime import UTC, datetime

from .type_aliases import (
    AtomicUnits,
    DecimalString,
    FormattedHashrate,
    HashesPerSecond,
    IsoTimestamp,
)

HASHRATE_UNITS: tuple[str, ...] = ("H/s", "KH/s", "MH/s", "GH/s", "TH/s")

# 1 XMR = 10^12 piconero
ATOMIC_UNITS_PER_COIN = 1e12
ATOMIC_DECIMALS = 12


def format_hashrate(hashrate: HashesPerSecond) -> FormattedHashrate:
    """Scale ``hashrate`` to the largest unit up to TH/s, two decimals."""
    unit_index = 0
    while hashrate >= 1000 and unit_index < len(HASHRATE_UNITS) - 1:
        hashrate /= 1000
        unit_index += 1
    return f"{hashrate:.2f} {HASHRATE_UNITS[unit_index]}"


def atomic_to_decimal(atomic: AtomicUnits) -> DecimalString:
    """Convert an atomic-unit amount to a 12-decimal coin string.

    Pool APIs report some amounts as numeric strings, so strings are parsed.
    """
    amount = float(atomic) if isinstance(atomic, str) else atomic
    return f"{amount / ATOMIC_UNITS_PER_COIN:.{ATOMIC_DECIMALS}f}"


def iso_timestamp(epoch_seconds: float | None = None) -> IsoTimestamp:
    """Return an ISO-8601 UTC timestamp with millisecond precision.

    Uses the current time when ``epoch_seconds`` is ``None``.
    """
    if epoch_seconds is None:
        moment = datetime.now(UTC)
    else:
        moment = datetime.fromtimestamp(epoch_seconds, UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

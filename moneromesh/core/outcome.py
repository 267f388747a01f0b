"""
Tagged results for upstream accessors.

Leaf accessors report either a value or an explicit failure reason instead of
silently substituting a default. The composite that consumes them chooses the
default, which keeps the default-on-failure policy visible at the call site.
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def value_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failure:
    reason: str
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return False

    def value_or(self, default: T) -> T:
        return default


type Outcome[T] = Success[T] | Failure


async def capture(awaitable: Awaitable[T], description: str) -> Outcome[T]:
    """Await ``awaitable`` and wrap its result or exception in an outcome.

    Exceptions are logged at error level using ``description`` as context.
    """
    try:
        return Success(await awaitable)
    except Exception as e:
        logger.error(f"Failed to {description}: {e}")
        return Failure(reason=str(e), error=e)

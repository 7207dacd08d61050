"""Discriminated success/failure results for authoritative fetches.

Enrichment calls return plain values with a guaranteed default instead; see
:mod:`repatch.engines.github.repository`.
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from repatch.engines.github.errors import ApiError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: ApiError

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default


Result = Union[Ok[T], Err]


async def capture(awaitable: Awaitable[T]) -> Result[T]:
    """Await *awaitable* and wrap the outcome.

    Only :class:`ApiError` is captured; cancellation and programming errors
    propagate unchanged.
    """
    try:
        return Ok(await awaitable)
    except ApiError as exc:
        return Err(exc)

"""Rate-limit bookkeeping shared by every request through one gateway."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

_DEFAULT_FAMILY = "core"


@dataclass(frozen=True)
class RateLimitState:
    remaining: int
    reset_at: float  # unix timestamp, seconds
    limit: int | None = None


class RateLimitTracker:
    """Per endpoint-family quota state, updated from response headers.

    GitHub budgets ``/search`` and ``/graphql`` separately from the core REST
    API, so they are tracked as their own families.
    """

    def __init__(self, low_water: int = 10, clock: Callable[[], float] = time.time) -> None:
        self.low_water = low_water
        self._clock = clock
        self._lock = threading.Lock()
        self._states: dict[str, RateLimitState] = {}

    @staticmethod
    def family_for(endpoint: str) -> str:
        path = endpoint.split("?", 1)[0]
        if "://" in path:
            path = "/" + path.split("://", 1)[1].split("/", 1)[-1]
        if path.startswith("/search/"):
            return "search"
        if path.startswith("/graphql"):
            return "graphql"
        return _DEFAULT_FAMILY

    def now(self) -> float:
        return self._clock()

    def get(self, family: str) -> RateLimitState | None:
        with self._lock:
            return self._states.get(family)

    def update(self, family: str, headers: Mapping[str, str]) -> RateLimitState | None:
        """Record quota from ``X-RateLimit-*`` headers.

        Headers missing or unparseable leave the previous state untouched.
        ``X-RateLimit-Resource``, when present, names the family authoritatively.
        """
        remaining = _parse_int(headers.get("X-RateLimit-Remaining"))
        reset = _parse_int(headers.get("X-RateLimit-Reset"))
        if remaining is None or reset is None:
            return None
        family = headers.get("X-RateLimit-Resource") or family
        state = RateLimitState(
            remaining=remaining,
            reset_at=float(reset),
            limit=_parse_int(headers.get("X-RateLimit-Limit")),
        )
        with self._lock:
            self._states[family] = state
        return state

    def wait_time(self, family: str) -> float:
        """Seconds to wait before the next request, 0.0 if none is needed.

        Only a low quota with a reset still in the future yields a wait.
        """
        state = self.get(family)
        if state is None or state.remaining >= self.low_water:
            return 0.0
        return max(0.0, state.reset_at - self._clock())


def _parse_int(value: str | None) -> int | None:
    """Safely parse an integer header value."""
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None

"""GatewayContext — process-scoped shared state for the GitHub layer."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from repatch.core.config import GatewaySettings
from repatch.engines.github.cache import ResponseCache
from repatch.engines.github.rate_limit import RateLimitTracker


@dataclass
class GatewayContext:
    """Settings plus the shared, mutable rate-limit state and response cache.

    Build one per process and hand it to every gateway; tests build a fresh
    one each.
    """

    settings: GatewaySettings = field(default_factory=GatewaySettings)
    rate_limits: RateLimitTracker | None = None
    cache: ResponseCache | None = None

    def __post_init__(self) -> None:
        if self.rate_limits is None:
            self.rate_limits = RateLimitTracker(low_water=self.settings.rate_limit_low_water)
        if self.cache is None:
            self.cache = ResponseCache()

    @classmethod
    def create(
        cls,
        settings: GatewaySettings | None = None,
        *,
        wall_clock: Callable[[], float] = time.time,
        monotonic_clock: Callable[[], float] = time.monotonic,
    ) -> GatewayContext:
        settings = settings or GatewaySettings.from_env()
        return cls(
            settings=settings,
            rate_limits=RateLimitTracker(
                low_water=settings.rate_limit_low_water, clock=wall_clock
            ),
            cache=ResponseCache(clock=monotonic_clock),
        )

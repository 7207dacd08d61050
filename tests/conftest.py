"""Shared fixtures for repatch tests. No network access: every gateway talks
to an ``httpx.MockTransport``."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from repatch.core.config import GatewaySettings
from repatch.engines.github.context import GatewayContext
from repatch.engines.github.gateway import HttpGateway

BASE_URL = "https://api.github.test"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


class FakeClock:
    """Manually advanced clock for cache TTL and rate-limit tests."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_gateway(clock: FakeClock) -> Callable[..., HttpGateway]:
    """Factory: ``make_gateway(handler, **settings_overrides)``.

    Retries default to no backoff delay; both the wall and monotonic clocks
    are the shared ``clock`` fixture.
    """

    def _make(handler: Callable[[httpx.Request], httpx.Response], **overrides) -> HttpGateway:
        overrides.setdefault("retry_base_delay", 0.0)
        settings = GatewaySettings(base_url=BASE_URL, token="test-token", **overrides)
        context = GatewayContext.create(settings, wall_clock=clock, monotonic_clock=clock)
        return HttpGateway(context, transport=httpx.MockTransport(handler))

    return _make


"""Dependency injection — one GatewayContext and gateway per process."""

from __future__ import annotations

from repatch.core.config import GatewaySettings, SelectionSettings
from repatch.engines.commit_selection.engine import CommitSelectionEngine
from repatch.engines.github.context import GatewayContext
from repatch.engines.github.gateway import HttpGateway
from repatch.engines.github.repository import ResourceRepository

# ---------------------------------------------------------------------------
# Process-scoped singletons (initialised in app lifespan)
# ---------------------------------------------------------------------------
_gateway: HttpGateway | None = None
_repository: ResourceRepository | None = None
_engine: CommitSelectionEngine | None = None
_selection_settings: SelectionSettings | None = None


def init_gateway(settings: GatewaySettings | None = None) -> HttpGateway:
    """Create the shared context and gateway. Idempotent."""
    global _gateway, _repository
    if _gateway is None:
        _gateway = HttpGateway(GatewayContext.create(settings))
        _repository = ResourceRepository(_gateway)
    return _gateway


async def close_gateway() -> None:
    """Close the shared HTTP client and forget every singleton."""
    global _gateway, _repository, _engine
    if _gateway is not None:
        await _gateway.close()
    _gateway = _repository = _engine = None


def get_selection_settings() -> SelectionSettings:
    global _selection_settings
    if _selection_settings is None:
        _selection_settings = SelectionSettings.from_env()
    return _selection_settings


def get_repository() -> ResourceRepository:
    if _repository is None:
        raise RuntimeError("call init_gateway() before handling requests")
    return _repository


def get_selection_engine() -> CommitSelectionEngine:
    global _engine
    if _engine is None:
        _engine = CommitSelectionEngine(
            get_repository(),
            label_concurrency=get_selection_settings().label_concurrency,
        )
    return _engine

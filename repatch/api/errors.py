"""Unified error handling — RepatchError + RequestValidationError → JSON.

Bodies carry ``detail`` and a ``kind`` so clients can tell an invalid filter
from an unavailable or rate-limited upstream.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from repatch.engines.commit_selection.filters import FilterValidationError
from repatch.engines.github.errors import (
    PermanentApiError,
    RateLimitExceededError,
    RepatchError,
    TransientApiError,
)

log = structlog.get_logger("repatch.api")


def _classify(exc: RepatchError) -> tuple[int, str]:
    if isinstance(exc, FilterValidationError):
        return 422, "invalid_filter"
    if isinstance(exc, RateLimitExceededError):
        return 503, "rate_limited"
    if isinstance(exc, TransientApiError):
        return 503, "upstream_unavailable"
    if isinstance(exc, PermanentApiError):
        if exc.status == 404:
            return 404, "not_found"
        return 502, "upstream_error"
    return 500, "internal_error"


async def _repatch_error_handler(_request: Request, exc: RepatchError) -> JSONResponse:
    status, kind = _classify(exc)
    if status >= 500:
        log.warning("api.upstream_failure", kind=kind, error=str(exc))
    return JSONResponse(status_code=status, content={"detail": str(exc), "kind": kind})


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return JSONResponse(
        status_code=422,
        content={"detail": "; ".join(messages), "kind": "invalid_request"},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register exception handlers on the app."""
    app.add_exception_handler(RepatchError, _repatch_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]

"""Request ID middleware — binds X-Request-ID into structlog contextvars."""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

log = structlog.get_logger("repatch.api")

_MAX_REQUEST_ID_LENGTH = 128


def _accept_request_id(value: str) -> bool:
    return 0 < len(value) <= _MAX_REQUEST_ID_LENGTH and value.isprintable()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every log line of a request with its id, method and path."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        raw_id = request.headers.get("x-request-id", "")
        request_id = raw_id if _accept_request_id(raw_id) else uuid.uuid4().hex

        tokens = structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
            log.info(
                "api.request",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
            )
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception:
            log.exception(
                "api.request_failed",
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
            )
            raise
        finally:
            structlog.contextvars.reset_contextvars(**tokens)

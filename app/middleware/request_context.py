"""Correlation ID binding and one structured log line per request."""

from __future__ import annotations

from time import perf_counter
from uuid import uuid4

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

CORRELATION_ID_HEADER = "X-Correlation-ID"
_CONTEXT_KEY = "correlation_id"

logger = structlog.get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a correlation ID to structlog context and log request completion.

    Headers and bodies are never logged; webhook calls carry bearer tokens and
    trial credentials.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """Run the request inside its correlation context."""
        correlation_id = request.headers.get(CORRELATION_ID_HEADER, "").strip() or str(uuid4())
        request.state.correlation_id = correlation_id
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        start = perf_counter()

        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=500,
                    duration_ms=round((perf_counter() - start) * 1000, 2),
                )
                raise

            event_logger = logger.warning if response.status_code >= 400 else logger.info
            event_logger(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((perf_counter() - start) * 1000, 2),
            )
        finally:
            structlog.contextvars.unbind_contextvars(_CONTEXT_KEY)

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response

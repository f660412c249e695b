"""Global exception handlers for the example partner application."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from testbox_sdk.dependencies import register_webhook_exception_handlers

logger = structlog.get_logger(__name__)


def _sanitize_detail(detail: str, environment: str) -> str:
    """Hide internal failure details outside development."""
    if environment != "development":
        return "Internal server error."
    return detail


def register_exception_handlers(app: FastAPI, environment: str) -> None:
    """Register webhook rejection handlers and a masked fallback handler."""
    register_webhook_exception_handlers(app)

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        """Mask internal errors behind a generic 500."""
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        logger.error(
            "unhandled_exception",
            correlation_id=correlation_id,
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500, content={"detail": _sanitize_detail(str(exc), environment)}
        )

"""FastAPI application factory for the example TestBox partner.

Run with ``uvicorn --factory app.main:create_app``; the TestBox integration
reads its settings from ``TBX_*`` environment variables.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import Settings, configure_structlog, get_settings
from app.error_handlers import register_exception_handlers
from app.middleware import RequestContextMiddleware
from app.routers import health, webhooks
from testbox_sdk import Integration
from testbox_sdk import Settings as TestBoxSettings


def create_app(settings: Settings | None = None, integration: Integration | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_structlog(settings)
    owns_integration = integration is None
    testbox = integration or Integration(TestBoxSettings())

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_integration:
            await testbox.aclose()

    app = FastAPI(title=settings.app.service, lifespan=lifespan)
    app.state.settings = settings
    app.state.testbox = testbox

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app, settings.app.environment)
    app.include_router(webhooks.router)
    app.include_router(health.router)
    return app

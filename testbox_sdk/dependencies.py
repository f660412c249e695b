"""FastAPI dependencies for receiving authenticated TestBox webhooks."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated

import structlog
from fastapi import Depends, FastAPI, Request
from starlette.responses import Response

from testbox_sdk.exceptions import AuthenticationError, ValidationError
from testbox_sdk.integration import Integration
from testbox_sdk.webhooks import RequestT, WebhookRequest

logger = structlog.get_logger(__name__)


def extract_bearer_token(request: Request) -> str | None:
    """Extract bearer token from Authorization header."""
    authorization = request.headers.get("authorization", "").strip()
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    stripped = token.strip()
    return stripped or None


def get_integration(request: Request) -> Integration:
    """Return the integration stored on ``app.state.testbox``."""
    integration = getattr(request.app.state, "testbox", None)
    if not isinstance(integration, Integration):
        raise RuntimeError("No TestBox integration configured on app.state.testbox.")
    return integration


def require_webhook(request_type: type[RequestT]) -> Callable[..., Awaitable[WebhookRequest]]:
    """Require a well-formed, authenticated webhook body of ``request_type``.

    The payload shape is checked before the token, so malformed bodies are
    rejected without any key lookup.
    """

    async def dependency(
        request: Request,
        integration: Annotated[Integration, Depends(get_integration)],
    ) -> WebhookRequest:
        webhook = integration.parse(request_type, await request.body())
        token = extract_bearer_token(request)
        if token is None or not await integration.verify_token(webhook, token):
            raise AuthenticationError("TestBox webhook could not be authenticated.")
        return webhook

    return dependency


def register_webhook_exception_handlers(app: FastAPI) -> None:
    """Answer rejected webhooks with empty 400 and 401 responses."""

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> Response:
        """Map malformed payloads to an empty 400."""
        logger.warning(
            "testbox_webhook_rejected", status_code=400, path=request.url.path, detail=str(exc)
        )
        return Response(status_code=400)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError) -> Response:
        """Map unauthenticated requests to an empty 401."""
        logger.warning(
            "testbox_webhook_rejected", status_code=401, path=request.url.path, detail=str(exc)
        )
        return Response(status_code=401)

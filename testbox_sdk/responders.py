"""Host-framework response shaping for synchronous webhook replies."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from starlette.responses import JSONResponse, Response

from testbox_sdk.config import Framework

FULFILLED_STATUS_CODE = 201


class Responder(Protocol):
    """Build the host framework's response for a webhook call."""

    def respond_success(self, body: Any) -> Any:
        """Return a 201 response carrying ``body`` as JSON."""
        ...

    def respond_failure(self, status_code: int) -> Any:
        """Return an empty response with ``status_code``."""
        ...


class StarletteResponder:
    """Responder for Starlette and FastAPI applications."""

    def respond_success(self, body: Any) -> JSONResponse:
        """Return a 201 JSONResponse carrying the body."""
        return JSONResponse(status_code=FULFILLED_STATUS_CODE, content=body)

    def respond_failure(self, status_code: int) -> Response:
        """Return an empty Starlette response."""
        return Response(status_code=status_code)


@dataclass(frozen=True)
class WebhookResponse:
    """Framework-neutral response value for hosts without a Starlette stack."""

    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


class RawResponder:
    """Responder returning :class:`WebhookResponse` values."""

    def respond_success(self, body: Any) -> WebhookResponse:
        """Return a 201 value with the body encoded as JSON bytes."""
        return WebhookResponse(
            status_code=FULFILLED_STATUS_CODE,
            body=json.dumps(body).encode("utf-8"),
            headers={"content-type": "application/json"},
        )

    def respond_failure(self, status_code: int) -> WebhookResponse:
        """Return an empty response value."""
        return WebhookResponse(status_code=status_code)


def responder_for(framework: Framework) -> Responder:
    """Return the responder for the configured framework."""
    if framework is Framework.RAW:
        return RawResponder()
    return StarletteResponder()

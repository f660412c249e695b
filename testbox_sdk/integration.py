"""Partner-facing entry point wiring settings, keys, verification and delivery."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from testbox_sdk import fulfillment
from testbox_sdk.authentication import verify_token
from testbox_sdk.client import ServiceClient
from testbox_sdk.config import Settings
from testbox_sdk.fulfillment import TrialLike
from testbox_sdk.keys import KeyProvider, build_key_provider
from testbox_sdk.responders import Responder, responder_for
from testbox_sdk.types import UseCaseUrls
from testbox_sdk.validation import TrialGuards
from testbox_sdk.verifier import TokenVerifier
from testbox_sdk.webhooks import (
    BulkUseCaseRequest,
    CallbackRequest,
    RequestT,
    TrialRequest,
    UseCaseRequest,
    WebhookRequest,
    parse_request_body,
)

logger = structlog.get_logger(__name__)


class Integration:
    """Receive, authenticate and fulfill TestBox webhook requests.

    Build one instance at startup and share it; request objects it returns
    are per-webhook and must not be shared between calls.
    """

    def __init__(
        self,
        settings: Settings,
        client: ServiceClient | None = None,
        key_provider: KeyProvider | None = None,
        verifier: TokenVerifier | None = None,
        responder: Responder | None = None,
        guards: TrialGuards | None = None,
    ) -> None:
        """Create integration with injectable collaborators."""
        self.settings = settings
        self._owns_client = client is None
        self.client = client or ServiceClient(timeout=settings.http_timeout_seconds)
        self.key_provider = key_provider or build_key_provider(settings, self.client)
        self.verifier = verifier or TokenVerifier(self.key_provider)
        self.responder = responder or responder_for(settings.framework)
        self.guards = guards

    def parse(self, request_type: type[RequestT], body: bytes | str | dict[str, Any]) -> RequestT:
        """Validate an inbound body into ``request_type``."""
        return parse_request_body(request_type, body, self.guards)

    async def verify_token(self, request: WebhookRequest, token: str) -> bool:
        """Verify ``token`` against the request's trial and the configured product."""
        verified = await verify_token(request, token, self.verifier, self.settings.product_id)
        if not verified:
            logger.warning("testbox_request_unauthenticated", trial_id=request.trial_id)
        return verified

    async def authenticate(
        self,
        request_type: type[RequestT],
        body: bytes | str | dict[str, Any],
        token: str | None,
    ) -> RequestT:
        """Parse the body, then verify the token; check ``request.auth`` for the outcome."""
        request = self.parse(request_type, body)
        if token:
            await self.verify_token(request, token)
        return request

    def fulfill_trial(self, request: TrialRequest, trial: TrialLike) -> Any:
        """Respond to a trial request with a 201 carrying the trial."""
        return fulfillment.fulfill_trial(request, trial, self.responder)

    def fulfill_use_case(self, request: UseCaseRequest, url: str) -> Any:
        """Respond to a use-case request with a 201 carrying its URL."""
        return fulfillment.fulfill_use_case(request, url, self.responder)

    def fulfill_use_cases(self, request: BulkUseCaseRequest, urls: UseCaseUrls) -> Any:
        """Respond to a bulk use-case request with a 201 carrying its URLs."""
        return fulfillment.fulfill_use_cases(request, urls, self.responder)

    def reject(self, status_code: int = 401) -> Any:
        """Return an empty failure response in the host framework's shape."""
        return self.responder.respond_failure(status_code)

    async def fulfill_trial_async(self, request: TrialRequest, trial: TrialLike) -> httpx.Response:
        """POST the trial to the request's success URL."""
        return await fulfillment.fulfill_trial_async(request, trial, self.client)

    async def fulfill_use_case_async(self, request: UseCaseRequest, url: str) -> httpx.Response:
        """POST the use-case URL to the request's success URL."""
        return await fulfillment.fulfill_use_case_async(request, url, self.client)

    async def fulfill_use_cases_async(
        self, request: BulkUseCaseRequest, urls: UseCaseUrls
    ) -> httpx.Response:
        """POST the use-case URL map to the request's success URL."""
        return await fulfillment.fulfill_use_cases_async(request, urls, self.client)

    async def report_failure_async(self, request: CallbackRequest, data: Any) -> httpx.Response:
        """POST a failure diagnostic to the request's failure URL."""
        return await fulfillment.report_failure_async(request, data, self.client)

    async def aclose(self) -> None:
        """Close the HTTP client if owned by this instance."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> Integration:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """Exit async context manager and close managed resources."""
        del exc_type, exc, tb
        await self.aclose()

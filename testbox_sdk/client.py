"""Async HTTP client for TestBox key endpoints and callback URLs."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from testbox_sdk.exceptions import ServiceResponseError, ServiceUnavailableError
from testbox_sdk.types import JWKS

DEFAULT_TIMEOUT = httpx.Timeout(connect=2.0, read=5.0, write=5.0, pool=5.0)

logger = structlog.get_logger(__name__)


class ServiceClient:
    """Async client for fetching verification keys and posting callbacks."""

    def __init__(
        self,
        timeout: httpx.Timeout | float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create client with sane defaults and optional injected transport."""
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout or DEFAULT_TIMEOUT)

    async def fetch_jwks(self, url: str) -> JWKS:
        """Fetch a JWKS document."""
        response = await self._request("GET", url)
        payload = self._json_object(response)
        keys = payload.get("keys")
        if not isinstance(keys, list):
            raise ServiceResponseError("Invalid JWKS response payload.", response.status_code)

        normalized_keys: list[dict[str, str]] = []
        for item in keys:
            if not isinstance(item, dict):
                raise ServiceResponseError("Invalid JWKS key entry.", response.status_code)
            normalized_keys.append({str(key): str(value) for key, value in item.items()})
        return {"keys": normalized_keys}

    async def fetch_keymap(self, url: str) -> dict[str, str]:
        """Fetch a JSON object mapping key ids to PEM encoded public keys."""
        response = await self._request("GET", url)
        payload = self._json_object(response)
        if not all(isinstance(value, str) for value in payload.values()):
            raise ServiceResponseError("Invalid key map entry.", response.status_code)
        return {str(kid): pem for kid, pem in payload.items()}

    async def post_callback(self, url: str, token: str, body: Any) -> httpx.Response:
        """POST a JSON body to a TestBox callback URL with the verified bearer token."""
        response = await self._request(
            "POST",
            url,
            json=body,
            headers={"Authorization": f"Bearer {token}"},
        )
        logger.info("testbox_callback_delivered", status_code=response.status_code)
        return response

    async def aclose(self) -> None:
        """Close underlying HTTP client if owned by this instance."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ServiceClient:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """Exit async context manager and close managed resources."""
        del exc_type, exc, tb
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Execute request and normalize upstream failures."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise ServiceUnavailableError(f"{method} {url} is unavailable.") from exc

        if response.status_code >= 500:
            raise ServiceUnavailableError(f"{method} {url} is unavailable.")
        if response.status_code >= 400:
            raise ServiceResponseError(
                f"{method} {url} failed with status {response.status_code}.",
                response.status_code,
            )
        return response

    @staticmethod
    def _json_object(response: httpx.Response) -> dict[str, Any]:
        """Return response JSON as object."""
        try:
            payload = response.json()
        except ValueError as exc:
            raise ServiceResponseError(
                "Remote endpoint returned invalid JSON.", response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise ServiceResponseError(
                "Remote endpoint returned invalid JSON object.", response.status_code
            )
        return payload

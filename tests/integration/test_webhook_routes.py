"""Integration tests for the example partner webhook routes."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.config import Settings as AppSettings
from app.main import create_app
from testbox_sdk import Integration, Settings
from testbox_sdk.client import ServiceClient
from tests.helpers import (
    FAILURE_URL,
    JWKS_URL,
    SUCCESS_URL,
    TRIAL_ID,
    SigningMaterial,
    build_token,
    bulk_use_case_request_payload,
    trial_request_payload,
    use_case_request_payload,
)


class _TestBoxStub:
    """Mock transport handler standing in for TestBox key and callback endpoints."""

    def __init__(self, material: SigningMaterial, callback_status: int = 201) -> None:
        self.material = material
        self.callback_status = callback_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == JWKS_URL:
            return httpx.Response(status_code=200, json={"keys": [self.material.jwk]})
        return httpx.Response(status_code=self.callback_status)

    @property
    def callbacks(self) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == "POST"]


def _build_app(sdk_settings: Settings, stub: _TestBoxStub) -> FastAPI:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    integration = Integration(sdk_settings, client=ServiceClient(http_client=http_client))
    return create_app(settings=AppSettings(), integration=integration)


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_trial_webhook_returns_provisioned_trial(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """A verified trial request is answered with a 201 carrying the trial."""
    stub = _TestBoxStub(signing_material)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/trial",
            json=trial_request_payload(),
            headers=_bearer(build_token(signing_material)),
        )

    assert response.status_code == 201
    body = response.json()
    assert body["admin_authentication"]["user"]["email"].startswith("admin+tbx-c35dd919@")
    assert body["start_url_context"] == {"subdomain": "tbx-c35dd919"}
    assert len(body["trial_users"]) == 1
    assert stub.callbacks == []


@pytest.mark.asyncio
async def test_trial_webhook_rejects_token_for_another_trial(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """A token bound to a different trial yields an empty 401."""
    stub = _TestBoxStub(signing_material)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/trial",
            json=trial_request_payload(),
            headers=_bearer(build_token(signing_material, trial_id="another-trial")),
        )

    assert response.status_code == 401
    assert response.content == b""
    assert stub.callbacks == []


@pytest.mark.asyncio
async def test_missing_bearer_token_is_rejected(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """Requests without an Authorization header are unauthenticated."""
    stub = _TestBoxStub(signing_material)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post("/api/testbox/trial", json=trial_request_payload())

    assert response.status_code == 401
    assert stub.requests == []


@pytest.mark.asyncio
async def test_malformed_payload_is_rejected_before_token_check(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """Payloads with undeclared fields get an empty 400 and no key lookup."""
    stub = _TestBoxStub(signing_material)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/trial",
            json=trial_request_payload(extras="something_fishy"),
            headers=_bearer(build_token(signing_material)),
        )
        garbage = await client.post(
            "/api/testbox/trial",
            content=b"not json",
            headers=_bearer(build_token(signing_material)),
        )

    assert response.status_code == 400
    assert response.content == b""
    assert garbage.status_code == 400
    assert stub.requests == []


@pytest.mark.asyncio
async def test_async_trial_acknowledges_then_delivers_callback(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """The async route answers 200 and posts the trial to the success URL."""
    stub = _TestBoxStub(signing_material)
    token = build_token(signing_material)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/async_trial", json=trial_request_payload(), headers=_bearer(token)
        )

    assert response.status_code == 200
    [callback] = stub.callbacks
    assert str(callback.url) == SUCCESS_URL
    assert callback.headers["authorization"] == f"Bearer {token}"
    assert json.loads(callback.content)["start_url_context"] == {"subdomain": "tbx-c35dd919"}


@pytest.mark.asyncio
async def test_async_trial_reports_failed_delivery(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """A rejected success callback is followed by a failure report."""
    stub = _TestBoxStub(signing_material, callback_status=409)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/async_trial",
            json=trial_request_payload(),
            headers=_bearer(build_token(signing_material)),
        )

    assert response.status_code == 200
    assert [str(callback.url) for callback in stub.callbacks] == [SUCCESS_URL, FAILURE_URL]
    assert json.loads(stub.callbacks[1].content) == {"error": "trial_delivery_failed"}


@pytest.mark.asyncio
async def test_use_case_webhook_returns_demo_url(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """A verified use-case request is answered with its demo URL."""
    stub = _TestBoxStub(signing_material)
    payload = use_case_request_payload()
    payload["trial_data"]["start_url_context"] = {"subdomain": "tbx-demo"}
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/use_case",
            json=payload,
            headers=_bearer(build_token(signing_material)),
        )

    assert response.status_code == 201
    assert response.json() == {
        "customer-support-ticket-tagging": (
            "https://app.example.com/tbx-demo/demo/customer-support-ticket-tagging"
        )
    }


@pytest.mark.asyncio
async def test_bulk_use_case_delivers_every_requested_url(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """Bulk requests are acknowledged and fulfilled through the callback."""
    stub = _TestBoxStub(signing_material)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/bulk_use_case",
            json=bulk_use_case_request_payload(),
            headers=_bearer(build_token(signing_material)),
        )

    assert response.status_code == 200
    [callback] = stub.callbacks
    assert str(callback.url) == SUCCESS_URL
    assert set(json.loads(callback.content)) == {
        "customer-support-canned-responses",
        "customer-support-ticket-tagging",
    }


@pytest.mark.asyncio
async def test_bulk_use_case_rejects_unknown_use_case_type(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """Unknown use-case types are malformed payloads."""
    stub = _TestBoxStub(signing_material)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/bulk_use_case",
            json=bulk_use_case_request_payload(use_case_types=["unknown"]),
            headers=_bearer(build_token(signing_material)),
        )

    assert response.status_code == 400
    assert stub.requests == []


@pytest.mark.asyncio
async def test_token_for_wrong_product_is_rejected(signing_material: SigningMaterial) -> None:
    """The product id is the only accepted audience."""
    stub = _TestBoxStub(signing_material)
    settings = Settings(product_id="another-product", jwks_url=JWKS_URL)
    async with _client(_build_app(settings, stub)) as client:
        response = await client.post(
            "/api/testbox/trial",
            json=trial_request_payload(trial_id=TRIAL_ID),
            headers=_bearer(build_token(signing_material)),
        )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_non_ascii_authorization_scheme_is_rejected(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """Latin-1 header values that are not a bearer scheme yield a 401."""
    stub = _TestBoxStub(signing_material)
    async with _client(_build_app(sdk_settings, stub)) as client:
        response = await client.post(
            "/api/testbox/trial",
            json=trial_request_payload(),
            headers=[(b"authorization", "Béarer abc".encode("latin-1"))],
        )

    assert response.status_code == 401
    assert stub.requests == []


@pytest.mark.asyncio
async def test_deeply_nested_bodies_are_rejected(
    sdk_settings: Settings, signing_material: SigningMaterial
) -> None:
    """Pathologically nested JSON gets an empty 400 instead of a server error."""
    stub = _TestBoxStub(signing_material)
    payload = use_case_request_payload()
    payload["trial_data"]["start_url_context"] = "CONTEXT"
    context = '{"a": ' * 700 + '"leaf"' + "}" * 700
    body = json.dumps(payload).replace('"CONTEXT"', context)
    headers = _bearer(build_token(signing_material))

    async with _client(_build_app(sdk_settings, stub)) as client:
        nested_context = await client.post(
            "/api/testbox/use_case", content=body, headers=headers
        )
        nested_arrays = await client.post(
            "/api/testbox/trial", content="[" * 100000 + "]" * 100000, headers=headers
        )

    assert nested_context.status_code == 400
    assert nested_arrays.status_code == 400
    assert stub.requests == []

"""Shared fixtures for SDK and example-app tests."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from testbox_sdk.config import Settings
from tests.helpers import AUDIENCE, JWKS_URL, SigningMaterial, generate_signing_material


@pytest.fixture(scope="session")
def signing_material() -> SigningMaterial:
    """RSA signing material published under kid-1."""
    return generate_signing_material("kid-1")


@pytest.fixture(scope="session")
def other_signing_material() -> SigningMaterial:
    """Unrelated RSA signing material reusing kid-1."""
    return generate_signing_material("kid-1")


@pytest.fixture
def sdk_settings() -> Settings:
    """SDK settings pointing at the test JWKS endpoint."""
    return Settings(product_id=AUDIENCE, jwks_url=JWKS_URL)


@pytest.fixture
def jwks_handler(
    signing_material: SigningMaterial,
) -> Callable[[httpx.Request], httpx.Response]:
    """Mock transport handler serving the test JWKS and accepting callbacks."""

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == JWKS_URL:
            return httpx.Response(status_code=200, json={"keys": [signing_material.jwk]})
        return httpx.Response(status_code=201)

    return handler

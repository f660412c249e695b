"""Shared signing material and payload builders for SDK tests."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

AUDIENCE = "unit-test"
TRIAL_ID = "c35dd919-6df3-49ca-96d0-d30e10dba442"
SUCCESS_URL = f"https://example.com/success/{TRIAL_ID}"
FAILURE_URL = f"https://example.com/failure/{TRIAL_ID}"
JWKS_URL = "https://keys.testbox.local/.well-known/jwks.json"


@dataclass(frozen=True)
class SigningMaterial:
    """RSA keypair plus its JWKS entry."""

    kid: str
    private_pem: str
    public_pem: str
    jwk: dict[str, str]


def _base64url_uint(value: int) -> str:
    """Encode integer in URL-safe base64 without padding."""
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_signing_material(kid: str) -> SigningMaterial:
    """Generate RSA private/public PEMs and matching JWKS key entry."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )
    public_numbers = private_key.public_key().public_numbers()
    jwk = {
        "kty": "RSA",
        "alg": "RS256",
        "use": "sig",
        "kid": kid,
        "n": _base64url_uint(public_numbers.n),
        "e": _base64url_uint(public_numbers.e),
    }
    return SigningMaterial(kid=kid, private_pem=private_pem, public_pem=public_pem, jwk=jwk)


def build_token(
    material: SigningMaterial,
    trial_id: str = TRIAL_ID,
    audience: Any = AUDIENCE,
    expires_in_seconds: int | None = 300,
    kid: str | None = None,
) -> str:
    """Build an RS256 TestBox token."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": "testbox",
        "iat": int(now.timestamp()),
        "trial_id": trial_id,
        "aud": audience,
    }
    if expires_in_seconds is not None:
        payload["exp"] = int((now + timedelta(seconds=expires_in_seconds)).timestamp())
    headers = {"kid": kid if kid is not None else material.kid}
    return jwt.encode(payload, material.private_pem, algorithm="RS256", headers=headers)


def trial_payload(**overrides: Any) -> dict[str, Any]:
    """Return a minimal valid serialized trial."""
    payload: dict[str, Any] = {
        "admin_authentication": {"user": {"email": "hello@world.com"}},
        "trial_users": [{"email": "user@world.com"}],
        "created_at": "2024-01-01T00:00:00+00:00",
    }
    payload.update(overrides)
    return payload


def trial_request_payload(**overrides: Any) -> dict[str, Any]:
    """Return a valid trial request body."""
    payload: dict[str, Any] = {
        "version": 1,
        "trial_id": TRIAL_ID,
        "success_url": SUCCESS_URL,
        "failure_url": FAILURE_URL,
    }
    payload.update(overrides)
    return payload


def use_case_request_payload(**overrides: Any) -> dict[str, Any]:
    """Return a valid single use-case request body."""
    payload = trial_request_payload(
        use_case_type="customer-support-ticket-tagging", trial_data=trial_payload()
    )
    payload.update(overrides)
    return payload


def bulk_use_case_request_payload(**overrides: Any) -> dict[str, Any]:
    """Return a valid bulk use-case request body."""
    payload = trial_request_payload(
        use_case_types=[
            "customer-support-canned-responses",
            "customer-support-ticket-tagging",
        ],
        trial_data=trial_payload(),
    )
    payload.update(overrides)
    return payload

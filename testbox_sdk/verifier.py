"""Fail-closed verification of TestBox bearer tokens."""

from __future__ import annotations

import hmac
from typing import Any

import structlog
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from testbox_sdk.keys import KeyProvider

JWT_ALGORITHM = "RS256"

logger = structlog.get_logger(__name__)


class TokenRejected(Exception):
    """Internal signal carrying the reason a token was not accepted."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _constant_time_equals(actual: Any, expected: str) -> bool:
    """Compare a claim to its expected string value without early exit."""
    if not isinstance(actual, str):
        return False
    return hmac.compare_digest(actual.encode("utf-8"), expected.encode("utf-8"))


class TokenVerifier:
    """Verify signature, audience and trial binding of TestBox tokens."""

    def __init__(self, key_provider: KeyProvider) -> None:
        self._key_provider = key_provider

    async def verify(self, token: str, expected_trial_id: str, expected_audience: str) -> bool:
        """Return True only when the token is authentic for this trial and product.

        Every failure, including unexpected exceptions, is reported as False.
        """
        try:
            await self._verify(token, expected_trial_id, expected_audience)
        except TokenRejected as exc:
            logger.info("testbox_token_rejected", reason=exc.reason)
            return False
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "testbox_token_rejected", reason="unexpected_error", error=type(exc).__name__
            )
            return False
        return True

    async def _verify(self, token: str, expected_trial_id: str, expected_audience: str) -> None:
        """Raise TokenRejected unless every check passes."""
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise TokenRejected("malformed_token") from exc

        if not _constant_time_equals(header.get("alg"), JWT_ALGORITHM):
            raise TokenRejected("unsupported_algorithm")
        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise TokenRejected("missing_kid")

        key = await self._key_provider.resolve_key(kid)
        if key is None:
            raise TokenRejected("unknown_kid")

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=[JWT_ALGORITHM],
                audience=expected_audience,
                options={"require_aud": True},
            )
        except ExpiredSignatureError as exc:
            raise TokenRejected("token_expired") from exc
        except JWTError as exc:
            raise TokenRejected("invalid_token") from exc

        # jose also accepts an aud list containing the audience; require the exact string.
        if not _constant_time_equals(claims.get("aud"), expected_audience):
            raise TokenRejected("audience_mismatch")
        if not _constant_time_equals(claims.get("trial_id"), expected_trial_id):
            raise TokenRejected("trial_mismatch")

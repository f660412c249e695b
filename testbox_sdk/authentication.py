"""Per-request authentication state and the guard every fulfillment path calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from testbox_sdk.exceptions import AuthenticationError
from testbox_sdk.verifier import TokenVerifier


@dataclass(eq=False)
class AuthenticationState:
    """Monotonic authentication state of one inbound request."""

    token: str | None = field(default=None, repr=False)

    @property
    def authenticated(self) -> bool:
        """Return True once a token has been verified for the request."""
        return self.token is not None

    def record(self, token: str) -> None:
        """Mark the request authenticated with the verified token."""
        self.token = token


class HasAuthentication(Protocol):
    """Anything bound to a trial that carries an authentication state."""

    @property
    def trial_id(self) -> str: ...

    @property
    def auth(self) -> AuthenticationState: ...


async def verify_token(
    request: HasAuthentication,
    token: str,
    verifier: TokenVerifier,
    audience: str,
) -> bool:
    """Verify ``token`` for the request's trial and record it on success.

    A failed verification never revokes an earlier success.
    """
    verified = await verifier.verify(token, request.trial_id, audience)
    if verified:
        request.auth.record(token)
    return verified


def assert_authenticated(request: HasAuthentication) -> str:
    """Return the verified token or raise when the request was never authenticated."""
    token = request.auth.token
    if token is None:
        raise AuthenticationError(
            "You did not verify the JWT of the TestBox request before fulfilling it."
        )
    return token

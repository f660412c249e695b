"""SDK data contract types."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, NotRequired, TypedDict

SUPPORTED_VERSION = 1

Scalar = str | int | float | bool
Extras = dict[str, Any]


class UseCaseType(str, Enum):
    """Named scenarios a partner can return demonstration URLs for."""

    CUSTOMER_SUPPORT_TICKET_TAGGING = "customer-support-ticket-tagging"
    CUSTOMER_SUPPORT_CANNED_RESPONSES = "customer-support-canned-responses"


USE_CASE_TYPE_VALUES = frozenset(member.value for member in UseCaseType)


class User(TypedDict):
    """A user able to sign in to a provisioned trial."""

    email: str
    password: NotRequired[str]
    totp_token: NotRequired[str]
    extras: NotRequired[Extras]


class SecretContext(TypedDict, total=False):
    """Secrets TestBox needs to mint SSO sessions into the trial."""

    sso_jwt_secret: str
    extras: Extras


class AdminAuthentication(TypedDict):
    """Administrative credentials for a provisioned trial."""

    user: User
    api_token: NotRequired[str]
    extras: NotRequired[Extras]


class TrialPayload(TypedDict):
    """Serialized trial entity exchanged with TestBox."""

    admin_authentication: AdminAuthentication
    trial_users: list[User]
    created_at: NotRequired[str]
    start_url_context: NotRequired[dict[str, Any]]
    secret_context: NotRequired[SecretContext]


class JWKS(TypedDict):
    """JWKS payload published by TestBox."""

    keys: list[dict[str, str]]


UseCaseUrls = Mapping[UseCaseType | str, str]

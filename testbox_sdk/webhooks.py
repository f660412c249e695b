"""Inbound TestBox request kinds built from validated payloads."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, TypeVar

from testbox_sdk.authentication import AuthenticationState
from testbox_sdk.exceptions import ValidationError
from testbox_sdk.trial import Trial
from testbox_sdk.types import UseCaseType
from testbox_sdk.validation import (
    TrialGuards,
    is_authenticated_request,
    is_bulk_use_case_request,
    is_trial_request,
    is_use_case_request,
)


def _invalid(cls: type) -> ValidationError:
    return ValidationError(f"An invalid payload was provided to the {cls.__name__} class.")


@dataclass(frozen=True)
class AuthenticatedRequest:
    """Bare request envelope: protocol version and trial id."""

    version: int
    trial_id: str
    auth: AuthenticationState = field(default_factory=AuthenticationState, compare=False)

    @classmethod
    def from_payload(cls, payload: Any, guards: TrialGuards | None = None) -> AuthenticatedRequest:
        """Validate the envelope and build the request."""
        del guards
        if not is_authenticated_request(payload):
            raise _invalid(cls)
        return cls(version=payload["version"], trial_id=payload["trial_id"])


@dataclass(frozen=True)
class TrialRequest:
    """Request to provision a new trial account."""

    version: int
    trial_id: str
    success_url: str
    failure_url: str
    auth: AuthenticationState = field(default_factory=AuthenticationState, compare=False)

    @classmethod
    def from_payload(cls, payload: Any, guards: TrialGuards | None = None) -> TrialRequest:
        """Validate a trial request payload and build the request."""
        del guards
        if not is_trial_request(payload):
            raise _invalid(cls)
        return cls(
            version=payload["version"],
            trial_id=payload["trial_id"],
            success_url=payload["success_url"],
            failure_url=payload["failure_url"],
        )


@dataclass(frozen=True)
class UseCaseRequest:
    """Request for the demonstration URL of one use case."""

    version: int
    trial_id: str
    use_case_type: UseCaseType
    trial_data: Trial
    success_url: str
    failure_url: str
    auth: AuthenticationState = field(default_factory=AuthenticationState, compare=False)

    @classmethod
    def from_payload(cls, payload: Any, guards: TrialGuards | None = None) -> UseCaseRequest:
        """Validate a use-case request payload and build the request."""
        if not is_use_case_request(payload, guards):
            raise _invalid(cls)
        return cls(
            version=payload["version"],
            trial_id=payload["trial_id"],
            use_case_type=UseCaseType(payload["use_case_type"]),
            trial_data=Trial.from_payload(payload["trial_data"], guards),
            success_url=payload["success_url"],
            failure_url=payload["failure_url"],
        )


@dataclass(frozen=True)
class BulkUseCaseRequest:
    """Request for the demonstration URLs of several use cases."""

    version: int
    trial_id: str
    use_case_types: tuple[UseCaseType, ...]
    trial_data: Trial
    success_url: str
    failure_url: str
    auth: AuthenticationState = field(default_factory=AuthenticationState, compare=False)

    @classmethod
    def from_payload(cls, payload: Any, guards: TrialGuards | None = None) -> BulkUseCaseRequest:
        """Validate a bulk use-case request payload and build the request."""
        if not is_bulk_use_case_request(payload, guards):
            raise _invalid(cls)
        return cls(
            version=payload["version"],
            trial_id=payload["trial_id"],
            use_case_types=tuple(UseCaseType(item) for item in payload["use_case_types"]),
            trial_data=Trial.from_payload(payload["trial_data"], guards),
            success_url=payload["success_url"],
            failure_url=payload["failure_url"],
        )


WebhookRequest = AuthenticatedRequest | TrialRequest | UseCaseRequest | BulkUseCaseRequest
CallbackRequest = TrialRequest | UseCaseRequest | BulkUseCaseRequest
RequestT = TypeVar(
    "RequestT", AuthenticatedRequest, TrialRequest, UseCaseRequest, BulkUseCaseRequest
)

MAX_PAYLOAD_DEPTH = 64


def _exceeds_depth(payload: Any, limit: int) -> bool:
    """Return True when objects or arrays nest deeper than ``limit``."""
    stack: list[tuple[Any, int]] = [(payload, 1)]
    while stack:
        value, depth = stack.pop()
        if isinstance(value, dict):
            children = list(value.values())
        elif isinstance(value, list):
            children = value
        else:
            continue
        if depth > limit:
            return True
        stack.extend((child, depth + 1) for child in children)
    return False


def parse_request_body(
    request_type: type[RequestT],
    body: bytes | str | dict[str, Any],
    guards: TrialGuards | None = None,
) -> RequestT:
    """Build a request of ``request_type`` from a raw or already decoded JSON body."""
    payload: Any = body
    if isinstance(body, (bytes, str)):
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
            raise ValidationError(
                f"The body provided to the {request_type.__name__} class is not valid JSON."
            ) from exc
    if _exceeds_depth(payload, MAX_PAYLOAD_DEPTH):
        raise ValidationError(
            f"The body provided to the {request_type.__name__} class is nested too deeply."
        )
    return request_type.from_payload(payload, guards)  # type: ignore[return-value]

"""Trial entity builder."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from testbox_sdk.exceptions import TrialBuilderError, ValidationError
from testbox_sdk.types import AdminAuthentication, SecretContext, TrialPayload, User
from testbox_sdk.validation import TrialGuards, is_trial


class Trial:
    """Mutable, chainable builder for the account bundle returned to TestBox.

    Setters merge into the nested structures instead of replacing them, and
    return the same instance so chained and re-assigned calls are equivalent.
    In strict mode credentials can only be attached once an admin email
    exists; otherwise an admin user is synthesized on demand.
    """

    def __init__(self, *, strict: bool = False, created_at: datetime | None = None) -> None:
        self.start_url_context: dict[str, Any] | None = None
        self.secret_context: SecretContext | None = None
        self.admin_authentication: AdminAuthentication | None = None
        self.trial_users: list[User] = []
        self.created_at = created_at or datetime.now(UTC)
        self._strict = strict

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        guards: TrialGuards | None = None,
        *,
        strict: bool = False,
    ) -> Trial:
        """Build a trial from a payload that satisfies the trial guard."""
        if not is_trial(payload, guards):
            raise ValidationError("An invalid trial payload was provided to the Trial class.")

        trial = cls(strict=strict, created_at=_parse_created_at(payload.get("created_at")))
        trial.admin_authentication = copy.deepcopy(payload["admin_authentication"])
        trial.trial_users = copy.deepcopy(payload["trial_users"])
        trial.start_url_context = copy.deepcopy(payload.get("start_url_context"))
        trial.secret_context = copy.deepcopy(payload.get("secret_context"))
        return trial

    def set_email(self, email: str) -> Trial:
        """Set the admin user's email, creating the admin identity if needed."""
        if self.admin_authentication is None:
            self.admin_authentication = {"user": {"email": email}}
        else:
            self.admin_authentication["user"]["email"] = email
        return self

    def set_password(self, password: str) -> Trial:
        """Attach a password to the admin user."""
        self._admin_user("password")["password"] = password
        return self

    def set_totp_token(self, totp_token: str) -> Trial:
        """Attach a TOTP seed to the admin user."""
        self._admin_user("totp_token")["totp_token"] = totp_token
        return self

    def set_api_key(self, api_key: str) -> Trial:
        """Set the admin API token used to ingest data into the trial."""
        self._admin_user("api_token")
        self.admin_authentication["api_token"] = api_key  # type: ignore[index]
        return self

    def set_subdomain(self, subdomain: str) -> Trial:
        """Set the subdomain TestBox uses to build start URLs."""
        return self.set_start_url_context(subdomain=subdomain)

    def set_start_url_context(self, **values: Any) -> Trial:
        """Merge values into the start URL context."""
        self.start_url_context = {**(self.start_url_context or {}), **values}
        return self

    def set_jwt_secret(self, secret: str) -> Trial:
        """Set the shared secret used for JWT SSO into the trial."""
        self.secret_context = {**(self.secret_context or {}), "sso_jwt_secret": secret}
        return self

    def set_secret_extras(self, **extras: Any) -> Trial:
        """Merge partner-specific secrets into the secret context."""
        context: SecretContext = {**(self.secret_context or {})}
        context["extras"] = {**context.get("extras", {}), **extras}
        self.secret_context = context
        return self

    def add_user(self, user: User) -> Trial:
        """Append a trial user."""
        self.trial_users.append(copy.deepcopy(user))
        return self

    def validate(self, guards: TrialGuards | None = None) -> bool:
        """Return True when the trial is complete enough to submit."""
        return bool(self.trial_users) and is_trial(self.to_dict(), guards)

    def to_dict(self) -> TrialPayload:
        """Return a JSON-serializable copy of the trial."""
        payload: dict[str, Any] = {
            "trial_users": copy.deepcopy(self.trial_users),
            "created_at": self.created_at.isoformat(),
        }
        if self.admin_authentication is not None:
            payload["admin_authentication"] = copy.deepcopy(self.admin_authentication)
        if self.start_url_context is not None:
            payload["start_url_context"] = copy.deepcopy(self.start_url_context)
        if self.secret_context is not None:
            payload["secret_context"] = copy.deepcopy(self.secret_context)
        return payload  # type: ignore[return-value]

    def _admin_user(self, field: str) -> User:
        """Return the admin user dict, enforcing the strict ordering policy."""
        if self._strict and (
            self.admin_authentication is None or "email" not in self.admin_authentication["user"]
        ):
            raise TrialBuilderError(f"Set an admin email before setting {field}.")
        if self.admin_authentication is None:
            self.admin_authentication = {"user": {}}  # type: ignore[typeddict-item]
        return self.admin_authentication["user"]


def _parse_created_at(value: Any) -> datetime | None:
    """Parse the optional created_at field from a trial payload."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError("Trial created_at must be an ISO-8601 timestamp.") from exc

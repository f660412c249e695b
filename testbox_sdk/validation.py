"""Structural guards for untrusted TestBox webhook payloads.

Every guard is a pure predicate over parsed JSON. Request and trial shapes are
closed: a missing required key or any key outside the allowed set rejects the
payload. Partner-specific ``extras`` are only accepted as plain objects unless
a matching predicate in :class:`TrialGuards` is supplied, in which case the
predicate decides.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from testbox_sdk.types import SUPPORTED_VERSION, USE_CASE_TYPE_VALUES, Scalar

Guard = Callable[[Any], bool]

ENVELOPE_KEYS = frozenset({"version", "trial_id"})
TRIAL_REQUEST_KEYS = ENVELOPE_KEYS | {"success_url", "failure_url"}
USE_CASE_REQUEST_KEYS = TRIAL_REQUEST_KEYS | {"use_case_type", "trial_data"}
BULK_USE_CASE_REQUEST_KEYS = TRIAL_REQUEST_KEYS | {"use_case_types", "trial_data"}

TRIAL_KEYS = frozenset(
    {"start_url_context", "secret_context", "admin_authentication", "trial_users", "created_at"}
)
ADMIN_AUTHENTICATION_KEYS = frozenset({"api_token", "user", "extras"})
USER_KEYS = frozenset({"email", "password", "totp_token", "extras"})
SECRET_CONTEXT_KEYS = frozenset({"sso_jwt_secret", "extras"})

MAX_CONTEXT_DEPTH = 32


@dataclass(frozen=True)
class TrialGuards:
    """Optional predicates for partner-defined extension fields."""

    start_url_guard: Guard | None = None
    secret_extras_guard: Guard | None = None
    admin_extras_guard: Guard | None = None
    user_extras_guard: Guard | None = None


_NO_GUARDS = TrialGuards()


def has_all_keys(obj: Mapping[str, Any], required: Iterable[str]) -> bool:
    """Return True when every required key is present."""
    return all(key in obj for key in required)


def only_valid_keys(obj: Mapping[str, Any], allowed: Iterable[str]) -> bool:
    """Return True when the object carries no key outside the allowed set."""
    return set(obj).issubset(allowed)


def _is_closed_object(obj: Any, required: frozenset[str], allowed: frozenset[str]) -> bool:
    return isinstance(obj, dict) and has_all_keys(obj, required) and only_valid_keys(obj, allowed)


def _is_supported_version(value: Any) -> bool:
    # bool is a subclass of int, so `True` must not pass as version 1.
    return type(value) is int and value == SUPPORTED_VERSION


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _optional_string(obj: Mapping[str, Any], key: str) -> bool:
    return key not in obj or isinstance(obj[key], str)


def _extras_allowed(obj: Mapping[str, Any], guard: Guard | None) -> bool:
    if "extras" not in obj:
        return True
    if guard is not None:
        return bool(guard(obj["extras"]))
    return isinstance(obj["extras"], dict)


def _is_context_value(value: Any, depth: int = 0) -> bool:
    if isinstance(value, Scalar):
        return True
    if isinstance(value, dict) and depth < MAX_CONTEXT_DEPTH:
        return all(
            isinstance(key, str) and _is_context_value(item, depth + 1)
            for key, item in value.items()
        )
    return False


def is_user(user: Any, guards: TrialGuards | None = None) -> bool:
    """Return True when value is a trial or admin user object."""
    guards = guards or _NO_GUARDS
    if not _is_closed_object(user, frozenset({"email"}), USER_KEYS):
        return False
    if not isinstance(user["email"], str):
        return False
    if not (_optional_string(user, "password") and _optional_string(user, "totp_token")):
        return False
    return _extras_allowed(user, guards.user_extras_guard)


def is_secret_context(context: Any, extras_guard: Guard | None = None) -> bool:
    """Return True when value is an absent or well-formed secret context."""
    if context is None:
        return True
    if not _is_closed_object(context, frozenset(), SECRET_CONTEXT_KEYS):
        return False
    if not _optional_string(context, "sso_jwt_secret"):
        return False
    return _extras_allowed(context, extras_guard)


def is_start_url_context(context: Any, guard: Guard | None = None) -> bool:
    """Return True when value is an absent or well-formed start URL context."""
    if context is None:
        return True
    if guard is not None:
        return bool(guard(context))
    return isinstance(context, dict) and _is_context_value(context)


def is_admin_authentication(admin: Any, guards: TrialGuards | None = None) -> bool:
    """Return True when value is an admin authentication object."""
    guards = guards or _NO_GUARDS
    if not _is_closed_object(admin, frozenset({"user"}), ADMIN_AUTHENTICATION_KEYS):
        return False
    if not _optional_string(admin, "api_token"):
        return False
    if not is_user(admin["user"], guards):
        return False
    return _extras_allowed(admin, guards.admin_extras_guard)


def is_trial(trial: Any, guards: TrialGuards | None = None) -> bool:
    """Return True when value is a serialized trial entity."""
    guards = guards or _NO_GUARDS
    if not _is_closed_object(trial, frozenset({"admin_authentication", "trial_users"}), TRIAL_KEYS):
        return False
    if not is_admin_authentication(trial["admin_authentication"], guards):
        return False

    users = trial["trial_users"]
    if not isinstance(users, list) or not all(is_user(user, guards) for user in users):
        return False

    if "created_at" in trial and not isinstance(trial["created_at"], (str, datetime)):
        return False
    if not is_start_url_context(trial.get("start_url_context"), guards.start_url_guard):
        return False
    return is_secret_context(trial.get("secret_context"), guards.secret_extras_guard)


def is_authenticated_request(obj: Any) -> bool:
    """Return True when value carries a supported request envelope."""
    if not isinstance(obj, dict) or not has_all_keys(obj, ENVELOPE_KEYS):
        return False
    return _is_supported_version(obj["version"]) and _is_non_empty_string(obj["trial_id"])


def _has_callback_urls(obj: Mapping[str, Any]) -> bool:
    return isinstance(obj["success_url"], str) and isinstance(obj["failure_url"], str)


def is_trial_request(obj: Any) -> bool:
    """Return True when value is a trial request payload."""
    if not _is_closed_object(obj, TRIAL_REQUEST_KEYS, TRIAL_REQUEST_KEYS):
        return False
    return is_authenticated_request(obj) and _has_callback_urls(obj)


def is_use_case_request(obj: Any, guards: TrialGuards | None = None) -> bool:
    """Return True when value is a single use-case request payload."""
    if not _is_closed_object(obj, USE_CASE_REQUEST_KEYS, USE_CASE_REQUEST_KEYS):
        return False
    if not (is_authenticated_request(obj) and _has_callback_urls(obj)):
        return False
    use_case_type = obj["use_case_type"]
    if not isinstance(use_case_type, str) or use_case_type not in USE_CASE_TYPE_VALUES:
        return False
    return is_trial(obj["trial_data"], guards)


def is_bulk_use_case_request(obj: Any, guards: TrialGuards | None = None) -> bool:
    """Return True when value is a bulk use-case request payload."""
    if not _is_closed_object(obj, BULK_USE_CASE_REQUEST_KEYS, BULK_USE_CASE_REQUEST_KEYS):
        return False
    if not (is_authenticated_request(obj) and _has_callback_urls(obj)):
        return False

    use_case_types = obj["use_case_types"]
    if not isinstance(use_case_types, list) or not use_case_types:
        return False
    if not all(
        isinstance(item, str) and item in USE_CASE_TYPE_VALUES for item in use_case_types
    ):
        return False
    return is_trial(obj["trial_data"], guards)

"""Public SDK exports."""

from testbox_sdk.authentication import AuthenticationState, assert_authenticated, verify_token
from testbox_sdk.config import Framework, KeySource, Settings
from testbox_sdk.exceptions import (
    AuthenticationError,
    SDKError,
    ServiceResponseError,
    ServiceUnavailableError,
    TrialBuilderError,
    ValidationError,
)
from testbox_sdk.integration import Integration
from testbox_sdk.trial import Trial
from testbox_sdk.types import UseCaseType
from testbox_sdk.validation import TrialGuards
from testbox_sdk.webhooks import (
    AuthenticatedRequest,
    BulkUseCaseRequest,
    TrialRequest,
    UseCaseRequest,
)

__all__ = [
    "AuthenticatedRequest",
    "AuthenticationError",
    "AuthenticationState",
    "BulkUseCaseRequest",
    "Framework",
    "Integration",
    "KeySource",
    "SDKError",
    "ServiceResponseError",
    "ServiceUnavailableError",
    "Settings",
    "Trial",
    "TrialBuilderError",
    "TrialGuards",
    "TrialRequest",
    "UseCaseRequest",
    "UseCaseType",
    "ValidationError",
    "assert_authenticated",
    "verify_token",
]

"""SDK exception hierarchy."""

from __future__ import annotations


class SDKError(Exception):
    """Base class for all SDK-specific exceptions."""


class ValidationError(SDKError):
    """Raised when a webhook payload does not match the expected shape."""


class AuthenticationError(SDKError):
    """Raised when a request is fulfilled before its token was verified."""


class TrialBuilderError(SDKError):
    """Raised when a strict trial builder is used out of order."""


class ServiceUnavailableError(SDKError):
    """Raised when TestBox or a callback URL is temporarily unreachable."""


class ServiceResponseError(SDKError):
    """Raised when a remote endpoint returns malformed or unexpected data."""

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        """Initialize with optional HTTP status code context."""
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code

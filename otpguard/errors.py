"""
Error taxonomy for the OTP engine.

Every error carries the HTTP status and the user-facing message the
boundary layer should render. Rate-limit and format errors are
recoverable by the caller; delivery and repository errors are transient
infrastructure failures and are surfaced as a generic failure.
"""

from __future__ import annotations

from enum import Enum

from fastapi import status


class RateLimitScope(str, Enum):
    SOURCE_WINDOW = "source-window"
    SOURCE_DAILY = "source-daily"
    IDENTITY_GAP = "identity-gap"
    IDENTITY_HOURLY = "identity-hourly"
    IDENTITY_DAILY = "identity-daily"


class OTPError(Exception):
    """Base class for errors rendered as ``{success: false, message}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class RateLimitedError(OTPError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(
        self,
        scope: RateLimitScope,
        message: str,
        *,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(message, retry_after=retry_after)
        self.scope = scope


class InvalidIdentityFormatError(OTPError):
    status_code = status.HTTP_400_BAD_REQUEST


class DeliveryFailedError(OTPError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Failed to send OTP. Please try again.") -> None:
        super().__init__(message)


class RepositoryUnavailableError(OTPError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "OTP service temporarily unavailable. Please try again.") -> None:
        super().__init__(message)

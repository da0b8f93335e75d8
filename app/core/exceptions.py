"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input rejected before any write
    ├── NotFoundError - Chat, message or user does not exist
    ├── PermissionDeniedError - Caller is not allowed to touch the resource
    ├── RateLimitError - Fixed-window limit exceeded
    └── ExternalServiceError - Third-party service failures (model API, push)

Every exception carries an HTTP status used by
core.views.application_exception_handler when it escapes a DRF view.

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Message text cannot be empty", error_code="EMPTY_CONTENT")

    try:
        store.edit(chat_id, message_id, text)
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, retry hints, ids)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Chat not found",
                "error_code": "CHAT_NOT_FOUND",
                "details": {"chat_id": "a__b"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when mutation input is malformed.

    Raised before anything is written, e.g. an edit whose text trims to
    an empty string or a message with neither text nor attachments.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a chat, message or user lookup finds nothing."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    Typical case: a mutation on a chat the caller does not participate in.
    Clients treat it as a hard failure and do not retry.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class RateLimitError(BaseApplicationError):
    """
    Raised when a fixed-window rate limit is exceeded.

    details["retry_after"] holds the seconds until the window resets.
    Callers should surface a wait message instead of retrying immediately.
    """

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
    http_status: int = 429


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging but don't expose internal
    details to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502

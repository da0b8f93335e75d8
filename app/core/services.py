"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Pattern Comparison:
    - ServiceResult: expected failures on best-effort paths (presence writes,
      lobby bootstrap, push delivery) where the caller must keep going
    - Exceptions (core.exceptions): failures the caller has to see, such as
      a rejected mutation in the message store

Usage:
    from core.services import BaseService, ServiceResult

    class PresenceService(BaseService):
        @classmethod
        def set_status(cls, user_id, status: str) -> ServiceResult[dict]:
            if status not in ("online", "away", "offline"):
                return ServiceResult.failure("Invalid status", error_code="INVALID_STATUS")

            with cls.atomic():
                User.objects.filter(id=user_id).update(is_online=status == "online")

            cls.get_logger().info(f"Presence for {user_id} set to {status}")
            return ServiceResult.success({"status": status})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        result = PresenceService.set_status(user.id, "online")
        if not result:
            logger.warning(f"Presence write failed: {result.error}")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """Create a failed result from a caught exception."""
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - Logging setup per service
    - Database transaction management
    - Exception-to-result conversion for best-effort operations

    Design Notes:
        - Use @classmethod (no instance state) unless the service holds
          injected collaborators, like MessageStore does
        - Use ServiceResult for expected failures
        - Raise exceptions for failures the caller must handle
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get a logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Example:
            with cls.atomic():
                chat = Chat.objects.create(id=dm_id, chat_type=ChatType.DM)
                chat.participants.add(user, other)
                # If adding participants fails, the chat row is rolled back
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Log an exception and convert it to a failed ServiceResult.

        Used at "log and continue" boundaries where a failure must not
        propagate into the caller's control flow.
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=True)
        return ServiceResult.from_exception(exc)

"""
Chat-specific exceptions.

Exception Hierarchy:
    ValidationError (core)
    └── ModerationRejectedError - Send blocked by the moderation check
    ExternalServiceError (core)
    └── UploadFailedError - Attachment upload did not complete

Usage:
    from chat.exceptions import ModerationRejectedError

    try:
        pipeline.send(chat_id, user.id, text="...")
    except ModerationRejectedError as e:
        show_notice(e.details["reason"])
"""

from __future__ import annotations

from core.exceptions import ExternalServiceError, ValidationError


class ModerationRejectedError(ValidationError):
    """
    Raised when moderation blocks a message before it is persisted.

    The optimistic entry has already been rolled back when this reaches
    the caller; details["reason"] carries the moderator's reason.
    """

    default_error_code: str = "MESSAGE_REJECTED"


class UploadFailedError(ExternalServiceError):
    """Raised when an attachment upload fails during a send."""

    default_error_code: str = "UPLOAD_FAILED"

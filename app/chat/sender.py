"""
Send pipeline.

One send moves through these steps, in order:
    1. A pending placeholder is inserted into the MessageTimeline
    2. The text passes the moderation gate
    3. Pending uploads run through the upload capability (progress is
       patched onto the placeholder)
    4. MessageStore.create persists the message
    5. The placeholder is settled with the persisted record, unioning
       read_by with any copy the live snapshot already delivered

Any failure in steps 2-4 drops the placeholder and propagates to the
caller. A moderation block raises ModerationRejectedError.

Usage:
    pipeline = SendPipeline(timeline=timeline)
    record = pipeline.send(chat_id, user.id, text="Hello there")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from chat.exceptions import ModerationRejectedError, UploadFailedError
from chat.models import MessageType
from chat.records import AttachmentRecord, MessageRecord, ModerationVerdict
from chat.store import CreateMessageParams, MessageStore
from core.exceptions import BaseApplicationError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from chat.timeline import MessageTimeline

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Message was blocked by moderation."


@dataclass(frozen=True)
class PendingUpload:
    """A file that still has to be uploaded before the message is sent."""

    name: str
    content_type: str
    size: int
    content: bytes | None = None


class Uploader(Protocol):
    def __call__(
        self,
        chat_id: str,
        upload: PendingUpload,
        on_progress: Callable[[float], None],
    ) -> AttachmentRecord: ...


def infer_message_type(content_types: Iterable[str]) -> str:
    """
    Message type from attachment content types.

    No attachments is text; all images is image; all videos is video;
    anything else is file.
    """
    content_types = list(content_types)
    if not content_types:
        return MessageType.TEXT
    if all(ct.startswith("image/") for ct in content_types):
        return MessageType.IMAGE
    if all(ct.startswith("video/") for ct in content_types):
        return MessageType.VIDEO
    return MessageType.FILE


def default_moderator(text: str) -> ModerationVerdict:
    from ai.services import AIService

    result = AIService.moderate(text)
    return ModerationVerdict(
        status="approved" if result["approved"] else "rejected",
        reason=result.get("reason"),
    )


class SendPipeline:
    """
    Optimistic send for one chat session.

    Args:
        timeline: The session's MessageTimeline
        store: Persists the message (defaults to a new MessageStore)
        moderator: text -> ModerationVerdict (defaults to AIService.moderate)
        uploader: Upload capability for PendingUpload items
    """

    def __init__(
        self,
        timeline: MessageTimeline,
        store: MessageStore | None = None,
        moderator: Callable[[str], ModerationVerdict] | None = None,
        uploader: Uploader | None = None,
    ):
        self.timeline = timeline
        self.store = store or MessageStore()
        self.moderator = moderator or default_moderator
        self.uploader = uploader

    def send(
        self,
        chat_id: str,
        sender_id,
        text: str | None = None,
        attachments: Sequence[AttachmentRecord] = (),
        uploads: Sequence[PendingUpload] = (),
        participant_ids: Sequence[str] | None = None,
    ) -> MessageRecord:
        """
        Send a message optimistically.

        Args:
            chat_id: Target chat
            sender_id: Author
            text: Optional text (surrounding whitespace is dropped)
            attachments: Files that are already uploaded
            uploads: Files that still need the upload capability
            participant_ids: Fan-out hint passed through to the store

        Returns:
            The persisted MessageRecord

        Raises:
            ValidationError: No text and no files
            ModerationRejectedError: Moderation blocked the text
            UploadFailedError: An upload failed
        """
        text = (text or "").strip() or None
        if text is None and not attachments and not uploads:
            raise ValidationError("Message needs text or attachments", error_code="EMPTY_MESSAGE")
        if uploads and self.uploader is None:
            raise ValidationError("No upload capability configured", error_code="UPLOADS_UNSUPPORTED")

        content_types = [a.content_type for a in attachments] + [u.content_type for u in uploads]
        placeholder = MessageRecord.optimistic(
            chat_id=chat_id,
            sender_id=str(sender_id),
            message_type=infer_message_type(content_types),
            text=text,
            attachments=tuple(attachments),
        )
        self.timeline.prepend_optimistic(placeholder)

        try:
            verdict = self._moderate(text)
            uploaded = list(attachments) + self._upload_all(chat_id, placeholder.id, uploads)
            record = self.store.create(
                CreateMessageParams(
                    chat_id=chat_id,
                    sender_id=str(sender_id),
                    text=text,
                    attachments=uploaded,
                    message_type=infer_message_type(a.content_type for a in uploaded),
                    participant_ids=participant_ids,
                    moderation=verdict,
                )
            )
        except Exception as exc:
            self.timeline.settle(placeholder.id, None)
            if isinstance(exc, BaseApplicationError):
                logger.info(f"Send to chat {chat_id} rolled back: {exc}")
            else:
                logger.exception(f"Send to chat {chat_id} failed unexpectedly")
            raise

        self.timeline.settle(placeholder.id, record, merge_read_by=True)
        return record

    def _moderate(self, text: str | None) -> ModerationVerdict | None:
        if text is None:
            return None
        verdict = self.moderator(text)
        if not verdict.approved:
            reason = verdict.reason or DEFAULT_REJECTION_REASON
            raise ModerationRejectedError(reason, details={"reason": reason})
        return verdict

    def _upload_all(
        self, chat_id: str, placeholder_id: str, uploads: Sequence[PendingUpload]
    ) -> list[AttachmentRecord]:
        results: list[AttachmentRecord] = []
        total = len(uploads)
        for index, upload in enumerate(uploads):

            def on_progress(fraction: float, index=index) -> None:
                overall = (index + max(0.0, min(1.0, fraction))) / total
                self.timeline.update_patch(placeholder_id, upload_progress=overall)

            try:
                results.append(self.uploader(chat_id, upload, on_progress))
            except BaseApplicationError:
                raise
            except Exception as exc:
                raise UploadFailedError(
                    f"Upload of {upload.name} failed",
                    details={"name": upload.name},
                ) from exc
        return results

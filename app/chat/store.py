"""
Message store for one chat at a time.

All reads and writes of messages go through MessageStore. Reads pass the
serializer boundary (MessageSerializer -> MessageRecordSerializer.parse), so
callers only ever see MessageRecord values with deleted content hidden.

Operations:
    subscribe_latest: live window of the newest messages
    latest_page / load_older: keyset pagination on (created_at, id)
    create / edit / soft_delete: message lifecycle
    toggle_reaction / mark_read: per-user annotations

Errors:
    One-shot operations raise core.exceptions errors:
        NotFoundError          - chat or message does not exist
        PermissionDeniedError  - caller is not a participant (or not the sender)
        ValidationError        - empty or oversized content
    Subscription errors are logged and passed to on_error; the caller's
    previously delivered snapshot stays valid.

Usage:
    from chat.store import CreateMessageParams, MessageStore

    store = MessageStore()
    record = store.create(CreateMessageParams(chat_id=chat.id, sender_id=user.id, text="Hi"))
    subscription = store.subscribe_latest(chat.id, 40, on_snapshot=timeline.merge_incoming_page)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from chat.constants import MESSAGE_CONFIG
from chat.models import Attachment, Chat, Message, MessageReaction, MessageRead, MessageType
from chat.realtime import get_change_feed, messages_topic, notify_messages_changed
from chat.records import PageSnapshot
from chat.serializers import AttachmentRecordSerializer, MessageRecordSerializer, MessageSerializer
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from notifications.tasks import send_message_notification

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from chat.realtime import ChangeFeed, Subscription
    from chat.records import AttachmentRecord, MessageRecord, ModerationVerdict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateMessageParams:
    """
    Input for MessageStore.create.

    Attachments must already be uploaded. participant_ids is an optional
    hint for notification fan-out; when omitted the chat's participants are
    read inside the write transaction.
    """

    chat_id: str
    sender_id: str
    text: str | None = None
    attachments: Sequence[AttachmentRecord] = ()
    message_type: str = MessageType.TEXT
    participant_ids: Sequence[str] | None = None
    moderation: ModerationVerdict | None = None


def attachment_summary(count: int) -> str:
    return f"{count} attachment{'s' if count != 1 else ''}"


class MessageStore:
    """
    CRUD and live subscription over a chat's messages.

    Args:
        feed: Change feed that committed writes publish to (defaults to the
            process-wide feed)
    """

    def __init__(self, feed: ChangeFeed | None = None):
        self.feed = feed or get_change_feed()

    # =========================================================================
    # Reads
    # =========================================================================

    def _queryset(self, chat_id: str):
        return Message.objects.filter(chat_id=chat_id).prefetch_related(
            "attachments", "reactions", "reads"
        )

    def _to_records(self, messages: Iterable[Message]) -> list[MessageRecord]:
        data = MessageSerializer(messages, many=True).data
        return [MessageRecordSerializer.parse(item) for item in data]

    def get(self, chat_id: str, message_id) -> MessageRecord:
        parsed_id = _parse_message_id(message_id)
        message = (
            self._queryset(chat_id).filter(id=parsed_id).first() if parsed_id else None
        )
        if message is None:
            raise NotFoundError(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"chat_id": chat_id, "message_id": str(message_id)},
            )
        return self._to_records([message])[0]

    def latest_page(self, chat_id: str, page_size: int) -> PageSnapshot:
        """Newest page_size messages, returned oldest first."""
        _check_page_size(page_size)
        rows = list(self._queryset(chat_id).order_by("-created_at", "-id")[:page_size])
        rows.reverse()
        return PageSnapshot.from_messages(self._to_records(rows), page_size)

    def load_older(self, chat_id: str, before_message_id, page_size: int) -> PageSnapshot:
        """
        Page of messages strictly before the cursor message.

        Ordering is (created_at, id), so messages sharing the cursor's
        instant are split by id and never repeated or skipped.
        """
        _check_page_size(page_size)
        parsed_id = _parse_message_id(before_message_id)
        cursor = (
            Message.objects.filter(chat_id=chat_id, id=parsed_id)
            .values("created_at", "id")
            .first()
            if parsed_id
            else None
        )
        if cursor is None:
            raise NotFoundError(
                "Cursor message not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"chat_id": chat_id, "message_id": str(before_message_id)},
            )

        rows = list(
            self._queryset(chat_id)
            .filter(
                Q(created_at__lt=cursor["created_at"])
                | Q(created_at=cursor["created_at"], id__lt=cursor["id"])
            )
            .order_by("-created_at", "-id")[:page_size]
        )
        rows.reverse()
        return PageSnapshot.from_messages(self._to_records(rows), page_size)

    def subscribe_latest(
        self,
        chat_id: str,
        page_size: int,
        on_snapshot: Callable[[PageSnapshot], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Subscription:
        """
        Deliver the newest page now and again after every committed change.

        Each emission is the full current window, not a delta.
        """
        _check_page_size(page_size)

        def emit(_payload=None):
            on_snapshot(self.latest_page(chat_id, page_size))

        subscription = self.feed.listen(messages_topic(chat_id), emit, on_error=on_error)
        try:
            emit()
        except Exception as exc:
            logger.exception(f"Initial snapshot for chat {chat_id} failed")
            if on_error is not None:
                on_error(exc)
        return subscription

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, params: CreateMessageParams) -> MessageRecord:
        """
        Persist a new message with a server-assigned creation instant.

        The sender is recorded as a reader, the chat's last-message preview
        is updated, and notification fan-out is queued after commit.
        """
        text = params.text
        attachments = list(params.attachments)
        if not (text or "").strip() and not attachments:
            raise ValidationError(
                "Message needs text or attachments",
                error_code="EMPTY_MESSAGE",
            )
        if text and len(text) > MESSAGE_CONFIG.MAX_TEXT_LENGTH:
            raise ValidationError(
                "Message text is too long",
                error_code="TEXT_TOO_LONG",
                details={"max_length": MESSAGE_CONFIG.MAX_TEXT_LENGTH},
            )
        _check_attachments(attachments)

        with transaction.atomic():
            chat = self._get_chat_for_participant(params.chat_id, params.sender_id)

            message = Message.objects.create(
                chat=chat,
                sender_id=params.sender_id,
                text=text,
                message_type=params.message_type,
                moderation_status=params.moderation.status if params.moderation else None,
                moderation_reason=params.moderation.reason if params.moderation else None,
            )
            Attachment.objects.bulk_create(
                [
                    Attachment(
                        message=message,
                        position=position,
                        attachment_id=item.id,
                        storage_path=item.storage_path,
                        download_url=item.download_url,
                        content_type=item.content_type,
                        size=item.size,
                        name=item.name,
                        width=item.width,
                        height=item.height,
                        duration=item.duration,
                    )
                    for position, item in enumerate(attachments)
                ]
            )
            MessageRead.objects.create(message=message, user_id=params.sender_id)

            chat.last_message = text if (text or "").strip() else attachment_summary(len(attachments))
            chat.last_message_at = message.created_at
            chat.save(update_fields=["last_message", "last_message_at", "updated_at"])

            participant_ids = [
                str(uid)
                for uid in (
                    params.participant_ids
                    if params.participant_ids is not None
                    else chat.participants.values_list("id", flat=True)
                )
            ]
            chat_id, message_id = chat.id, str(message.id)
            transaction.on_commit(
                lambda: send_message_notification.delay(chat_id, message_id, participant_ids)
            )

        logger.info(f"Message {message.id} created in chat {chat.id} by {params.sender_id}")
        return self.get(chat.id, message.id)

    def edit(self, chat_id: str, message_id, new_text: str, actor_id=None) -> MessageRecord:
        """
        Replace a message's text and stamp edited_at.

        Attachments and reactions are untouched.

        Raises:
            ValidationError: new_text trims to empty (nothing is written)
        """
        if not (new_text or "").strip():
            raise ValidationError("Message text cannot be empty", error_code="EMPTY_TEXT")
        if len(new_text) > MESSAGE_CONFIG.MAX_TEXT_LENGTH:
            raise ValidationError("Message text is too long", error_code="TEXT_TOO_LONG")

        message = self._get_message(chat_id, message_id)
        self._check_sender(message, actor_id, "edit")
        if message.is_deleted:
            raise ValidationError("Deleted messages cannot be edited", error_code="MESSAGE_DELETED")

        message.text = new_text
        message.edited_at = timezone.now()
        message.save(update_fields=["text", "edited_at", "updated_at"])
        logger.info(f"Message {message_id} in chat {chat_id} edited")
        return self.get(chat_id, message_id)

    def soft_delete(self, chat_id: str, message_id, actor_id=None) -> MessageRecord:
        """Mark a message deleted; storage keeps the content for audit."""
        message = self._get_message(chat_id, message_id)
        self._check_sender(message, actor_id, "delete")
        message.soft_delete()
        logger.info(f"Message {message_id} in chat {chat_id} soft deleted")
        return self.get(chat_id, message_id)

    def toggle_reaction(self, chat_id: str, message_id, emoji: str, user_id) -> MessageRecord:
        """
        Add the user's reaction with emoji, or remove it if present.

        Each user only touches their own row, so concurrent toggles from
        different users on the same emoji never conflict.
        """
        emoji = (emoji or "").strip()
        if not emoji:
            raise ValidationError("Emoji is required", error_code="EMPTY_EMOJI")

        message = self._get_message(chat_id, message_id)
        self._check_participant(message.chat, user_id)

        with transaction.atomic():
            deleted, _ = MessageReaction.objects.filter(
                message=message, user_id=user_id, emoji=emoji
            ).delete()
            if not deleted:
                MessageReaction.objects.get_or_create(message=message, user_id=user_id, emoji=emoji)
        return self.get(chat_id, message_id)

    def mark_read(self, chat_id: str, message_ids: Iterable, user_id) -> int:
        """
        Add user_id to the readers of each message.

        Idempotent; ids already read by the user and unknown ids are
        skipped. Writes in batches of MESSAGE_CONFIG.MARK_READ_BATCH.

        Returns:
            Number of new read receipts written
        """
        ids = list(
            dict.fromkeys(
                str(parsed) for parsed in map(_parse_message_id, message_ids) if parsed is not None
            )
        )
        if not ids:
            return 0
        chat = self._get_chat_for_participant(chat_id, user_id)

        valid_ids = {
            str(mid)
            for mid in Message.objects.filter(chat=chat, id__in=ids).values_list("id", flat=True)
        }
        already_read = {
            str(mid)
            for mid in MessageRead.objects.filter(
                user_id=user_id, message_id__in=valid_ids
            ).values_list("message_id", flat=True)
        }
        pending = [mid for mid in ids if mid in valid_ids and mid not in already_read]
        if not pending:
            return 0

        batch = MESSAGE_CONFIG.MARK_READ_BATCH
        with transaction.atomic():
            for start in range(0, len(pending), batch):
                MessageRead.objects.bulk_create(
                    [
                        MessageRead(message_id=mid, user_id=user_id)
                        for mid in pending[start : start + batch]
                    ],
                    ignore_conflicts=True,
                )
            # bulk_create sends no post_save
            transaction.on_commit(lambda: notify_messages_changed(chat.id, self.feed), robust=True)

        logger.debug(f"User {user_id} read {len(pending)} messages in chat {chat_id}")
        return len(pending)

    # =========================================================================
    # Helpers
    # =========================================================================

    def require_participant(self, chat_id: str, user_id) -> Chat:
        """
        Raises:
            NotFoundError: Chat does not exist
            PermissionDeniedError: user_id is not a participant
        """
        return self._get_chat_for_participant(chat_id, user_id)

    def _get_chat_for_participant(self, chat_id: str, user_id) -> Chat:
        chat = Chat.objects.filter(id=chat_id).first()
        if chat is None:
            raise NotFoundError(
                "Chat not found", error_code="CHAT_NOT_FOUND", details={"chat_id": chat_id}
            )
        self._check_participant(chat, user_id)
        return chat

    def _check_participant(self, chat: Chat, user_id) -> None:
        if user_id is not None and not chat.has_participant(user_id):
            raise PermissionDeniedError(
                "You are not a participant in this chat",
                error_code="NOT_A_PARTICIPANT",
                details={"chat_id": chat.id},
            )

    def _check_sender(self, message: Message, actor_id, action: str) -> None:
        if actor_id is None:
            return
        self._check_participant(message.chat, actor_id)
        if str(message.sender_id) != str(actor_id):
            raise PermissionDeniedError(
                f"Only the sender can {action} this message",
                error_code="NOT_MESSAGE_SENDER",
            )

    def _get_message(self, chat_id: str, message_id) -> Message:
        parsed_id = _parse_message_id(message_id)
        message = (
            Message.objects.select_related("chat")
            .filter(chat_id=chat_id, id=parsed_id)
            .first()
            if parsed_id
            else None
        )
        if message is None:
            raise NotFoundError(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"chat_id": chat_id, "message_id": str(message_id)},
            )
        return message


def _parse_message_id(message_id) -> uuid.UUID | None:
    try:
        return message_id if isinstance(message_id, uuid.UUID) else uuid.UUID(str(message_id))
    except (TypeError, ValueError):
        return None


def _check_page_size(page_size: int) -> None:
    if page_size <= 0:
        raise ValidationError("page_size must be positive", error_code="INVALID_PAGE_SIZE")


def _check_attachments(attachments: Sequence[AttachmentRecord]) -> None:
    """Reject attachment metadata the read boundary would not parse back."""
    for position, item in enumerate(attachments):
        serializer = AttachmentRecordSerializer(data=asdict(item))
        if not serializer.is_valid():
            raise ValidationError(
                "Attachment metadata is invalid",
                error_code="INVALID_ATTACHMENT",
                details={"position": position, "errors": serializer.errors},
            )

"""
Typed records exchanged by the chat pipeline.

Model instances never leave the store: every read goes through
chat.serializers and comes out as one of these frozen dataclasses. The
merge engine, roster and consumers work only with records.

Records:
    MessageRecord: One message as readers see it (deleted content hidden)
    AttachmentRecord: Uploaded file metadata
    PageSnapshot: One window of messages, oldest first
    ChatRecord / ChatSummary: A chat and its display summary
    UserRecord: Public identity of a participant
    TypingRecord: One user's typing flag
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from django.utils import timezone

from chat.constants import MESSAGE_CONFIG

OPTIMISTIC_PREFIX = MESSAGE_CONFIG.OPTIMISTIC_PREFIX


class Delivery(enum.Enum):
    """Whether a message is a local placeholder or a persisted record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"


def new_optimistic_id() -> str:
    return f"{OPTIMISTIC_PREFIX}{uuid.uuid4().hex}"


def is_optimistic_id(message_id: str) -> bool:
    return str(message_id).startswith(OPTIMISTIC_PREFIX)


@dataclass(frozen=True)
class AttachmentRecord:
    id: str
    storage_path: str
    download_url: str
    content_type: str
    size: int
    name: str
    width: int | None = None
    height: int | None = None
    duration: float | None = None

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.content_type.startswith("video/")


@dataclass(frozen=True)
class ModerationVerdict:
    status: str
    reason: str | None = None

    @property
    def approved(self) -> bool:
        return self.status != "rejected"


@dataclass(frozen=True)
class MessageRecord:
    """
    A message as seen by readers.

    Invariants:
        - deleted_at set means text is None and attachments is empty
        - delivery is PENDING only for locally created placeholders, whose
          ids start with OPTIMISTIC_PREFIX
    """

    id: str
    chat_id: str
    sender_id: str | None
    type: str
    created_at: datetime | None
    text: str | None = None
    attachments: tuple[AttachmentRecord, ...] = ()
    edited_at: datetime | None = None
    deleted_at: datetime | None = None
    reactions: Mapping[str, frozenset[str]] = field(default_factory=dict)
    read_by: frozenset[str] = frozenset()
    moderation: ModerationVerdict | None = None
    delivery: Delivery = Delivery.CONFIRMED
    upload_progress: float | None = None

    @classmethod
    def optimistic(
        cls,
        chat_id: str,
        sender_id: str,
        message_type: str,
        text: str | None = None,
        attachments: tuple[AttachmentRecord, ...] = (),
        created_at: datetime | None = None,
    ) -> MessageRecord:
        """Build a local placeholder shown until the send settles."""
        return cls(
            id=new_optimistic_id(),
            chat_id=chat_id,
            sender_id=str(sender_id),
            type=message_type,
            created_at=created_at or timezone.now(),
            text=text,
            attachments=tuple(attachments),
            read_by=frozenset({str(sender_id)}),
            delivery=Delivery.PENDING,
        )

    @property
    def is_pending(self) -> bool:
        return self.delivery is Delivery.PENDING

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def reaction_users(self, emoji: str) -> frozenset[str]:
        return self.reactions.get(emoji, frozenset())

    def with_changes(self, **changes: Any) -> MessageRecord:
        return replace(self, **changes)


@dataclass(frozen=True)
class PageSnapshot:
    """
    One page of messages.

    Attributes:
        messages: Oldest first
        has_more: Whether older messages may exist beyond this page
        cursor: Id of the oldest message, for load_older
    """

    messages: tuple[MessageRecord, ...]
    has_more: bool
    cursor: str | None = None

    @classmethod
    def from_messages(cls, messages, page_size: int) -> PageSnapshot:
        messages = tuple(messages)
        return cls(
            messages=messages,
            has_more=bool(messages) and len(messages) == page_size,
            cursor=messages[0].id if messages else None,
        )

    def __len__(self) -> int:
        return len(self.messages)


@dataclass(frozen=True)
class UserRecord:
    id: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None

    @classmethod
    def from_user(cls, user) -> UserRecord:
        return cls(
            id=str(user.id),
            email=user.email,
            display_name=user.display_name,
            photo_url=user.photo_url,
        )

    @property
    def public_name(self) -> str:
        return self.display_name or self.email or self.id


@dataclass(frozen=True)
class ChatRecord:
    id: str
    chat_type: str
    participant_ids: tuple[str, ...]
    name: str | None = None
    description: str | None = None
    avatar_url: str | None = None
    last_message: str | None = None
    last_message_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    muted_by: frozenset[str] = frozenset()

    @classmethod
    def from_chat(cls, chat) -> ChatRecord:
        # Uses prefetched relations when present
        return cls(
            id=chat.id,
            chat_type=chat.chat_type,
            participant_ids=tuple(sorted(str(user.id) for user in chat.participants.all())),
            name=chat.name,
            description=chat.description,
            avatar_url=chat.avatar_url,
            last_message=chat.last_message,
            last_message_at=chat.last_message_at,
            created_at=chat.created_at,
            updated_at=chat.updated_at,
            muted_by=frozenset(str(user.id) for user in chat.muted_by.all()),
        )


@dataclass(frozen=True)
class ChatSummary:
    """Display summary of a chat for one viewer."""

    chat_id: str
    chat_type: str
    title: str
    subtitle: str
    avatar_url: str | None = None
    participant_ids: tuple[str, ...] = ()
    last_message_at: datetime | None = None
    updated_at: datetime | None = None
    created_at: datetime | None = None
    muted: bool = False
    is_placeholder: bool = False


@dataclass(frozen=True)
class TypingRecord:
    user_id: str
    typing: bool
    updated_at: datetime | None = None

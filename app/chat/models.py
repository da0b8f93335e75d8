"""
Chat system models.

This module defines the data models for the chat system supporting:
- Direct (1:1) chats with a deterministic id per user pair
- Group chats, including the shared lobby
- Messages with attachments, reactions and read receipts
- Per-user typing state

Models:
    Chat: Container for messages between participants
    Message: Individual message within a chat (soft delete only)
    Attachment: Uploaded file metadata owned by one message
    MessageReaction: One (user, emoji) reaction on a message
    MessageRead: One read receipt per (message, user)
    TypingState: Ephemeral typing flag per (chat, user)

Design Decisions:
    - Chat ids are strings: dm ids are "<uid>__<uid>" with the two user ids
      sorted, so at most one dm exists per unordered pair
    - Reactions and read receipts are rows, not arrays, so concurrent writers
      from different users never overwrite each other
    - Messages are never hard-deleted; readers hide soft-deleted content
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models

from chat.constants import MESSAGE_CONFIG
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel


def dm_chat_id(user_a, user_b) -> str:
    """
    Deterministic id of the direct chat between two users.

    Order-independent: dm_chat_id(a, b) == dm_chat_id(b, a).
    """
    first, second = sorted([str(user_a), str(user_b)])
    return f"{first}{MESSAGE_CONFIG.DM_ID_SEPARATOR}{second}"


def new_group_chat_id() -> str:
    return uuid.uuid4().hex


class ChatType(models.TextChoices):
    """
    Type of chat.

    DM: Exactly two participants, id derived from the pair
    GROUP: Named chat with any number of participants
    """

    DM = "dm", "Direct Message"
    GROUP = "group", "Group"


class MessageType(models.TextChoices):
    """
    Type of message content.

    Attachment-bearing messages are typed by their attachments: all images
    is IMAGE, all videos is VIDEO, any other mix is FILE.
    """

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    FILE = "file", "File"
    SYSTEM = "system", "System"


class ModerationStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class Chat(BaseModel):
    """
    A chat between users.

    Fields:
        id: String identity (dm pair id, group hex id, or the lobby id)
        chat_type: dm or group
        name/description/avatar_url: Optional group presentation
        participants: Members of the chat
        muted_by: Participants who receive no push notifications
        last_message: Denormalized preview of the newest message
        last_message_at: When the newest message was written (roster sort)
    """

    id = models.CharField(
        primary_key=True,
        max_length=160,
        default=new_group_chat_id,
        editable=False,
        help_text="Chat identity; dm ids are the two sorted user ids",
    )

    chat_type = models.CharField(
        max_length=10,
        choices=ChatType.choices,
        default=ChatType.GROUP,
        db_index=True,
        help_text="Type of chat (dm or group)",
    )

    name = models.CharField(
        max_length=120,
        null=True,
        blank=True,
        help_text="Group name (unset for direct chats)",
    )

    description = models.CharField(
        max_length=500,
        null=True,
        blank=True,
        help_text="Optional group description",
    )

    avatar_url = models.URLField(
        max_length=500,
        null=True,
        blank=True,
        help_text="Optional group avatar",
    )

    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="chats",
        help_text="Users who belong to this chat",
    )

    muted_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="muted_chats",
        blank=True,
        help_text="Participants who muted notifications for this chat",
    )

    last_message = models.TextField(
        null=True,
        blank=True,
        help_text="Preview of the most recent message",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting the roster)",
    )

    class Meta:
        db_table = "chat_chat"
        ordering = ["-last_message_at", "-updated_at"]

    def __str__(self) -> str:
        return f"Chat {self.id} ({self.chat_type})"

    @property
    def is_dm(self) -> bool:
        return self.chat_type == ChatType.DM

    def has_participant(self, user_id) -> bool:
        return self.participants.filter(id=user_id).exists()


class Message(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    A message within a chat.

    Soft Delete Behavior:
        When deleted_at is set the text and attachments stay in the database
        for moderation audit, but every read path hides them.

    Fields:
        chat: Chat this message belongs to
        sender: Author (null for system messages)
        text: Optional message text
        message_type: text, image, video, file or system
        edited_at: When the text was last replaced
        moderation_status/moderation_reason: Optional moderation verdict
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Chat this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_messages",
        help_text="User who sent this message (null for system messages)",
    )

    text = models.TextField(
        null=True,
        blank=True,
        help_text="Message text (optional when attachments are present)",
    )

    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT,
        help_text="Type of message content",
    )

    edited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the text was last edited",
    )

    moderation_status = models.CharField(
        max_length=10,
        choices=ModerationStatus.choices,
        null=True,
        blank=True,
        help_text="Moderation verdict, if the message was checked",
    )

    moderation_reason = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Why the verdict was reached",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            # Keyset pagination within a chat
            models.Index(
                fields=["chat", "created_at", "id"],
                name="chat_msg_chat_cursor_idx",
            ),
            models.Index(
                fields=["sender", "-created_at"],
                name="chat_msg_sender_idx",
            ),
        ]

    def __str__(self) -> str:
        sender_str = f"User {self.sender_id}" if self.sender_id else "System"
        preview = (self.text or "")[:50]
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"{sender_str}: {preview}{deleted_str}"

    @property
    def is_system_message(self) -> bool:
        return self.message_type == MessageType.SYSTEM


class Attachment(BaseModel):
    """
    Metadata of an uploaded file attached to a message.

    Immutable once created. The bytes live in object storage; only the
    storage path and a retrievable URL are kept here.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="attachments",
        help_text="Message that owns this attachment",
    )

    position = models.PositiveSmallIntegerField(
        default=0,
        help_text="Order of this attachment within the message",
    )

    attachment_id = models.CharField(
        max_length=120,
        help_text="Client-assigned identity of the upload",
    )

    storage_path = models.CharField(max_length=500)
    download_url = models.URLField(max_length=1000)
    content_type = models.CharField(max_length=120)
    size = models.PositiveBigIntegerField(help_text="Size in bytes")
    name = models.CharField(max_length=255, help_text="Display name")

    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    duration = models.FloatField(null=True, blank=True, help_text="Seconds (video/audio)")

    class Meta:
        db_table = "chat_attachment"
        ordering = ["position"]

    def __str__(self) -> str:
        return f"Attachment {self.name} ({self.content_type})"


class MessageReaction(BaseModel):
    """
    One user's reaction with one emoji on one message.

    A user can react with several different emojis; toggling the same emoji
    again removes the row.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reactions",
    )
    emoji = models.CharField(max_length=MESSAGE_CONFIG.MAX_EMOJI_LENGTH)

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="unique_reaction_per_user_emoji",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} reacted {self.emoji} on {self.message_id}"


class MessageRead(BaseModel):
    """Read receipt: the user has seen the message. Only ever added."""

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reads",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reads",
    )

    class Meta:
        db_table = "chat_message_read"
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="unique_read_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} read {self.message_id}"


class TypingState(models.Model):
    """
    Whether a user is currently typing in a chat.

    Written only by its own user. There is no server-side expiry; readers
    decide whether an old typing=true entry is still live.
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="typing_states",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="typing_states",
    )
    typing = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "chat_typing_state"
        constraints = [
            models.UniqueConstraint(
                fields=["chat", "user"],
                name="unique_typing_state_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} typing={self.typing} in {self.chat_id}"

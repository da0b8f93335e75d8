"""
Serializers for chat API and the storage read boundary.

This module provides serializers for the chat system:
- Model serializers that turn persisted rows into plain JSON
- Record serializers that parse that JSON into typed records (parse-or-fail)
- Request serializers for the REST and WebSocket endpoints

Serializer Hierarchy:
    MessageSerializer: Message row -> JSON, soft-deleted content hidden
    MessageRecordSerializer: JSON <-> MessageRecord
    AttachmentRecordSerializer: JSON <-> AttachmentRecord
    ChatSummarySerializer: ChatSummary -> JSON

    MessageCreateSerializer / MessageEditSerializer / ReactionSerializer /
    MarkReadSerializer / TypingSerializer: request bodies
    GroupCreateSerializer / DirectChatSerializer / PresenceSerializer

Design Decisions:
    - Every persisted message is serialized and then re-parsed, so a row
      with an unexpected shape fails loudly instead of leaking into clients
    - Soft-deleted messages expose deleted_at but never text or attachments
"""

from __future__ import annotations

from rest_framework import serializers

from chat.constants import MESSAGE_CONFIG, PRESENCE_CONFIG
from chat.models import Attachment, Message, MessageType, ModerationStatus
from chat.records import AttachmentRecord, MessageRecord, ModerationVerdict
from core.exceptions import ValidationError


# =============================================================================
# Model Serializers (read path)
# =============================================================================


class AttachmentSerializer(serializers.ModelSerializer):
    """Attachment row as stored; id is the client-assigned upload id."""

    id = serializers.CharField(source="attachment_id")

    class Meta:
        model = Attachment
        fields = [
            "id",
            "storage_path",
            "download_url",
            "content_type",
            "size",
            "name",
            "width",
            "height",
            "duration",
        ]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    """
    Message row with reactions and read receipts folded in.

    Expects attachments, reactions and reads to be prefetched; the store
    always does this.
    """

    id = serializers.CharField(read_only=True)
    chat_id = serializers.CharField(read_only=True)
    sender_id = serializers.CharField(read_only=True, allow_null=True)
    type = serializers.CharField(source="message_type", read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)
    reactions = serializers.SerializerMethodField()
    read_by = serializers.SerializerMethodField()
    moderation = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "chat_id",
            "sender_id",
            "type",
            "text",
            "attachments",
            "created_at",
            "edited_at",
            "deleted_at",
            "reactions",
            "read_by",
            "moderation",
        ]
        read_only_fields = fields

    def get_reactions(self, obj: Message) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = {}
        for reaction in obj.reactions.all():
            grouped.setdefault(reaction.emoji, []).append(str(reaction.user_id))
        return grouped

    def get_read_by(self, obj: Message) -> list[str]:
        return sorted(str(read.user_id) for read in obj.reads.all())

    def get_moderation(self, obj: Message) -> dict | None:
        if not obj.moderation_status:
            return None
        return {"status": obj.moderation_status, "reason": obj.moderation_reason}

    def to_representation(self, instance: Message) -> dict:
        data = super().to_representation(instance)
        if instance.deleted_at is not None:
            data["text"] = None
            data["attachments"] = []
        return data


# =============================================================================
# Record Serializers (parse-or-fail boundary)
# =============================================================================


class AttachmentRecordSerializer(serializers.Serializer):
    """Attachment metadata for an already uploaded file."""

    id = serializers.CharField(max_length=120)
    storage_path = serializers.CharField(max_length=500)
    download_url = serializers.URLField(max_length=1000)
    content_type = serializers.CharField(max_length=120)
    size = serializers.IntegerField(min_value=0)
    name = serializers.CharField(max_length=255)
    width = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    height = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    duration = serializers.FloatField(min_value=0, required=False, allow_null=True)

    def to_record(self, data: dict) -> AttachmentRecord:
        return AttachmentRecord(
            id=data["id"],
            storage_path=data["storage_path"],
            download_url=data["download_url"],
            content_type=data["content_type"],
            size=data["size"],
            name=data["name"],
            width=data.get("width"),
            height=data.get("height"),
            duration=data.get("duration"),
        )


class ModerationVerdictSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ModerationStatus.values)
    reason = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class MessageRecordSerializer(serializers.Serializer):
    """
    Message JSON <-> MessageRecord.

    Parsing:
        record = MessageRecordSerializer.parse(payload)

    Rendering:
        MessageRecordSerializer(record).data
    """

    id = serializers.CharField()
    chat_id = serializers.CharField()
    sender_id = serializers.CharField(allow_null=True)
    type = serializers.ChoiceField(choices=MessageType.values)
    text = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, trim_whitespace=False
    )
    attachments = AttachmentRecordSerializer(many=True, required=False)
    created_at = serializers.DateTimeField(allow_null=True)
    edited_at = serializers.DateTimeField(required=False, allow_null=True)
    deleted_at = serializers.DateTimeField(required=False, allow_null=True)
    reactions = serializers.DictField(
        child=serializers.ListField(child=serializers.CharField()), required=False
    )
    read_by = serializers.ListField(child=serializers.CharField(), required=False)
    moderation = ModerationVerdictSerializer(required=False, allow_null=True)
    pending = serializers.SerializerMethodField()

    def get_pending(self, record: MessageRecord) -> bool:
        return record.is_pending

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data["reactions"] = {emoji: sorted(users) for emoji, users in data["reactions"].items()}
        data["read_by"] = sorted(data["read_by"])
        return data

    @classmethod
    def parse(cls, payload) -> MessageRecord:
        """
        Validate a message payload and build a MessageRecord.

        Raises:
            ValidationError: The payload does not have the shape of a message
        """
        serializer = cls(data=payload)
        if not serializer.is_valid():
            raise ValidationError(
                "Malformed message record",
                error_code="MALFORMED_MESSAGE",
                details={"errors": serializer.errors},
            )
        return serializer.to_record()

    def to_record(self) -> MessageRecord:
        data = self.validated_data
        deleted_at = data.get("deleted_at")
        attachment_parser = AttachmentRecordSerializer()
        moderation = data.get("moderation")

        return MessageRecord(
            id=data["id"],
            chat_id=data["chat_id"],
            sender_id=data["sender_id"],
            type=data["type"],
            created_at=data["created_at"],
            text=None if deleted_at else data.get("text"),
            attachments=()
            if deleted_at
            else tuple(attachment_parser.to_record(item) for item in data.get("attachments", [])),
            edited_at=data.get("edited_at"),
            deleted_at=deleted_at,
            reactions={
                emoji: frozenset(users)
                for emoji, users in data.get("reactions", {}).items()
                if users
            },
            read_by=frozenset(data.get("read_by", [])),
            moderation=ModerationVerdict(moderation["status"], moderation.get("reason"))
            if moderation
            else None,
        )


class ChatSummarySerializer(serializers.Serializer):
    """Roster entry for one viewer."""

    chat_id = serializers.CharField()
    chat_type = serializers.CharField()
    title = serializers.CharField()
    subtitle = serializers.CharField()
    avatar_url = serializers.CharField(allow_null=True)
    participant_ids = serializers.ListField(child=serializers.CharField())
    last_message_at = serializers.DateTimeField(allow_null=True)
    muted = serializers.BooleanField()
    is_placeholder = serializers.BooleanField()


# =============================================================================
# Request Serializers
# =============================================================================


class MessageCreateSerializer(serializers.Serializer):
    """Send a message: text, attachments, or both."""

    text = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_TEXT_LENGTH,
        required=False,
        allow_blank=True,
        allow_null=True,
    )
    attachments = AttachmentRecordSerializer(many=True, required=False)

    def validate_attachments(self, value):
        if len(value) > MESSAGE_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE:
            raise serializers.ValidationError(
                f"At most {MESSAGE_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE} attachments per message"
            )
        return value

    def validate(self, attrs):
        text = (attrs.get("text") or "").strip()
        if not text and not attrs.get("attachments"):
            raise serializers.ValidationError("Message needs text or attachments")
        return attrs

    def attachment_records(self) -> tuple[AttachmentRecord, ...]:
        parser = AttachmentRecordSerializer()
        return tuple(parser.to_record(item) for item in self.validated_data.get("attachments", []))


class MessagePageQuerySerializer(serializers.Serializer):
    """Query parameters for the message list: newest page, or older than ?before=."""

    before = serializers.CharField(required=False)
    page_size = serializers.IntegerField(
        min_value=1,
        max_value=MESSAGE_CONFIG.MAX_PAGE_SIZE,
        default=MESSAGE_CONFIG.DEFAULT_PAGE_SIZE,
    )


class MessageEditSerializer(serializers.Serializer):
    text = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_TEXT_LENGTH, allow_blank=True, trim_whitespace=False
    )


class ReactionSerializer(serializers.Serializer):
    emoji = serializers.CharField(max_length=MESSAGE_CONFIG.MAX_EMOJI_LENGTH)


class MarkReadSerializer(serializers.Serializer):
    message_ids = serializers.ListField(
        child=serializers.CharField(), allow_empty=True, max_length=500
    )


class TypingSerializer(serializers.Serializer):
    typing = serializers.BooleanField()


class GroupCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    member_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    description = serializers.CharField(
        max_length=500, required=False, allow_blank=True, allow_null=True
    )
    avatar_url = serializers.URLField(
        max_length=500, required=False, allow_blank=True, allow_null=True
    )


class DirectChatSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()


class PresenceSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PRESENCE_CONFIG.STATUSES, default="online")

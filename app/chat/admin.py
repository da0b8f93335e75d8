"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Chat management (participants, mutes)
- Message moderation review
- Typing state inspection
"""

from django.contrib import admin

from chat.models import Attachment, Chat, Message, MessageReaction, MessageRead, TypingState


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    """Admin interface for Chat model."""

    list_display = ["id", "chat_type", "name", "last_message_at", "created_at"]
    list_filter = ["chat_type", "created_at"]
    search_fields = ["id", "name"]
    readonly_fields = ["created_at", "updated_at", "last_message", "last_message_at"]
    filter_horizontal = ["participants", "muted_by"]
    ordering = ["-last_message_at"]


class AttachmentInline(admin.TabularInline):
    """Inline display of attachments in message admin."""

    model = Attachment
    extra = 0
    readonly_fields = ["position", "attachment_id", "name", "content_type", "size", "download_url"]


class ReactionInline(admin.TabularInline):
    model = MessageReaction
    extra = 0
    raw_id_fields = ["user"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "chat",
        "sender",
        "message_type",
        "text_preview",
        "moderation_status",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["message_type", "moderation_status", "is_deleted", "created_at"]
    search_fields = ["text", "sender__email", "chat__id"]
    readonly_fields = ["created_at", "updated_at", "edited_at", "deleted_at"]
    raw_id_fields = ["chat", "sender"]
    inlines = [AttachmentInline, ReactionInline]
    ordering = ["-created_at"]

    @admin.display(description="Text Preview")
    def text_preview(self, obj: Message) -> str:
        """Return truncated text for list display."""
        max_length = 50
        text = obj.text or ""
        if len(text) > max_length:
            return text[:max_length] + "..."
        return text


@admin.register(MessageRead)
class MessageReadAdmin(admin.ModelAdmin):
    list_display = ["message", "user", "created_at"]
    raw_id_fields = ["message", "user"]


@admin.register(TypingState)
class TypingStateAdmin(admin.ModelAdmin):
    list_display = ["chat", "user", "typing", "updated_at"]
    list_filter = ["typing"]
    raw_id_fields = ["chat", "user"]

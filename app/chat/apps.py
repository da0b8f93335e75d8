"""
Chat application configuration.

This app provides the chat system with:
- Direct and group chats, including the shared lobby
- Messages with attachments, reactions, read receipts, edits, soft delete
- Realtime change notifications (in-process feed and WebSocket groups)
- Typing indicators and presence writes
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"

    def ready(self):
        from chat import signals  # noqa: F401

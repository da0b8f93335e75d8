"""
Notification service layer.

Services:
    MessageNotificationService: Push fan-out for one newly created message

Design Principles:
    - Services are stateless (use class methods)
    - Fan-out is best-effort: nothing here raises into the task; failures
      are logged and returned as ServiceResult.failure()
    - One multicast per message; failed tokens are logged, never retried

Usage:
    from notifications.services import MessageNotificationService

    result = MessageNotificationService.notify(chat_id, message_id)
    if result.success:
        delivered = result.data
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from authentication.services import UserDirectoryService
from chat.models import Chat, ChatType, Message
from core.services import BaseService, ServiceResult
from notifications.backends import get_push_backend

if TYPE_CHECKING:
    from collections.abc import Iterable

    from notifications.backends import PushBackend

GROUP_TITLE_FALLBACK = "New group message"
DIRECT_TITLE = "New message"
EMPTY_BODY = "New activity in your chat."


def notification_title(chat: Chat) -> str:
    if chat.chat_type == ChatType.GROUP:
        return chat.name or GROUP_TITLE_FALLBACK
    return DIRECT_TITLE


def notification_body(text: str | None, attachment_count: int) -> str:
    if text:
        return text
    if attachment_count:
        return f"{attachment_count} attachment{'' if attachment_count == 1 else 's'}"
    return EMPTY_BODY


class MessageNotificationService(BaseService):
    """
    Push notifications for new messages.

    Targets are the chat's participants minus the sender minus everyone who
    muted the chat. Their device tokens are merged into one multicast.
    """

    @classmethod
    def targets(cls, chat: Chat, sender_id, participant_ids: Iterable | None = None) -> list[str]:
        """User ids to notify, in a stable order."""
        if participant_ids is None:
            participant_ids = chat.participants.values_list("id", flat=True)
        muted = {str(uid) for uid in chat.muted_by.values_list("id", flat=True)}
        excluded = muted | {str(sender_id)}
        return sorted({str(uid) for uid in participant_ids} - excluded)

    @classmethod
    def build_payload(cls, chat: Chat, message: Message, tokens: Iterable[str]) -> dict:
        return {
            "tokens": sorted(tokens),
            "notification": {
                "title": notification_title(chat),
                "body": notification_body(message.text, message.attachments.count()),
            },
            "data": {
                "chat_id": chat.id,
                "message_id": str(message.id),
                "type": message.message_type,
            },
        }

    @classmethod
    def notify(
        cls,
        chat_id: str,
        message_id: str,
        participant_ids: Iterable | None = None,
        backend: PushBackend | None = None,
    ) -> ServiceResult[int]:
        """
        Send the push notification for one message.

        Args:
            chat_id: Chat the message was written to
            message_id: The new message
            participant_ids: Participants when the message was written; read
                from the chat when omitted
            backend: Push provider (defaults to settings.PUSH_BACKEND)

        Returns:
            ServiceResult with the number of tokens delivered

        Error codes:
            CHAT_NOT_FOUND / MESSAGE_NOT_FOUND: Nothing to notify about
        """
        logger = cls.get_logger()

        chat = Chat.objects.filter(id=chat_id).first()
        if chat is None:
            logger.info(f"Chat {chat_id} is gone; skipping push for {message_id}")
            return ServiceResult.failure("Chat not found", error_code="CHAT_NOT_FOUND")

        message = Message.objects.filter(chat_id=chat_id, id=message_id).first()
        if message is None:
            logger.info(f"Message {message_id} is gone; skipping push")
            return ServiceResult.failure("Message not found", error_code="MESSAGE_NOT_FOUND")

        targets = cls.targets(chat, message.sender_id, participant_ids)
        if not targets:
            return ServiceResult.success(0)

        tokens = UserDirectoryService.tokens_for(targets)
        if not tokens:
            logger.info(f"No push tokens to notify for chat {chat_id} message {message_id}")
            return ServiceResult.success(0)

        payload = cls.build_payload(chat, message, tokens)
        try:
            response = (backend or get_push_backend()).send_multicast(payload)
        except Exception as e:
            return cls.handle_exception(e, context=f"Push for chat {chat_id} message {message_id}")

        failures = response.failures
        if failures:
            logger.warning(
                f"Some notifications failed for chat {chat_id} message {message_id}: "
                f"{[failure.error for failure in failures]}"
            )
        else:
            logger.info(
                f"Delivered {response.success_count} notification(s) "
                f"for chat {chat_id} message {message_id}"
            )
        return ServiceResult.success(response.success_count)

"""
Celery tasks for notification delivery.

Tasks:
    send_message_notification: Push fan-out for one new message

The message store enqueues the task with transaction.on_commit, so the
message is always visible to the worker. Push is best-effort: the task
never retries and never raises.

Usage:
    from notifications.tasks import send_message_notification

    send_message_notification.delay(chat_id, str(message.id), participant_ids)
"""

from __future__ import annotations

import logging

from celery import shared_task

from notifications.services import MessageNotificationService

logger = logging.getLogger(__name__)


@shared_task
def send_message_notification(chat_id: str, message_id: str, participant_ids=None) -> int:
    """
    Notify the other participants of a chat about a new message.

    Returns:
        Number of device tokens the backend reported as delivered
    """
    try:
        result = MessageNotificationService.notify(chat_id, message_id, participant_ids)
    except Exception:
        logger.exception(f"Failed to send push notification for chat {chat_id} message {message_id}")
        return 0
    return result.data if result.success else 0

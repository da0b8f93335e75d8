"""
Notifications app: push fan-out for new chat messages.

This app provides:
- PushBackend implementations (logging backend for development and tests)
- MessageNotificationService to build and send one multicast per message
- send_message_notification Celery task, enqueued by the message store
  after the message is committed

Usage:
    from notifications.tasks import send_message_notification

    send_message_notification.delay(chat_id, str(message.id))
"""

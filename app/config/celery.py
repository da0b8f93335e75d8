"""
Celery configuration for the chat backend.

Celery runs the background work that must never block a message write:
push notification fan-out after a message is committed.

Tasks are auto-discovered from all installed Django apps. When no broker is
configured (local development, tests) settings switch Celery to eager mode
so tasks run inline.

Usage:
    from celery import shared_task

    @shared_task
    def send_message_notification(chat_id, message_id):
        ...

    send_message_notification.delay(chat.id, str(message.id))
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()

"""
Signal handlers that turn committed writes into change notifications.

Every handler defers its publish with transaction.on_commit, so listeners
only ever observe committed state and a rolled-back write publishes
nothing. Bulk writes (bulk_create, queryset.update) bypass these signals;
the store publishes for those itself.

Registered in ChatConfig.ready().
"""

from __future__ import annotations

import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import m2m_changed, post_delete, post_save
from django.dispatch import receiver

from chat.models import Chat, Message, MessageReaction, MessageRead, TypingState
from chat.realtime import notify_messages_changed, notify_roster_changed, notify_typing_changed

logger = logging.getLogger(__name__)


def _on_commit(func, *args) -> None:
    transaction.on_commit(partial(func, *args), robust=True)


@receiver(post_save, sender=Message)
@receiver(post_delete, sender=Message)
def message_changed(sender, instance: Message, **kwargs):
    _on_commit(notify_messages_changed, instance.chat_id)


@receiver(post_save, sender=MessageReaction)
@receiver(post_delete, sender=MessageReaction)
@receiver(post_save, sender=MessageRead)
def message_annotation_changed(sender, instance, **kwargs):
    chat_id = (
        Message.objects.filter(id=instance.message_id)
        .values_list("chat_id", flat=True)
        .first()
    )
    if chat_id is None:
        # Parent message is gone (cascade delete)
        return
    _on_commit(notify_messages_changed, chat_id)


@receiver(post_save, sender=Chat)
def chat_changed(sender, instance: Chat, created: bool, **kwargs):
    if created:
        # Participants are attached afterwards; m2m_changed covers it
        return
    participant_ids = list(instance.participants.values_list("id", flat=True))
    _on_commit(notify_roster_changed, participant_ids)


@receiver(m2m_changed, sender=Chat.participants.through)
def chat_participants_changed(sender, instance, action: str, pk_set, **kwargs):
    if action not in ("post_add", "post_remove"):
        return
    if isinstance(instance, Chat):
        user_ids = set(pk_set or ()) | set(instance.participants.values_list("id", flat=True))
    else:
        # Reverse side: instance is a user, pk_set holds chat ids
        user_ids = {instance.pk}
    _on_commit(notify_roster_changed, sorted(str(uid) for uid in user_ids))


@receiver(post_save, sender=TypingState)
def typing_changed(sender, instance: TypingState, **kwargs):
    payload = {
        "user_id": str(instance.user_id),
        "typing": instance.typing,
        "updated_at": instance.updated_at.isoformat() if instance.updated_at else None,
    }
    _on_commit(notify_typing_changed, instance.chat_id, payload)

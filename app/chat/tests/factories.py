"""
Factory Boy factories for chat models.

Provides realistic test data generation for:
- Chat: Group and direct chats with participants
- Message: Text messages (optionally with attachments)
- Attachment, MessageReaction, MessageRead, TypingState

Usage:
    from chat.tests.factories import ChatFactory, DirectChatFactory, MessageFactory

    # Group chat with two members
    chat = ChatFactory(members=[alice, bob])

    # Direct chat between two users (id derived from the pair)
    chat = DirectChatFactory(user1=alice, user2=bob)

    # A message in that chat
    message = MessageFactory(chat=chat, sender=alice, text="Hi")

Records:
    make_record() builds a MessageRecord without touching the database,
    for merge-engine and formatting tests.
"""

from datetime import datetime, timedelta, timezone

import factory

from authentication.tests.factories import UserFactory
from chat.models import (
    Attachment,
    Chat,
    ChatType,
    Message,
    MessageReaction,
    MessageRead,
    MessageType,
    TypingState,
    dm_chat_id,
)
from chat.records import Delivery, MessageRecord

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class ChatFactory(factory.django.DjangoModelFactory):
    """
    Factory for group chats.

    Examples:
        chat = ChatFactory()
        chat = ChatFactory(name="Project Team", members=[alice, bob])
    """

    class Meta:
        model = Chat
        skip_postgeneration_save = True

    chat_type = ChatType.GROUP
    name = factory.Sequence(lambda n: f"Group Chat {n}")
    description = None
    avatar_url = None
    last_message = None
    last_message_at = None

    @factory.post_generation
    def members(self, create, extracted, **kwargs):
        """Add the given users as participants."""
        if not create or not extracted:
            return
        self.participants.add(*extracted)


class DirectChatFactory(factory.django.DjangoModelFactory):
    """
    Factory for direct chats.

    Examples:
        chat = DirectChatFactory()
        chat = DirectChatFactory(user1=alice, user2=bob)
    """

    class Meta:
        model = Chat

    chat_type = ChatType.DM
    name = None

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Create the dm with its deterministic id and both participants."""
        user1 = kwargs.pop("user1", None) or UserFactory()
        user2 = kwargs.pop("user2", None) or UserFactory()
        kwargs["id"] = dm_chat_id(user1.id, user2.id)
        chat = super()._create(model_class, *args, **kwargs)
        chat.participants.add(user1, user2)
        return chat


class MessageFactory(factory.django.DjangoModelFactory):
    """
    Factory for Message model.

    The sender is not added to the chat automatically; pass a chat that
    already contains them when participation matters.
    """

    class Meta:
        model = Message

    chat = factory.SubFactory(ChatFactory)
    sender = factory.SubFactory(UserFactory)
    text = factory.Sequence(lambda n: f"Message {n}")
    message_type = MessageType.TEXT


class AttachmentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Attachment

    message = factory.SubFactory(MessageFactory)
    position = factory.Sequence(lambda n: n)
    attachment_id = factory.Sequence(lambda n: f"att-{n}")
    storage_path = factory.LazyAttribute(lambda o: f"chats/{o.message.chat_id}/{o.attachment_id}")
    download_url = factory.LazyAttribute(lambda o: f"https://files.example.com/{o.attachment_id}")
    content_type = "image/png"
    size = 2048
    name = factory.Sequence(lambda n: f"photo-{n}.png")


class MessageReactionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = MessageReaction

    message = factory.SubFactory(MessageFactory)
    user = factory.SubFactory(UserFactory)
    emoji = "👍"


class MessageReadFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = MessageRead

    message = factory.SubFactory(MessageFactory)
    user = factory.SubFactory(UserFactory)


class TypingStateFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = TypingState

    chat = factory.SubFactory(ChatFactory)
    user = factory.SubFactory(UserFactory)
    typing = True


def make_record(
    message_id: str,
    seconds: int = 0,
    chat_id: str = "chat-1",
    sender_id: str = "user-1",
    text: str | None = "hello",
    **changes,
) -> MessageRecord:
    """Confirmed MessageRecord created `seconds` after BASE_TIME."""
    record = MessageRecord(
        id=message_id,
        chat_id=chat_id,
        sender_id=sender_id,
        type=MessageType.TEXT,
        created_at=BASE_TIME + timedelta(seconds=seconds),
        text=text,
        read_by=frozenset({sender_id}),
        delivery=Delivery.CONFIRMED,
    )
    return record.with_changes(**changes) if changes else record

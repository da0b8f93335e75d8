"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures (alice, bob, carol, outsider)
- Chat fixtures (group and direct)
- Message helpers with controlled creation instants
- API client helpers for authenticated requests
- An isolated ChangeFeed per test

Usage:
    def test_example(group_chat, alice_client):
        response = alice_client.get(f"/api/v1/chat/chats/{group_chat.id}/messages/")
        assert response.status_code == 200
"""

from datetime import timedelta

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.models import Message
from chat.realtime import ChangeFeed
from chat.store import MessageStore
from chat.tests.factories import BASE_TIME, ChatFactory, DirectChatFactory, MessageFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(display_name="Alice", email="alice@example.com")


@pytest.fixture
def bob(db):
    return UserFactory(display_name="Bob", email="bob@example.com")


@pytest.fixture
def carol(db):
    return UserFactory(display_name="Carol", email="carol@example.com")


@pytest.fixture
def outsider(db):
    """A user who belongs to none of the test chats."""
    return UserFactory(display_name="Mallory", email="mallory@example.com")


# =============================================================================
# Chat Fixtures
# =============================================================================


@pytest.fixture
def group_chat(db, alice, bob, carol):
    """Group chat with alice, bob and carol."""
    return ChatFactory(name="Team", members=[alice, bob, carol])


@pytest.fixture
def direct_chat(db, alice, bob):
    """Direct chat between alice and bob."""
    return DirectChatFactory(user1=alice, user2=bob)


# =============================================================================
# Message Helpers
# =============================================================================


@pytest.fixture
def make_messages():
    """
    Create messages one second apart starting at BASE_TIME.

    created_at is auto_now_add, so instants are rewritten after insert.

    Usage:
        messages = make_messages(chat, alice, 5)
    """

    def _make(chat, sender, count, start_seconds=0, same_instant=False):
        messages = []
        for index in range(count):
            message = MessageFactory(chat=chat, sender=sender, text=f"msg {index}")
            offset = start_seconds if same_instant else start_seconds + index
            created_at = BASE_TIME + timedelta(seconds=offset)
            Message.objects.filter(pk=message.pk).update(created_at=created_at)
            message.created_at = created_at
            messages.append(message)
        return messages

    return _make


# =============================================================================
# Store / Feed Fixtures
# =============================================================================


@pytest.fixture
def feed():
    """Fresh change feed, isolated from the process default."""
    return ChangeFeed()


@pytest.fixture
def store(feed):
    return MessageStore(feed=feed)


# =============================================================================
# API Client Fixtures
# =============================================================================


def _client_for(user) -> APIClient:
    client = APIClient()
    access = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    return client


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)

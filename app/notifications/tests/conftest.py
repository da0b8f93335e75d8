"""
Test configuration and fixtures for notification tests.

This module provides:
- Users with registered device tokens
- A group chat and a direct chat between them
- A recording push backend

Usage:
    def test_example(group_chat, alice, recording_backend):
        MessageNotificationService.notify(..., backend=recording_backend)
        assert recording_backend.payloads
"""

import pytest

from authentication.tests.factories import DeviceTokenFactory, UserFactory
from chat.tests.factories import ChatFactory, DirectChatFactory
from notifications.backends import MulticastResult, PushBackend, TokenResult


class RecordingPushBackend(PushBackend):
    """Keeps every payload; tokens listed in failing_tokens fail."""

    def __init__(self, failing_tokens=()):
        self.payloads = []
        self.failing_tokens = set(failing_tokens)

    def send_multicast(self, payload):
        self.payloads.append(payload)
        return MulticastResult(
            [
                TokenResult(token, success=False, error="unregistered")
                if token in self.failing_tokens
                else TokenResult(token, success=True)
                for token in payload["tokens"]
            ]
        )


@pytest.fixture
def alice(db):
    user = UserFactory(display_name="Alice")
    DeviceTokenFactory(user=user, token="alice-phone")
    return user


@pytest.fixture
def bob(db):
    user = UserFactory(display_name="Bob")
    DeviceTokenFactory(user=user, token="bob-phone")
    DeviceTokenFactory(user=user, token="bob-tablet")
    return user


@pytest.fixture
def carol(db):
    user = UserFactory(display_name="Carol")
    DeviceTokenFactory(user=user, token="carol-phone")
    return user


@pytest.fixture
def group_chat(db, alice, bob, carol):
    return ChatFactory(name="Team", members=[alice, bob, carol])


@pytest.fixture
def direct_chat(db, alice, bob):
    return DirectChatFactory(user1=alice, user2=bob)


@pytest.fixture
def recording_backend():
    return RecordingPushBackend()

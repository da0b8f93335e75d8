"""
Test configuration and fixtures for AI tests.

This module provides:
- Users and a group chat
- fake_provider: a scripted provider installed as the default provider

Usage:
    def test_example(fake_provider):
        fake_provider.reply = "- Sure\\n- Later"
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from ai.providers.base import ProviderError
from authentication.tests.factories import UserFactory
from chat.tests.factories import ChatFactory


class FakeProvider:
    """Returns reply, or raises ProviderError when fail is set."""

    def __init__(self):
        self.reply = ""
        self.fail = False
        self.prompts = []

    def complete(self, prompt, system_prompt=None, model=None, temperature=0.7, max_tokens=1000, **kwargs):
        self.prompts.append(prompt)
        if self.fail:
            raise ProviderError("provider down")
        return {
            "content": self.reply,
            "model": "fake",
            "usage": {"prompt_tokens": 0, "completion_tokens": 0},
            "finish_reason": "stop",
        }


def _client_for(user) -> APIClient:
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {RefreshToken.for_user(user).access_token}")
    return client


@pytest.fixture
def fake_provider(mocker):
    provider = FakeProvider()
    mocker.patch("ai.services.get_default_provider", return_value=provider)
    return provider


@pytest.fixture
def alice(db):
    return UserFactory(display_name="Alice")


@pytest.fixture
def bob(db):
    return UserFactory(display_name="Bob")


@pytest.fixture
def outsider(db):
    return UserFactory(display_name="Mallory")


@pytest.fixture
def group_chat(db, alice, bob):
    return ChatFactory(name="Team", members=[alice, bob])


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)

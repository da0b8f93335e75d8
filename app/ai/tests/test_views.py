"""
Tests for AI endpoints.
"""

import pytest
from django.urls import reverse
from rest_framework import status


def _summary_url(chat_id):
    return reverse("ai:chat-summary", kwargs={"chat_id": chat_id})


def _draft_url(chat_id):
    return reverse("ai:chat-draft", kwargs={"chat_id": chat_id})


@pytest.mark.django_db
class TestChatSummaryView:
    def test_participant_gets_summary(self, alice_client, group_chat):
        response = alice_client.post(_summary_url(group_chat.id))

        assert response.status_code == status.HTTP_200_OK
        assert "summary" in response.data

    def test_outsider_is_forbidden(self, outsider_client, group_chat):
        response = outsider_client.post(_summary_url(group_chat.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_chat(self, alice_client):
        response = alice_client.post(_summary_url("missing"))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_fourth_summary_in_a_minute_is_rate_limited(self, alice_client, group_chat):
        """
        Summaries are limited to 3 per minute per user.

        Why it matters: Every summary is a paid model call.
        """
        for _ in range(3):
            assert alice_client.post(_summary_url(group_chat.id)).status_code == status.HTTP_200_OK

        response = alice_client.post(_summary_url(group_chat.id))

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.data["error"] == "Too many requests. Please retry in a few moments."
        assert "Retry-After" in response

    def test_rejected_outsider_does_not_spend_budget(self, outsider_client, alice_client, group_chat):
        for _ in range(5):
            outsider_client.post(_summary_url(group_chat.id))

        assert alice_client.post(_summary_url(group_chat.id)).status_code == status.HTTP_200_OK

    def test_requires_authentication(self, client, group_chat):
        response = client.post(_summary_url(group_chat.id))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestDraftReplyView:
    def test_returns_three_suggestions(self, alice_client, group_chat):
        response = alice_client.post(
            _draft_url(group_chat.id), {"message_context": "Ready to ship?"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data["suggestions"]) == 3

    def test_message_context_is_required(self, alice_client, group_chat):
        response = alice_client.post(_draft_url(group_chat.id), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_sixth_draft_is_rate_limited(self, alice_client, group_chat):
        payload = {"message_context": "ping"}
        for _ in range(5):
            alice_client.post(_draft_url(group_chat.id), payload, format="json")

        response = alice_client.post(_draft_url(group_chat.id), payload, format="json")

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS


@pytest.mark.django_db
class TestModerationView:
    def test_blocked_message(self, alice_client):
        response = alice_client.post(
            reverse("ai:moderate"), {"message": "cheap spam offer"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {
            "approved": False,
            "reason": "Message contains restricted terms.",
        }

    def test_clean_message(self, alice_client):
        response = alice_client.post(reverse("ai:moderate"), {"message": "hello"}, format="json")

        assert response.data == {"approved": True, "reason": None}

    def test_eleventh_check_in_window_is_rate_limited(self, alice_client):
        url = reverse("ai:moderate")
        for _ in range(10):
            alice_client.post(url, {"message": "hello"}, format="json")

        response = alice_client.post(url, {"message": "hello"}, format="json")

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.data["error_code"] == "RATE_LIMIT_EXCEEDED"

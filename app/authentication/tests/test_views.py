"""
Tests for authentication API endpoints.
"""

import pytest
from django.urls import reverse

from authentication.models import DeviceToken
from authentication.tests.factories import UserFactory


@pytest.mark.django_db
class TestTokenObtain:
    """Tests for JWT issuance."""

    def test_valid_credentials_return_token_pair(self, api_client):
        """Login with email and password returns access and refresh tokens."""
        UserFactory(email="login@example.com", password="Secret123!")

        response = api_client.post(
            reverse("token_obtain_pair"),
            {"email": "login@example.com", "password": "Secret123!"},
            format="json",
        )

        assert response.status_code == 200
        assert "access" in response.data
        assert "refresh" in response.data

    def test_wrong_password_is_rejected(self, api_client):
        """Bad credentials get 401."""
        UserFactory(email="login@example.com", password="Secret123!")

        response = api_client.post(
            reverse("token_obtain_pair"),
            {"email": "login@example.com", "password": "nope"},
            format="json",
        )

        assert response.status_code == 401


@pytest.mark.django_db
class TestMeView:
    """Tests for GET/PATCH /api/v1/auth/me/."""

    def test_requires_authentication(self, api_client):
        """Anonymous callers are rejected."""
        response = api_client.get(reverse("authentication:me"))

        assert response.status_code == 401

    def test_returns_public_identity(self, authenticated_client, user):
        """The caller sees their own public fields."""
        response = authenticated_client.get(reverse("authentication:me"))

        assert response.status_code == 200
        assert response.data["email"] == user.email
        assert response.data["display_name"] == "Test User"
        assert "password" not in response.data

    def test_patch_updates_display_name(self, authenticated_client, user):
        """Display name can be changed."""
        response = authenticated_client.patch(
            reverse("authentication:me"), {"display_name": "Renamed"}, format="json"
        )

        assert response.status_code == 200
        user.refresh_from_db()
        assert user.display_name == "Renamed"

    def test_patch_rejects_bad_photo_url(self, authenticated_client):
        """Photo URL must be a URL."""
        response = authenticated_client.patch(
            reverse("authentication:me"), {"photo_url": "not a url"}, format="json"
        )

        assert response.status_code == 400


@pytest.mark.django_db
class TestPushTokenView:
    """Tests for POST /api/v1/auth/push-tokens/."""

    def test_registers_token(self, authenticated_client, user):
        """A token posted by the device is stored."""
        response = authenticated_client.post(
            reverse("authentication:push-tokens"), {"token": "device-1"}, format="json"
        )

        assert response.status_code == 201
        assert DeviceToken.objects.filter(user=user, token="device-1").exists()

    def test_blank_token_is_rejected(self, authenticated_client):
        """Blank tokens fail validation."""
        response = authenticated_client.post(
            reverse("authentication:push-tokens"), {"token": ""}, format="json"
        )

        assert response.status_code == 400


@pytest.mark.django_db
class TestUserSearchView:
    """Tests for GET /api/v1/auth/users/search/."""

    def test_search_excludes_caller(self, authenticated_client, user):
        """
        The caller never sees themselves in results.

        Why it matters: Starting a direct chat with yourself is meaningless.
        """
        UserFactory(display_name="Test Partner")

        response = authenticated_client.get(
            reverse("authentication:user-search"), {"q": "Test"}
        )

        assert response.status_code == 200
        ids = [row["id"] for row in response.data]
        assert str(user.id) not in ids
        assert len(ids) == 1

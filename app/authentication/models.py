"""
Authentication models.

This module defines the identity models the chat pipeline resolves:
- User: Email-based account with display identity and presence state
- DeviceToken: Push-registration token owned by a user

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: Directory search, push-token registration, presence writes

Presence:
    is_online/last_seen are written by PresenceService from visibility
    events and the HTTP presence ping. They are best-effort and may lag.
"""

import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager
from core.models import BaseModel


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the login identifier.

    Fields:
        id: UUID, used verbatim in chat ids (dm ids are two sorted user ids)
        email: Login identifier, unique
        display_name: Optional public name; roster titles fall back to email
        photo_url: Optional avatar URL
        is_online: Last reported presence
        last_seen: When presence was last written

    Usage:
        user = User.objects.create_user(
            email="ada@example.com",
            password="securepassword",
            display_name="Ada",
        )
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this user",
    )

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (login identifier)",
    )

    display_name = models.CharField(
        max_length=120,
        null=True,
        blank=True,
        db_index=True,
        help_text="Public display name (optional)",
    )

    photo_url = models.URLField(
        max_length=500,
        null=True,
        blank=True,
        help_text="Avatar image URL (optional)",
    )

    is_online = models.BooleanField(
        default=False,
        help_text="Whether the user last reported itself online",
    )

    last_seen = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When presence was last written for this user",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = "auth_chat_user"
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["email"]

    def __str__(self) -> str:
        return self.email

    def get_public_name(self) -> str:
        """Display name, falling back to email, falling back to id."""
        return self.display_name or self.email or str(self.id)


class DeviceToken(BaseModel):
    """
    Push-registration token for one device of one user.

    The set of tokens per user only grows through registration; tokens are
    never removed automatically, even when a push to them fails.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="device_tokens",
        help_text="User this device belongs to",
    )

    token = models.CharField(
        max_length=512,
        help_text="Push registration token issued by the messaging provider",
    )

    class Meta:
        db_table = "auth_device_token"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "token"],
                name="unique_device_token_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"DeviceToken({self.user_id}, {self.token[:12]}...)"

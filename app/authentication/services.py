"""
Authentication services.

This module provides the user directory used by the chat pipeline:
- Search-as-you-type over display names and emails
- Batch identity lookup for the chat roster
- Push-token registration (union only)
- Profile updates

Related files:
    - models.py: User, DeviceToken
    - views.py: HTTP endpoints over these services
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from authentication.models import DeviceToken, User
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

# Highest private-use code point; term + sentinel bounds a prefix range query
PREFIX_SENTINEL = "\uf8ff"

DEFAULT_SEARCH_LIMIT = 12


class UserDirectoryService(BaseService):
    """
    Directory lookups over User records.

    Usage:
        from authentication.services import UserDirectoryService

        users = UserDirectoryService.search("ad", exclude_ids=[request.user.id])
        known = UserDirectoryService.fetch_many(["<uuid>", "<uuid>"])
    """

    @classmethod
    def search(
        cls,
        term: str,
        exclude_ids: Iterable = (),
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[User]:
        """
        Find users for search-as-you-type.

        Strategy:
            - term containing "@": exact email match
            - other non-empty term: display-name prefix range, falling back
              to an email prefix range when no display name matches
            - empty term: first users ordered by display name

        Args:
            term: Raw user input (surrounding whitespace ignored)
            exclude_ids: User ids to leave out (typically the caller)
            limit: Maximum number of results

        Returns:
            Matching active users, at most limit
        """
        trimmed = (term or "").strip()
        queryset = User.objects.filter(is_active=True).exclude(
            id__in=[str(uid) for uid in exclude_ids]
        )

        if "@" in trimmed:
            return list(queryset.filter(email__iexact=trimmed)[:limit])

        if not trimmed:
            return list(queryset.order_by("display_name", "email")[:limit])

        upper = f"{trimmed}{PREFIX_SENTINEL}"
        by_name = list(
            queryset.filter(display_name__gte=trimmed, display_name__lt=upper)
            .order_by("display_name")[:limit]
        )
        if by_name:
            return by_name

        cls.get_logger().debug(f"No display-name match for {trimmed!r}; trying email prefix")
        return list(
            queryset.filter(email__gte=trimmed, email__lt=upper).order_by("email")[:limit]
        )

    @classmethod
    def fetch_many(cls, user_ids: Iterable) -> list[User]:
        """Batch-fetch users by id; unknown ids are silently absent."""
        ids = {str(uid) for uid in user_ids}
        if not ids:
            return []
        return list(User.objects.filter(id__in=ids))

    @classmethod
    def register_push_token(cls, user: User, token: str) -> ServiceResult[DeviceToken]:
        """
        Add a push-registration token to the user's token set.

        Registering the same token twice is a no-op that returns the
        existing row. Tokens are never removed here.
        """
        token = (token or "").strip()
        if not token:
            return ServiceResult.failure(
                "Push token cannot be empty",
                error_code="EMPTY_TOKEN",
            )

        # get_or_create retries the lookup when a concurrent insert wins
        device_token, created = DeviceToken.objects.get_or_create(user=user, token=token)
        if created:
            cls.get_logger().info(f"Registered push token for user {user.id}")
        return ServiceResult.success(device_token)

    @classmethod
    def tokens_for(cls, user_ids: Iterable) -> set[str]:
        """Union of push tokens across the given users."""
        ids = {str(uid) for uid in user_ids}
        if not ids:
            return set()
        return set(
            DeviceToken.objects.filter(user_id__in=ids).values_list("token", flat=True)
        )

    @classmethod
    def update_profile(
        cls,
        user: User,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> User:
        """Update public identity fields that were provided."""
        update_fields = ["updated_at"]
        if display_name is not None:
            user.display_name = display_name.strip() or None
            update_fields.append("display_name")
        if photo_url is not None:
            user.photo_url = photo_url or None
            update_fields.append("photo_url")
        user.save(update_fields=update_fields)
        return user

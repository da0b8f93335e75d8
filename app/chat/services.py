"""
Chat system service layer.

This module provides the business logic around chats that is not message
storage (see store.py for that):

Services:
    ChatService: Direct and group chat creation, muting, lobby membership
    PresenceService: Online/away/offline writes (best-effort)

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Presence and lobby bootstrap never raise into the caller; failures
      are logged and returned as failed results

Usage:
    from chat.services import ChatService, PresenceService

    result = ChatService.start_direct(user, other_user)
    if result.success:
        chat = result.data

    ChatService.ensure_lobby(user)
    PresenceService.set_status(user.id, PresenceStatus.AWAY)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.utils import timezone

from chat.constants import LOBBY_CONFIG, PRESENCE_CONFIG
from chat.models import Chat, ChatType, Message, MessageRead, MessageType, dm_chat_id
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from authentication.models import User


class ChatService(BaseService):
    """
    Service for chat lifecycle operations.

    Methods:
        start_direct: Create or retrieve the dm between two users
        create_group: Create a named group chat
        set_muted: Mute or unmute push notifications for one participant
        ensure_lobby: Add a user to the shared lobby, creating it if needed
    """

    @classmethod
    def start_direct(cls, user: User, other: User) -> ServiceResult[Chat]:
        """
        Create or retrieve the direct chat between two users.

        The chat id is derived from the pair, so calling this from either
        side returns the same chat.

        Error codes:
            SAME_USER: Cannot start a direct chat with yourself
        """
        if user.id == other.id:
            return ServiceResult.failure(
                "Cannot start a direct chat with yourself",
                error_code="SAME_USER",
            )

        chat_id = dm_chat_id(user.id, other.id)
        with cls.atomic():
            chat, created = Chat.objects.get_or_create(
                id=chat_id,
                defaults={"chat_type": ChatType.DM},
            )
            if created:
                chat.participants.add(user, other)

        if created:
            cls.get_logger().info(f"Created direct chat {chat_id}")
        else:
            cls.get_logger().debug(f"Found existing direct chat {chat_id}")
        return ServiceResult.success(chat)

    @classmethod
    def create_group(
        cls,
        creator: User,
        name: str,
        member_ids: Iterable,
        description: str | None = None,
        avatar_url: str | None = None,
    ) -> ServiceResult[Chat]:
        """
        Create a group chat with the creator and the given members.

        Error codes:
            NAME_REQUIRED: Group name cannot be empty
            UNKNOWN_MEMBERS: Some member ids do not belong to active users
            TOO_FEW_PARTICIPANTS: A group needs at least one other member
        """
        name = (name or "").strip()
        if not name:
            return ServiceResult.failure("Group name is required", error_code="NAME_REQUIRED")

        requested = {str(uid) for uid in member_ids} - {str(creator.id)}
        User = get_user_model()
        members = list(User.objects.filter(id__in=requested, is_active=True))
        if len(members) != len(requested):
            found = {str(member.id) for member in members}
            return ServiceResult.failure(
                "Some members could not be found",
                error_code="UNKNOWN_MEMBERS",
                errors={"member_ids": sorted(requested - found)},
            )
        if not members:
            return ServiceResult.failure(
                "A group needs at least one other member",
                error_code="TOO_FEW_PARTICIPANTS",
            )

        with cls.atomic():
            chat = Chat.objects.create(
                chat_type=ChatType.GROUP,
                name=name,
                description=(description or "").strip() or None,
                avatar_url=avatar_url or None,
            )
            chat.participants.add(creator, *members)

        cls.get_logger().info(
            f"Created group chat {chat.id} '{name}' with {1 + len(members)} participants"
        )
        return ServiceResult.success(chat)

    @classmethod
    def set_muted(cls, chat_id: str, user: User, muted: bool) -> ServiceResult[Chat]:
        """
        Add or remove the user from the chat's muted set.

        Error codes:
            CHAT_NOT_FOUND: No chat with that id
            NOT_A_PARTICIPANT: The user is not in the chat
        """
        chat = Chat.objects.filter(id=chat_id).first()
        if chat is None:
            return ServiceResult.failure("Chat not found", error_code="CHAT_NOT_FOUND")
        if not chat.has_participant(user.id):
            return ServiceResult.failure(
                "You are not a participant in this chat",
                error_code="NOT_A_PARTICIPANT",
            )

        if muted:
            chat.muted_by.add(user)
        else:
            chat.muted_by.remove(user)
        cls.get_logger().info(f"User {user.id} {'muted' if muted else 'unmuted'} chat {chat_id}")
        return ServiceResult.success(chat)

    @classmethod
    def ensure_lobby(cls, user: User) -> ServiceResult[Chat]:
        """
        Make sure the user belongs to the shared lobby.

        In one transaction: create the lobby with the user as its first
        participant, or add the user to the existing lobby. When the
        transaction fails, a non-atomic best-effort add is attempted and
        the failure is logged; under contention that path can lose a
        concurrent participant update.

        A greeting message is seeded only when this call created the lobby.
        """
        display_name = user.display_name
        greeting = LOBBY_CONFIG.GREETING_TEMPLATE.format(name=display_name or "there")
        now = timezone.now()

        try:
            with cls.atomic():
                chat = Chat.objects.select_for_update().filter(id=LOBBY_CONFIG.CHAT_ID).first()
                created = chat is None
                if created:
                    chat = Chat.objects.create(
                        id=LOBBY_CONFIG.CHAT_ID,
                        chat_type=ChatType.GROUP,
                        name=LOBBY_CONFIG.NAME,
                        description=LOBBY_CONFIG.DESCRIPTION,
                        last_message=greeting,
                        last_message_at=now,
                    )
                else:
                    chat.last_message = (
                        chat.last_message
                        or f"👋 {display_name or 'A teammate'} joined the lobby!"
                    )
                    chat.last_message_at = now
                    chat.save(update_fields=["last_message", "last_message_at", "updated_at"])
                chat.participants.add(user)
        except Exception as exc:
            cls.get_logger().warning(f"Lobby transaction failed for {user.id}: {exc}", exc_info=True)
            return cls._ensure_lobby_fallback(user)

        if created:
            cls._seed_greeting(chat, user, greeting)
            cls.get_logger().info(f"Created lobby chat with first participant {user.id}")
        return ServiceResult.success(chat)

    @classmethod
    def _ensure_lobby_fallback(cls, user: User) -> ServiceResult[Chat]:
        try:
            chat, _ = Chat.objects.update_or_create(
                id=LOBBY_CONFIG.CHAT_ID,
                defaults={
                    "chat_type": ChatType.GROUP,
                    "name": LOBBY_CONFIG.NAME,
                    "description": LOBBY_CONFIG.DESCRIPTION,
                    "last_message_at": timezone.now(),
                },
            )
            chat.participants.add(user)
        except Exception as exc:
            return cls.handle_exception(exc, context=f"Lobby fallback failed for {user.id}")
        return ServiceResult.success(chat)

    @classmethod
    def _seed_greeting(cls, chat: Chat, user: User, greeting: str) -> None:
        try:
            message = Message.objects.create(
                chat=chat,
                sender=user,
                text=greeting,
                message_type=MessageType.SYSTEM,
            )
            MessageRead.objects.create(message=message, user=user)
        except Exception:
            cls.get_logger().warning("Failed to seed lobby greeting", exc_info=True)


class PresenceStatus:
    """User presence status values."""

    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"

    @classmethod
    def is_valid(cls, status: str) -> bool:
        """Check if status value is valid."""
        return status in PRESENCE_CONFIG.STATUSES


class PresenceService(BaseService):
    """
    Presence writes on the user record.

    Driven by client visibility events (focus, blur, unload) and by the HTTP
    presence ping. Writes are fire-and-forget: nothing is raised, failures
    are logged and returned as ServiceResult.failure.

    Usage:
        from chat.services import PresenceService, PresenceStatus

        PresenceService.set_status(user.id, PresenceStatus.ONLINE)
    """

    @classmethod
    def set_status(cls, user_id, status: str) -> ServiceResult[dict]:
        """
        Record is_online = (status == "online") and last_seen = now.

        Error codes:
            INVALID_STATUS: status is not online/away/offline
            USER_NOT_FOUND: no such user
        """
        if not PresenceStatus.is_valid(status):
            return ServiceResult.failure(
                f"Invalid presence status: {status}",
                error_code="INVALID_STATUS",
            )

        now = timezone.now()
        User = get_user_model()
        try:
            updated = User.objects.filter(id=user_id).update(
                is_online=status == PresenceStatus.ONLINE,
                last_seen=now,
            )
        except Exception as exc:
            return cls.handle_exception(exc, context=f"Presence write for {user_id} failed")

        if not updated:
            cls.get_logger().warning(f"Presence write for unknown user {user_id}")
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        cls.get_logger().debug(f"Presence for {user_id} set to {status}")
        return ServiceResult.success({"status": status, "last_seen": now})

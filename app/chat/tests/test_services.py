"""
Tests for ChatService and PresenceService.
"""

import uuid

import pytest

from authentication.tests.factories import UserFactory
from chat.constants import LOBBY_CONFIG
from chat.models import Chat, ChatType, Message, MessageType, dm_chat_id
from chat.services import ChatService, PresenceService, PresenceStatus


@pytest.mark.django_db
class TestStartDirect:
    """Tests for ChatService.start_direct()."""

    def test_creates_chat_with_both_participants(self, alice, bob):
        result = ChatService.start_direct(alice, bob)

        assert result.success
        chat = result.data
        assert chat.id == dm_chat_id(alice.id, bob.id)
        assert chat.chat_type == ChatType.DM
        assert set(chat.participants.values_list("id", flat=True)) == {alice.id, bob.id}

    def test_is_symmetric(self, alice, bob):
        """
        Starting a dm from either side returns the same chat.

        Why it matters: Two users must never end up with two dms.
        """
        first = ChatService.start_direct(alice, bob).data
        second = ChatService.start_direct(bob, alice).data

        assert first.id == second.id
        assert Chat.objects.filter(chat_type=ChatType.DM).count() == 1

    def test_rejects_self(self, alice):
        result = ChatService.start_direct(alice, alice)

        assert not result.success
        assert result.error_code == "SAME_USER"


@pytest.mark.django_db
class TestCreateGroup:
    """Tests for ChatService.create_group()."""

    def test_creates_group_with_creator_and_members(self, alice, bob, carol):
        result = ChatService.create_group(alice, "  Launch  ", [bob.id, carol.id], description="  ")

        assert result.success
        chat = result.data
        assert chat.name == "Launch"
        assert chat.description is None
        assert chat.participants.count() == 3

    def test_creator_in_member_list_is_not_duplicated(self, alice, bob):
        chat = ChatService.create_group(alice, "Pair", [alice.id, bob.id]).data

        assert chat.participants.count() == 2

    def test_name_is_required(self, alice, bob):
        result = ChatService.create_group(alice, "   ", [bob.id])

        assert result.error_code == "NAME_REQUIRED"

    def test_unknown_members_are_reported(self, alice, bob):
        missing = str(uuid.uuid4())

        result = ChatService.create_group(alice, "Team", [bob.id, missing])

        assert result.error_code == "UNKNOWN_MEMBERS"
        assert result.errors == {"member_ids": [missing]}
        assert not Chat.objects.filter(name="Team").exists()

    def test_inactive_members_count_as_unknown(self, alice):
        inactive = UserFactory(is_active=False)

        result = ChatService.create_group(alice, "Team", [inactive.id])

        assert result.error_code == "UNKNOWN_MEMBERS"

    def test_needs_another_member(self, alice):
        result = ChatService.create_group(alice, "Solo", [alice.id])

        assert result.error_code == "TOO_FEW_PARTICIPANTS"


@pytest.mark.django_db
class TestSetMuted:
    def test_mute_and_unmute(self, group_chat, alice):
        ChatService.set_muted(group_chat.id, alice, True)
        assert group_chat.muted_by.filter(id=alice.id).exists()

        ChatService.set_muted(group_chat.id, alice, False)
        assert not group_chat.muted_by.filter(id=alice.id).exists()

    def test_outsider_cannot_mute(self, group_chat, outsider):
        result = ChatService.set_muted(group_chat.id, outsider, True)

        assert result.error_code == "NOT_A_PARTICIPANT"

    def test_unknown_chat(self, alice):
        assert ChatService.set_muted("missing", alice, True).error_code == "CHAT_NOT_FOUND"


@pytest.mark.django_db
class TestEnsureLobby:
    """Tests for ChatService.ensure_lobby()."""

    def test_first_user_creates_lobby_with_greeting(self, alice):
        """
        The first user creates the lobby, which opens with a greeting.

        Why it matters: New users never land in an empty app.
        """
        result = ChatService.ensure_lobby(alice)

        assert result.success
        lobby = Chat.objects.get(id=LOBBY_CONFIG.CHAT_ID)
        assert lobby.name == LOBBY_CONFIG.NAME
        assert lobby.last_message == "👋 Hi Alice! Welcome to HotCode Lobby."
        greeting = Message.objects.get(chat=lobby)
        assert greeting.message_type == MessageType.SYSTEM
        assert greeting.reads.filter(user=alice).exists()

    def test_later_users_join_without_new_greeting(self, alice, bob):
        ChatService.ensure_lobby(alice)

        ChatService.ensure_lobby(bob)
        ChatService.ensure_lobby(bob)

        lobby = Chat.objects.get(id=LOBBY_CONFIG.CHAT_ID)
        assert set(lobby.participants.values_list("id", flat=True)) == {alice.id, bob.id}
        assert Message.objects.filter(chat=lobby).count() == 1

    def test_transaction_failure_falls_back_to_plain_add(self, alice, mocker):
        mocker.patch.object(
            ChatService, "_seed_greeting", side_effect=AssertionError("unreachable")
        )
        mocker.patch(
            "chat.services.Chat.objects.select_for_update",
            side_effect=RuntimeError("lock timeout"),
        )

        result = ChatService.ensure_lobby(alice)

        assert result.success
        assert Chat.objects.get(id=LOBBY_CONFIG.CHAT_ID).participants.filter(id=alice.id).exists()


@pytest.mark.django_db
class TestPresenceService:
    """Tests for PresenceService.set_status()."""

    @pytest.mark.parametrize(
        ("status", "online"),
        [(PresenceStatus.ONLINE, True), (PresenceStatus.AWAY, False), (PresenceStatus.OFFLINE, False)],
    )
    def test_writes_online_flag_and_last_seen(self, alice, status, online):
        result = PresenceService.set_status(alice.id, status)

        alice.refresh_from_db()
        assert result.success
        assert alice.is_online is online
        assert alice.last_seen == result.data["last_seen"]

    def test_invalid_status(self, alice):
        result = PresenceService.set_status(alice.id, "busy")

        assert result.error_code == "INVALID_STATUS"

    def test_unknown_user(self, db):
        result = PresenceService.set_status(uuid.uuid4(), PresenceStatus.ONLINE)

        assert result.error_code == "USER_NOT_FOUND"

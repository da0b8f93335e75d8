"""
Tests for the chat roster: summaries, sorting and the user directory cache.
"""

from datetime import timedelta

import pytest

from chat.models import Chat, ChatType
from chat.realtime import roster_topic
from chat.records import ChatRecord, ChatSummary, UserRecord
from chat.roster import (
    ChatRoster,
    UserDirectoryCache,
    build_summary,
    lobby_placeholder,
    sort_summaries,
)
from chat.tests.factories import BASE_TIME, ChatFactory, DirectChatFactory


def _directory(*records):
    directory = UserDirectoryCache(fetch=lambda ids: [])
    for record in records:
        directory.remember(record)
    return directory


def _dm(last_message=None):
    return ChatRecord(
        id="u1__u2",
        chat_type=ChatType.DM,
        participant_ids=("u1", "u2"),
        last_message=last_message,
    )


def _group(name=None, last_message=None, participants=("u1", "u2", "u3")):
    return ChatRecord(
        id="g1",
        chat_type=ChatType.GROUP,
        participant_ids=participants,
        name=name,
        last_message=last_message,
    )


BOB = UserRecord(id="u2", email="bob@example.com", display_name="Bob", photo_url="https://img/bob.png")
CAROL = UserRecord(id="u3", email="carol@example.com", display_name=None)


class TestBuildSummaryDirect:
    def test_unknown_counterpart_uses_generic_title(self):
        summary = build_summary(_dm(), "u1", _directory())

        assert summary.title == "Direct message"
        assert summary.subtitle == "Start the conversation"

    def test_known_counterpart_names_the_chat(self):
        """
        A dm is titled after the other participant and shows their photo.

        Why it matters: Users recognise dms by who they are talking to.
        """
        summary = build_summary(_dm(last_message="See you"), "u1", _directory(BOB))

        assert summary.title == "Bob"
        assert summary.subtitle == "See you"
        assert summary.avatar_url == "https://img/bob.png"

    def test_counterpart_without_messages_shows_email(self):
        summary = build_summary(_dm(), "u1", _directory(BOB))

        assert summary.subtitle == "bob@example.com"

    def test_counterpart_without_name_or_email(self):
        anonymous = UserRecord(id="u2")

        summary = build_summary(_dm(), "u1", _directory(anonymous))

        assert summary.title == "Direct message"
        assert summary.subtitle == "Say hello"


class TestBuildSummaryGroup:
    def test_named_group_with_last_message(self):
        summary = build_summary(_group(name="Team", last_message="Ship it"), "u1", _directory(BOB))

        assert summary.title == "Team"
        assert summary.subtitle == "Ship it"

    def test_unnamed_group_joins_member_names(self):
        """
        Member names fall back to email, then to the raw id.

        Why it matters: Titles stay readable before every profile is complete.
        """
        summary = build_summary(_group(), "u1", _directory(BOB, CAROL))

        assert summary.title == "Bob, carol@example.com"
        assert summary.subtitle == "Members: Bob, carol@example.com"

    def test_unknown_members_fall_back_to_ids(self):
        summary = build_summary(_group(), "u1", _directory())

        assert summary.title == "u2, u3"

    def test_solo_group_without_name(self):
        summary = build_summary(_group(participants=("u1",)), "u1", _directory())

        assert summary.title == "Group chat"
        assert summary.subtitle == "Start the conversation"

    def test_muted_flag_is_per_viewer(self):
        chat = ChatRecord(
            id="g1", chat_type=ChatType.GROUP, participant_ids=("u1", "u2"), muted_by=frozenset({"u2"})
        )

        assert build_summary(chat, "u2", _directory()).muted is True
        assert build_summary(chat, "u1", _directory()).muted is False


class TestSortSummaries:
    def test_orders_by_latest_activity_descending(self):
        """
        Chats sort by last_message_at, falling back to updated_at then created_at.

        Why it matters: The most recently active chat is always on top.
        """
        recent = ChatSummary("a", "group", "A", "", last_message_at=BASE_TIME + timedelta(hours=2))
        updated = ChatSummary("b", "group", "B", "", updated_at=BASE_TIME + timedelta(hours=1))
        created = ChatSummary("c", "group", "C", "", created_at=BASE_TIME)
        unknown = ChatSummary("d", "group", "D", "")

        ordered = sort_summaries([unknown, created, recent, updated])

        assert [s.chat_id for s in ordered] == ["a", "b", "c", "d"]


class TestUserDirectoryCache:
    def test_ensure_fetches_only_missing_ids_in_one_batch(self):
        calls = []

        def fetch(ids):
            calls.append(list(ids))
            return [UserRecord(id=uid) for uid in ids]

        directory = UserDirectoryCache(fetch=fetch)

        assert directory.ensure(["u2", "u3"]) == 2
        assert directory.ensure(["u2", "u3", "u4"]) == 1
        assert directory.ensure(["u2"]) == 0
        assert calls == [["u2", "u3"], ["u4"]]

    def test_unresolved_ids_are_retried(self):
        calls = []

        def fetch(ids):
            calls.append(list(ids))
            return []

        directory = UserDirectoryCache(fetch=fetch)
        directory.ensure(["ghost"])
        directory.ensure(["ghost"])

        assert calls == [["ghost"], ["ghost"]]
        assert "ghost" not in directory

    @pytest.mark.django_db
    def test_default_fetch_reads_users(self, alice, bob):
        directory = UserDirectoryCache()

        directory.ensure([alice.id, bob.id])

        assert directory.name_of(alice.id) == "Alice"
        assert len(directory) == 2


def test_lobby_placeholder():
    summary = lobby_placeholder("u1")

    assert summary.title == "HotCode Lobby"
    assert summary.subtitle == "Say hello to everyone here."
    assert summary.is_placeholder is True


@pytest.mark.django_db
class TestChatRoster:
    """Tests for ChatRoster against the database."""

    def test_user_without_chats_gets_lobby_placeholder(self, outsider):
        summaries = ChatRoster(outsider.id).summaries()

        assert len(summaries) == 1
        assert summaries[0].is_placeholder is True

    def test_lists_only_the_users_chats_newest_first(self, alice, bob, carol):
        older = ChatFactory(name="Older", members=[alice, carol])
        newer = DirectChatFactory(user1=alice, user2=bob)
        ChatFactory(name="Not mine", members=[bob, carol])
        Chat.objects.filter(id=older.id).update(last_message_at=BASE_TIME)
        Chat.objects.filter(id=newer.id).update(last_message_at=BASE_TIME + timedelta(minutes=5))

        summaries = ChatRoster(alice.id).summaries()

        assert [s.chat_id for s in summaries] == [newer.id, older.id]
        assert summaries[0].title == "Bob"

    def test_lookup_failure_still_lists_chats(self, alice, bob):
        DirectChatFactory(user1=alice, user2=bob)

        def broken_fetch(ids):
            raise ConnectionError("directory offline")

        roster = ChatRoster(alice.id, directory=UserDirectoryCache(fetch=broken_fetch))
        summaries = roster.summaries()

        assert summaries[0].title == "Direct message"

    def test_subscribe_re_emits_on_roster_change(self, alice, bob, feed):
        roster = ChatRoster(alice.id, feed=feed)
        emissions = []

        with roster.subscribe(emissions.append):
            DirectChatFactory(user1=alice, user2=bob)
            feed.publish(roster_topic(alice.id), str(alice.id))

        assert emissions[0][0].is_placeholder is True
        assert emissions[1][0].title == "Bob"

    def test_summary_of_single_chat(self, alice, bob):
        chat = DirectChatFactory(user1=alice, user2=bob)

        summary = ChatRoster(bob.id).summary_of(chat)

        assert summary.title == "Alice"
        assert summary.chat_id == chat.id

"""
Tests for the in-process ChangeFeed and the after-commit publishers.
"""

import pytest
from django.db import transaction

from chat.realtime import (
    ChangeFeed,
    chat_group_name,
    messages_topic,
    notify_roster_changed,
    roster_topic,
    typing_topic,
)
from chat.tests.factories import MessageFactory


class TestTopics:
    def test_topic_names(self):
        assert messages_topic("c1") == "chat:c1:messages"
        assert typing_topic("c1") == "chat:c1:typing"
        assert roster_topic("u1") == "chats:user:u1"
        assert chat_group_name("a__b") == "chat_a__b"


class TestChangeFeed:
    """Tests for ChangeFeed."""

    def test_publish_reaches_only_topic_listeners(self):
        feed = ChangeFeed()
        received = []
        feed.listen("a", received.append)
        feed.listen("b", lambda payload: received.append(("b", payload)))

        delivered = feed.publish("a", 1)

        assert delivered == 1
        assert received == [1]

    def test_failing_listener_does_not_stop_others(self):
        """
        One listener raising is reported to its on_error; the rest still run.

        Why it matters: A broken subscriber must not freeze other screens.
        """
        feed = ChangeFeed()
        errors = []
        received = []

        def broken(payload):
            raise RuntimeError("boom")

        feed.listen("a", broken, on_error=errors.append)
        feed.listen("a", received.append)

        delivered = feed.publish("a", "x")

        assert delivered == 1
        assert received == ["x"]
        assert isinstance(errors[0], RuntimeError)

    def test_unsubscribe_stops_delivery_and_is_idempotent(self):
        feed = ChangeFeed()
        received = []
        subscription = feed.listen("a", received.append)

        subscription.unsubscribe()
        subscription.unsubscribe()
        feed.publish("a", 1)

        assert received == []
        assert subscription.active is False
        assert feed.listener_count("a") == 0

    def test_unsubscribe_during_publish_skips_pending_listener(self):
        feed = ChangeFeed()
        received = []
        second = None

        def first(payload):
            second.unsubscribe()

        feed.listen("a", first)
        second = feed.listen("a", received.append)

        feed.publish("a", 1)

        assert received == []

    def test_subscription_as_context_manager(self):
        feed = ChangeFeed()

        with feed.listen("a", lambda payload: None) as subscription:
            assert subscription.active

        assert not subscription.active

    def test_failing_error_handler_is_contained(self):
        feed = ChangeFeed()

        def broken(payload):
            raise RuntimeError("boom")

        def broken_handler(exc):
            raise ValueError("worse")

        feed.listen("a", broken, on_error=broken_handler)

        assert feed.publish("a") == 0


class TestPublishers:
    def test_roster_change_publishes_per_user(self):
        feed = ChangeFeed()
        received = []
        feed.listen(roster_topic("u1"), received.append)
        feed.listen(roster_topic("u2"), received.append)

        notify_roster_changed(["u1", "u2"], feed=feed)

        assert received == ["u1", "u2"]

    @pytest.mark.django_db
    def test_rolled_back_write_publishes_nothing(
        self, group_chat, alice, mocker, django_capture_on_commit_callbacks
    ):
        """
        Publishing is deferred to commit.

        Why it matters: Listeners must never observe uncommitted state.
        """
        publish = mocker.patch("chat.signals.notify_messages_changed")

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            try:
                with transaction.atomic():
                    MessageFactory(chat=group_chat, sender=alice)
                    raise RuntimeError("rollback")
            except RuntimeError:
                pass

        assert callbacks == []
        publish.assert_not_called()

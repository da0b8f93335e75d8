"""
Tests for the optimistic merge engine (MessageTimeline).

No database access: records are built with make_record() and
MessageRecord.optimistic().
"""

from datetime import timedelta

import pytest

from chat.records import Delivery, MessageRecord, PageSnapshot, is_optimistic_id
from chat.tests.factories import BASE_TIME, make_record
from chat.timeline import MessageTimeline
from core.exceptions import ValidationError


def _pending(text="draft", seconds=100, sender_id="user-1") -> MessageRecord:
    return MessageRecord.optimistic(
        chat_id="chat-1",
        sender_id=sender_id,
        message_type="text",
        text=text,
        created_at=BASE_TIME + timedelta(seconds=seconds),
    )


def _page(*records, has_more=False) -> PageSnapshot:
    return PageSnapshot(messages=tuple(records), has_more=has_more, cursor=records[0].id if records else None)


def _ids(timeline) -> list[str]:
    return [m.id for m in timeline.messages]


class TestOptimisticRecords:
    def test_placeholder_is_pending_with_prefixed_id(self):
        placeholder = _pending()

        assert placeholder.delivery is Delivery.PENDING
        assert is_optimistic_id(placeholder.id)
        assert placeholder.read_by == frozenset({"user-1"})

    def test_prepend_rejects_confirmed_records(self):
        timeline = MessageTimeline()

        with pytest.raises(ValidationError) as exc_info:
            timeline.prepend_optimistic(make_record("m1"))

        assert exc_info.value.error_code == "NOT_PENDING"


class TestSettle:
    """Tests for MessageTimeline.settle()."""

    def test_settle_replaces_placeholder_with_exactly_one_entry(self):
        """
        After settle(id, final) exactly one entry represents the message.

        Why it matters: Users must never see their message twice.
        """
        timeline = MessageTimeline()
        placeholder = _pending(seconds=10)
        timeline.prepend_optimistic(placeholder)

        final = make_record("m1", seconds=11, text="draft")
        timeline.settle(placeholder.id, final)

        assert _ids(timeline) == ["m1"]
        assert timeline.pending == {}

    def test_settle_when_live_snapshot_already_delivered_the_message(self):
        """
        The live snapshot can beat the write response; settle still leaves one entry.

        Why it matters: Both orders of arrival must converge.
        """
        timeline = MessageTimeline()
        placeholder = _pending(seconds=10)
        timeline.prepend_optimistic(placeholder)

        live_copy = make_record("m1", seconds=11, read_by=frozenset({"user-1", "user-2"}))
        timeline.merge_incoming_page(_page(live_copy))
        assert sorted(_ids(timeline)) == sorted(["m1", placeholder.id])

        timeline.settle(placeholder.id, make_record("m1", seconds=11), merge_read_by=True)

        assert _ids(timeline) == ["m1"]
        assert timeline.find("m1").read_by == frozenset({"user-1", "user-2"})

    def test_settle_none_removes_placeholder_and_adds_nothing(self):
        timeline = MessageTimeline()
        timeline.merge_incoming_page(_page(make_record("m1")))
        placeholder = _pending()
        timeline.prepend_optimistic(placeholder)

        timeline.settle(placeholder.id, None)

        assert _ids(timeline) == ["m1"]
        assert timeline.pending == {}

    def test_settle_unknown_id_is_harmless(self):
        timeline = MessageTimeline()
        timeline.merge_incoming_page(_page(make_record("m1")))

        timeline.settle("optimistic-missing", None)

        assert _ids(timeline) == ["m1"]

    def test_settled_entry_is_confirmed(self):
        timeline = MessageTimeline()
        placeholder = _pending()
        timeline.prepend_optimistic(placeholder)

        timeline.settle(placeholder.id, placeholder.with_changes(id="m1"))

        assert timeline.find("m1").is_pending is False


class TestUpdatePatch:
    def test_patches_pending_entry(self):
        timeline = MessageTimeline()
        placeholder = _pending()
        timeline.prepend_optimistic(placeholder)

        assert timeline.update_patch(placeholder.id, upload_progress=0.5) is True
        assert timeline.find(placeholder.id).upload_progress == 0.5

    def test_settled_entry_is_not_patched(self):
        timeline = MessageTimeline()
        placeholder = _pending()
        timeline.prepend_optimistic(placeholder)
        timeline.settle(placeholder.id, None)

        assert timeline.update_patch(placeholder.id, upload_progress=1.0) is False

    def test_identity_fields_cannot_be_patched(self):
        timeline = MessageTimeline()
        placeholder = _pending()
        timeline.prepend_optimistic(placeholder)

        with pytest.raises(ValidationError):
            timeline.update_patch(placeholder.id, delivery=Delivery.CONFIRMED)


class TestMergeIncomingPage:
    """Tests for MessageTimeline.merge_incoming_page()."""

    def test_orders_by_creation_instant(self):
        timeline = MessageTimeline()

        timeline.merge_incoming_page(
            _page(make_record("m2", seconds=2), make_record("m1", seconds=1), has_more=True)
        )

        assert _ids(timeline) == ["m1", "m2"]
        assert timeline.has_more is True

    def test_keeps_pending_entries_across_emissions(self):
        """
        Placeholders survive live emissions until they are settled.

        Why it matters: A send in flight must not flicker out of view.
        """
        timeline = MessageTimeline()
        placeholder = _pending(seconds=50)
        timeline.prepend_optimistic(placeholder)

        timeline.merge_incoming_page(_page(make_record("m1", seconds=1)))

        assert _ids(timeline) == ["m1", placeholder.id]

    def test_empty_emission_keeps_only_pending(self):
        timeline = MessageTimeline()
        timeline.merge_incoming_page(_page(make_record("m1")))
        placeholder = _pending()
        timeline.prepend_optimistic(placeholder)

        timeline.merge_incoming_page(_page())

        assert _ids(timeline) == [placeholder.id]
        assert timeline.has_more is False

    def test_fresher_live_copy_replaces_held_copy(self):
        timeline = MessageTimeline()
        timeline.merge_incoming_page(_page(make_record("m1", text="old")))

        timeline.merge_incoming_page(_page(make_record("m1", text="edited")))

        assert len(timeline) == 1
        assert timeline.find("m1").text == "edited"

    def test_older_history_survives_live_emissions(self):
        """
        Messages loaded with load_older stay visible when the live window moves.

        Why it matters: New messages must not wipe history the user scrolled to.
        """
        timeline = MessageTimeline()
        timeline.merge_incoming_page(_page(make_record("m3", seconds=3), has_more=True))
        timeline.merge_older_page(_page(make_record("m1", seconds=1), make_record("m2", seconds=2)))

        timeline.merge_incoming_page(
            _page(make_record("m3", seconds=3), make_record("m4", seconds=4), has_more=True)
        )

        assert _ids(timeline) == ["m1", "m2", "m3", "m4"]
        assert timeline.has_more is False

    def test_equal_instants_keep_arrival_order(self):
        timeline = MessageTimeline()

        timeline.merge_incoming_page(_page(make_record("b", seconds=5), make_record("a", seconds=5)))

        assert _ids(timeline) == ["b", "a"]


class TestMergeOlderPage:
    def test_prepends_older_messages_without_duplicates(self):
        timeline = MessageTimeline()
        timeline.merge_incoming_page(
            _page(make_record("m2", seconds=2), make_record("m3", seconds=3), has_more=True)
        )

        timeline.merge_older_page(
            _page(make_record("m1", seconds=1), make_record("m2", seconds=2), has_more=True)
        )

        assert _ids(timeline) == ["m1", "m2", "m3"]
        assert timeline.has_more is True
        assert timeline.oldest_confirmed_id == "m1"


class TestOptimisticSendScenario:
    def test_send_flow_converges_to_single_confirmed_message(self):
        """
        Placeholder, live echo, then settle: one confirmed message remains.

        Why it matters: This is the everyday path of every sent message.
        """
        timeline = MessageTimeline()
        timeline.merge_incoming_page(_page(make_record("m1", seconds=1)))
        placeholder = _pending(text="Hi", seconds=2)
        timeline.prepend_optimistic(placeholder)

        assert _ids(timeline) == ["m1", placeholder.id]
        assert timeline.find(placeholder.id).is_pending

        persisted = make_record("m2", seconds=3, text="Hi")
        timeline.merge_incoming_page(_page(make_record("m1", seconds=1), persisted))
        timeline.settle(placeholder.id, persisted, merge_read_by=True)

        assert _ids(timeline) == ["m1", "m2"]
        assert all(not m.is_pending for m in timeline.messages)

    def test_reset_clears_everything(self):
        timeline = MessageTimeline()
        timeline.prepend_optimistic(_pending())
        timeline.merge_older_page(_page(make_record("m1")))

        timeline.reset()

        assert len(timeline) == 0
        assert timeline.pending == {}
        assert timeline.has_more is True

"""
Optimistic merge engine.

MessageTimeline holds one session's ordered view of a chat. It merges three
streams whose arrival order is not guaranteed:
    - live snapshots from MessageStore.subscribe_latest
    - local placeholders created before a send is persisted
    - older pages from MessageStore.load_older

Whatever order those arrive in, the visible sequence ends up the same:
ascending creation instant, stable for ties, one entry per message id,
and a confirmed record always supersedes a pending one, never the reverse.

Usage:
    timeline = MessageTimeline()
    subscription = store.subscribe_latest(chat_id, 40, timeline.merge_incoming_page)

    placeholder = MessageRecord.optimistic(chat_id, user_id, "text", text="Hi")
    timeline.prepend_optimistic(placeholder)
    ...
    timeline.settle(placeholder.id, persisted, merge_read_by=True)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import TYPE_CHECKING

from chat.records import Delivery
from core.exceptions import ValidationError
from core.timestamps import sort_key

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.records import MessageRecord, PageSnapshot

logger = logging.getLogger(__name__)

# Fields a patch may never change on a pending entry
_IMMUTABLE_PATCH_FIELDS = frozenset({"id", "delivery"})


def _ordered(messages: Iterable[MessageRecord]) -> list[MessageRecord]:
    # sorted() is stable: ties keep arrival order
    return sorted(messages, key=lambda message: sort_key(message.created_at))


def _dedupe(messages: Iterable[MessageRecord]) -> list[MessageRecord]:
    """One entry per id; a confirmed entry beats a pending one, later beats earlier."""
    by_id: dict[str, MessageRecord] = {}
    for message in messages:
        held = by_id.get(message.id)
        if held is not None and not held.is_pending and message.is_pending:
            continue
        by_id[message.id] = message
    return list(by_id.values())


class MessageTimeline:
    """
    Ordered, deduplicated view of one chat's messages.

    State:
        messages: visible sequence, oldest first
        pending: placeholders keyed by their optimistic id
        has_more: whether older history may still be loaded
    """

    def __init__(self) -> None:
        self._messages: list[MessageRecord] = []
        self._pending: dict[str, MessageRecord] = {}
        self._has_more = True
        self._history_exhausted = False
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def messages(self) -> tuple[MessageRecord, ...]:
        with self._lock:
            return tuple(self._messages)

    @property
    def pending(self) -> dict[str, MessageRecord]:
        with self._lock:
            return dict(self._pending)

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def oldest_confirmed_id(self) -> str | None:
        """Cursor for the next load_older call."""
        with self._lock:
            for message in self._messages:
                if not message.is_pending:
                    return message.id
        return None

    def find(self, message_id: str) -> MessageRecord | None:
        with self._lock:
            for message in self._messages:
                if message.id == message_id:
                    return message
        return None

    def __len__(self) -> int:
        return len(self._messages)

    # -------------------------------------------------------------------------
    # Optimistic entries
    # -------------------------------------------------------------------------

    def prepend_optimistic(self, message: MessageRecord) -> None:
        """Show a placeholder immediately, before the send is persisted."""
        if not message.is_pending:
            raise ValidationError(
                "Only pending messages can be added optimistically",
                error_code="NOT_PENDING",
            )
        with self._lock:
            self._pending[message.id] = message
            self._messages = _ordered(
                [m for m in self._messages if m.id != message.id] + [message]
            )

    def settle(
        self,
        optimistic_id: str,
        final: MessageRecord | None,
        merge_read_by: bool = False,
    ) -> None:
        """
        Resolve a placeholder once the send outcome is known.

        final=None drops the placeholder (the send failed). Otherwise the
        placeholder is replaced by final. When a confirmed entry with
        final's id is already present (the live snapshot won the race),
        it is replaced as well, or merged with read_by unioned when
        merge_read_by is set. Either way exactly one entry remains.
        """
        with self._lock:
            self._pending.pop(optimistic_id, None)
            remaining = [m for m in self._messages if m.id != optimistic_id]

            if final is None:
                self._messages = remaining
                return

            if final.is_pending:
                final = replace(final, delivery=Delivery.CONFIRMED)

            existing = next((m for m in remaining if m.id == final.id and not m.is_pending), None)
            if existing is not None and merge_read_by:
                final = replace(final, read_by=existing.read_by | final.read_by)

            self._messages = _ordered([m for m in remaining if m.id != final.id] + [final])

    def update_patch(self, optimistic_id: str, **patch) -> bool:
        """
        Shallow-merge fields into a still-pending placeholder.

        Used for upload progress. Settled or unknown ids are ignored.

        Returns:
            True if a pending entry was updated
        """
        illegal = _IMMUTABLE_PATCH_FIELDS & patch.keys()
        if illegal:
            raise ValidationError(
                f"Cannot patch {', '.join(sorted(illegal))}", error_code="INVALID_PATCH"
            )
        with self._lock:
            existing = self._pending.get(optimistic_id)
            if existing is None:
                return False
            updated = replace(existing, **patch)
            self._pending[optimistic_id] = updated
            self._messages = [updated if m.id == optimistic_id else m for m in self._messages]
            return True

    # -------------------------------------------------------------------------
    # Store snapshots
    # -------------------------------------------------------------------------

    def merge_incoming_page(self, snapshot: PageSnapshot) -> None:
        """
        Merge one live window emission.

        Confirmed entries already held (including older pages) are kept
        unless the live window carries a fresher copy; pending entries are
        re-appended. An empty window means the chat has no messages, so
        only pending entries survive.
        """
        with self._lock:
            pending = list(self._pending.values())
            if not snapshot.messages:
                self._messages = _ordered(pending)
                self._has_more = False
                return

            held = [m for m in self._messages if not m.is_pending]
            merged = _dedupe(held + _ordered(list(snapshot.messages) + pending))
            self._messages = _ordered(merged)
            self._has_more = snapshot.has_more and not self._history_exhausted

    def merge_older_page(self, snapshot: PageSnapshot) -> None:
        """Add an older page; has_more follows the page."""
        with self._lock:
            merged = _dedupe(list(snapshot.messages) + self._messages)
            self._messages = _ordered(merged)
            self._has_more = snapshot.has_more
            if not snapshot.has_more:
                self._history_exhausted = True

    def on_error(self, exc: Exception) -> None:
        """Subscription failures keep the last good state."""
        logger.warning(f"Timeline kept {len(self._messages)} messages after feed error: {exc}")

    def reset(self) -> None:
        with self._lock:
            self._messages = []
            self._pending = {}
            self._has_more = True
            self._history_exhausted = False

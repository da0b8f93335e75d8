"""
Typing indicators.

Write side:
    TypingService.set_typing upserts one TypingState row per (chat, user).
    TypingDebouncer collapses a burst of keystrokes into one typing=True
    write followed by typing=False once input has been quiet for
    TYPING_CONFIG.QUIET_INTERVAL_SECONDS.

Read side:
    TypingService.subscribe delivers {user_id: TypingRecord} after every
    change; active_typists() filters it down to other users who are typing.

Typing rows never expire on the server. Readers that want to hide entries
left behind by a crashed client can pass stale_after to active_typists().
"""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import TYPE_CHECKING

from django.utils import timezone

from chat.constants import TYPING_CONFIG
from chat.models import Chat, TypingState
from chat.realtime import get_change_feed, typing_topic
from chat.records import TypingRecord
from core.exceptions import NotFoundError, PermissionDeniedError
from core.services import BaseService

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from chat.realtime import ChangeFeed, Subscription
    from core.protocols import CancelHandle, Scheduler

logger = logging.getLogger(__name__)


class TypingService(BaseService):
    """
    Per-chat typing state.

    Usage:
        TypingService.set_typing(chat_id, user.id, True)
        states = TypingService.states(chat_id)
        others = active_typists(states, user.id)
    """

    @classmethod
    def set_typing(cls, chat_id: str, user_id, typing: bool) -> TypingRecord:
        """
        Upsert the caller's typing flag.

        Raises:
            NotFoundError: Chat does not exist
            PermissionDeniedError: User is not a participant
        """
        chat = Chat.objects.filter(id=chat_id).first()
        if chat is None:
            raise NotFoundError("Chat not found", error_code="CHAT_NOT_FOUND")
        if not chat.has_participant(user_id):
            raise PermissionDeniedError(
                "You are not a participant in this chat", error_code="NOT_A_PARTICIPANT"
            )

        state, _ = TypingState.objects.update_or_create(
            chat=chat, user_id=user_id, defaults={"typing": typing}
        )
        cls.get_logger().debug(f"User {user_id} typing={typing} in chat {chat_id}")
        return TypingRecord(user_id=str(state.user_id), typing=state.typing, updated_at=state.updated_at)

    @classmethod
    def states(cls, chat_id: str) -> dict[str, TypingRecord]:
        return {
            str(state.user_id): TypingRecord(
                user_id=str(state.user_id), typing=state.typing, updated_at=state.updated_at
            )
            for state in TypingState.objects.filter(chat_id=chat_id)
        }

    @classmethod
    def subscribe(
        cls,
        chat_id: str,
        on_states: Callable[[dict[str, TypingRecord]], None],
        on_error: Callable[[Exception], None] | None = None,
        feed: ChangeFeed | None = None,
    ) -> Subscription:
        """Deliver all typing states now and after every change."""
        feed = feed or get_change_feed()

        def emit(_payload=None):
            on_states(cls.states(chat_id))

        subscription = feed.listen(typing_topic(chat_id), emit, on_error=on_error)
        try:
            emit()
        except Exception as exc:
            cls.get_logger().exception(f"Initial typing states for chat {chat_id} failed")
            if on_error is not None:
                on_error(exc)
        return subscription


def active_typists(
    states: Mapping[str, TypingRecord],
    self_id,
    stale_after: timedelta | None = None,
    now=None,
) -> list[str]:
    """
    Ids of other users currently typing.

    Args:
        states: Mapping of user id to typing state
        self_id: Viewer, never included
        stale_after: When set, typing=True entries older than this are ignored
    """
    self_id = str(self_id)
    cutoff = None
    if stale_after is not None:
        cutoff = (now or timezone.now()) - stale_after
    return sorted(
        uid
        for uid, state in states.items()
        if state.typing
        and uid != self_id
        and (cutoff is None or (state.updated_at is not None and state.updated_at >= cutoff))
    )


class TypingDebouncer:
    """
    Collapse keystrokes into typing=True ... typing=False.

    The first input() emits True; every input() restarts the quiet timer;
    when the timer fires, False is emitted. The scheduler is anything with
    call_later(delay, callback), such as the consumer's asyncio loop.

    Args:
        emit: Called with True or False
        scheduler: Runs the quiet timer
        quiet_interval: Seconds without input before emitting False
    """

    def __init__(
        self,
        emit: Callable[[bool], None],
        scheduler: Scheduler,
        quiet_interval: float = TYPING_CONFIG.QUIET_INTERVAL_SECONDS,
    ):
        self._emit = emit
        self._scheduler = scheduler
        self.quiet_interval = quiet_interval
        self._typing = False
        self._timer: CancelHandle | None = None
        self._lock = threading.Lock()

    @property
    def typing(self) -> bool:
        return self._typing

    def input(self) -> None:
        with self._lock:
            start = not self._typing
            self._typing = True
            self._restart_timer()
        if start:
            self._safe_emit(True)

    def flush(self) -> None:
        """Emit False now if a burst is in progress."""
        with self._lock:
            was_typing = self._typing
            self._typing = False
            self._cancel_timer()
        if was_typing:
            self._safe_emit(False)

    def cancel(self) -> None:
        """Drop the pending timer without emitting."""
        with self._lock:
            self._typing = False
            self._cancel_timer()

    def _on_quiet(self) -> None:
        with self._lock:
            self._timer = None
            if not self._typing:
                return
            self._typing = False
        self._safe_emit(False)

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_later(self.quiet_interval, self._on_quiet)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _safe_emit(self, typing: bool) -> None:
        # Typing writes are best-effort
        try:
            self._emit(typing)
        except Exception:
            logger.warning("Typing write failed", exc_info=True)

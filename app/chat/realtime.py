"""
In-process change feed and channel-layer broadcast.

Every committed write to a chat publishes its topic here (see signals.py).
Two kinds of listeners react:
    - ChangeFeed listeners inside this process (MessageStore.subscribe_latest,
      ChatRoster, TypingService.subscribe)
    - WebSocket consumers, reached through the channel layer group
      "chat_<chat_id>"

Topics:
    chat:<chat_id>:messages   - messages, reactions, reads, edits, deletes
    chat:<chat_id>:typing     - typing states
    chats:user:<user_id>      - the user's roster

Usage:
    from chat.realtime import get_change_feed, messages_topic

    subscription = get_change_feed().listen(messages_topic(chat_id), on_change)
    ...
    subscription.unsubscribe()
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

logger = logging.getLogger(__name__)


def messages_topic(chat_id: str) -> str:
    return f"chat:{chat_id}:messages"


def typing_topic(chat_id: str) -> str:
    return f"chat:{chat_id}:typing"


def roster_topic(user_id) -> str:
    return f"chats:user:{user_id}"


def chat_group_name(chat_id: str) -> str:
    """Channel layer group; only ASCII alphanumerics, hyphens, underscores and periods."""
    return f"chat_{chat_id}"


@dataclass
class _Listener:
    callback: Callable[[Any], None]
    on_error: Callable[[Exception], None] | None


class Subscription:
    """
    Handle for one listener on one topic.

    unsubscribe() is synchronous and idempotent: once it returns, the
    callback is never invoked again for this subscription.
    """

    def __init__(self, feed: ChangeFeed, topic: str, listener_id: int):
        self._feed = feed
        self.topic = topic
        self._listener_id = listener_id

    @property
    def active(self) -> bool:
        return self._feed._has_listener(self.topic, self._listener_id)

    def unsubscribe(self) -> None:
        self._feed._remove(self.topic, self._listener_id)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        return f"Subscription(topic={self.topic!r}, active={self.active})"


class ChangeFeed:
    """
    Topic-based publish/subscribe within one process.

    A listener that raises is logged and told through its own on_error;
    other listeners on the topic still run.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, dict[int, _Listener]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def listen(
        self,
        topic: str,
        callback: Callable[[Any], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Subscription:
        with self._lock:
            listener_id = next(self._ids)
            self._listeners.setdefault(topic, {})[listener_id] = _Listener(callback, on_error)
        return Subscription(self, topic, listener_id)

    def publish(self, topic: str, payload: Any = None) -> int:
        """
        Invoke every listener of topic with payload.

        Returns:
            Number of listeners that ran without raising
        """
        with self._lock:
            listener_ids = list(self._listeners.get(topic, {}))

        delivered = 0
        for listener_id in listener_ids:
            with self._lock:
                listener = self._listeners.get(topic, {}).get(listener_id)
            if listener is None:
                # Unsubscribed while earlier listeners ran
                continue
            try:
                listener.callback(payload)
                delivered += 1
            except Exception as exc:
                logger.exception(f"Listener {listener_id} on {topic} failed")
                self._report(listener, exc)
        return delivered

    def listener_count(self, topic: str) -> int:
        with self._lock:
            return len(self._listeners.get(topic, {}))

    def _report(self, listener: _Listener, exc: Exception) -> None:
        if listener.on_error is None:
            return
        try:
            listener.on_error(exc)
        except Exception:
            logger.exception("Error handler of a change feed listener failed")

    def _has_listener(self, topic: str, listener_id: int) -> bool:
        with self._lock:
            return listener_id in self._listeners.get(topic, {})

    def _remove(self, topic: str, listener_id: int) -> None:
        with self._lock:
            listeners = self._listeners.get(topic)
            if not listeners:
                return
            listeners.pop(listener_id, None)
            if not listeners:
                del self._listeners[topic]


_default_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    """The process-wide feed that committed writes publish to."""
    return _default_feed


def broadcast(chat_id: str, event: dict) -> None:
    """
    Send an event to every WebSocket connected to a chat.

    Best-effort: a channel layer failure is logged and never reaches the
    write that triggered it.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(chat_group_name(chat_id), event)
    except Exception:
        logger.warning(f"Broadcast to chat {chat_id} failed", exc_info=True)


# =============================================================================
# Publishers (called after commit)
# =============================================================================


def notify_messages_changed(chat_id: str, feed: ChangeFeed | None = None) -> None:
    (feed or get_change_feed()).publish(messages_topic(chat_id), chat_id)
    broadcast(chat_id, {"type": "chat.changed", "chat_id": chat_id})


def notify_typing_changed(chat_id: str, payload: dict, feed: ChangeFeed | None = None) -> None:
    (feed or get_change_feed()).publish(typing_topic(chat_id), payload)
    broadcast(chat_id, {"type": "chat.typing", **payload})


def notify_roster_changed(user_ids, feed: ChangeFeed | None = None) -> None:
    feed = feed or get_change_feed()
    for user_id in user_ids:
        feed.publish(roster_topic(user_id), str(user_id))

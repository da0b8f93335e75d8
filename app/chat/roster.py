"""
Chat roster aggregation.

ChatRoster turns the chats one user participates in into display
summaries (title, subtitle, avatar), newest activity first. Participant
identities are resolved through a UserDirectoryCache that only grows:
after each roster emission the ids not yet cached are fetched in one batch.

Title and subtitle rules:
    dm:    title    = counterpart display name -> email -> "Direct message"
           subtitle = last message -> counterpart email -> "Say hello"
    group: title    = chat name -> joined participant names -> "Group chat"
           subtitle = last message -> "Members: <names>" -> "Start the conversation"

A user with no chats gets one placeholder summary for the lobby.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from authentication.services import UserDirectoryService
from chat.constants import LOBBY_CONFIG
from chat.models import Chat, ChatType
from chat.realtime import get_change_feed, roster_topic
from chat.records import ChatRecord, ChatSummary, UserRecord
from core.timestamps import sort_key

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from chat.realtime import ChangeFeed, Subscription

logger = logging.getLogger(__name__)

DIRECT_MESSAGE_TITLE = "Direct message"
GROUP_CHAT_TITLE = "Group chat"
DM_EMPTY_SUBTITLE = "Say hello"
EMPTY_SUBTITLE = "Start the conversation"


def _fetch_user_records(user_ids: Iterable[str]) -> list[UserRecord]:
    return [UserRecord.from_user(user) for user in UserDirectoryService.fetch_many(user_ids)]


class UserDirectoryCache:
    """
    Session-scoped map of user id to public identity.

    Entries are never evicted. Ids that could not be fetched are not
    remembered and are retried on the next ensure().

    Args:
        fetch: Batch loader returning UserRecords for the given ids
    """

    def __init__(self, fetch: Callable[[Iterable[str]], list[UserRecord]] | None = None):
        self._fetch = fetch or _fetch_user_records
        self._users: dict[str, UserRecord] = {}
        self._lock = threading.Lock()

    def get(self, user_id) -> UserRecord | None:
        return self._users.get(str(user_id))

    def __contains__(self, user_id) -> bool:
        return str(user_id) in self._users

    def __len__(self) -> int:
        return len(self._users)

    def missing(self, user_ids: Iterable) -> set[str]:
        return {str(uid) for uid in user_ids} - self._users.keys()

    def remember(self, record: UserRecord) -> None:
        with self._lock:
            self._users[record.id] = record

    def ensure(self, user_ids: Iterable) -> int:
        """
        Fetch the ids not cached yet, in one batch.

        Returns:
            Number of users added to the cache
        """
        missing = self.missing(user_ids)
        if not missing:
            return 0
        fetched = self._fetch(sorted(missing))
        with self._lock:
            for record in fetched:
                self._users[record.id] = record
        return len(fetched)

    def name_of(self, user_id) -> str:
        """Display name -> email -> id."""
        record = self.get(user_id)
        return record.public_name if record else str(user_id)


def build_summary(chat: ChatRecord, viewer_id, directory: UserDirectoryCache) -> ChatSummary:
    """Display summary of one chat as seen by viewer_id."""
    viewer_id = str(viewer_id)
    others = [uid for uid in chat.participant_ids if uid != viewer_id]
    avatar_url = chat.avatar_url

    if chat.chat_type == ChatType.DM:
        title = DIRECT_MESSAGE_TITLE
        subtitle = chat.last_message or EMPTY_SUBTITLE
        counterpart = directory.get(others[0]) if others else None
        if counterpart is not None:
            title = counterpart.display_name or counterpart.email or DIRECT_MESSAGE_TITLE
            subtitle = chat.last_message or counterpart.email or DM_EMPTY_SUBTITLE
            avatar_url = counterpart.photo_url
    else:
        names = [directory.name_of(uid) for uid in others]
        title = chat.name or ", ".join(names) or GROUP_CHAT_TITLE
        if chat.last_message:
            subtitle = chat.last_message
        elif names:
            subtitle = f"Members: {', '.join(names)}"
        else:
            subtitle = EMPTY_SUBTITLE

    return ChatSummary(
        chat_id=chat.id,
        chat_type=chat.chat_type,
        title=title,
        subtitle=subtitle,
        avatar_url=avatar_url,
        participant_ids=chat.participant_ids,
        last_message_at=chat.last_message_at,
        updated_at=chat.updated_at,
        created_at=chat.created_at,
        muted=viewer_id in chat.muted_by,
    )


def activity_key(summary: ChatSummary) -> int:
    """last_message_at, else updated_at, else created_at, as epoch ms."""
    for value in (summary.last_message_at, summary.updated_at, summary.created_at):
        if value is not None:
            return sort_key(value)
    return 0


def sort_summaries(summaries: Iterable[ChatSummary]) -> list[ChatSummary]:
    return sorted(summaries, key=activity_key, reverse=True)


def lobby_placeholder(viewer_id) -> ChatSummary:
    return ChatSummary(
        chat_id=LOBBY_CONFIG.CHAT_ID,
        chat_type=ChatType.GROUP,
        title=LOBBY_CONFIG.NAME,
        subtitle=LOBBY_CONFIG.PLACEHOLDER_SUBTITLE,
        participant_ids=(str(viewer_id),),
        is_placeholder=True,
    )


class ChatRoster:
    """
    Live list of one user's chats.

    Usage:
        roster = ChatRoster(user.id)
        summaries = roster.summaries()

        subscription = roster.subscribe(render)
        ...
        subscription.unsubscribe()
    """

    def __init__(
        self,
        user_id,
        directory: UserDirectoryCache | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.user_id = str(user_id)
        self.directory = directory or UserDirectoryCache()
        self.feed = feed or get_change_feed()

    def chats(self) -> list[ChatRecord]:
        queryset = Chat.objects.filter(participants__id=self.user_id).prefetch_related(
            "participants", "muted_by"
        )
        return [ChatRecord.from_chat(chat) for chat in queryset.distinct()]

    def summaries(self) -> list[ChatSummary]:
        chats = self.chats()
        if not chats:
            return [lobby_placeholder(self.user_id)]

        participant_ids = {
            uid for chat in chats for uid in chat.participant_ids if uid != self.user_id
        }
        try:
            self.directory.ensure(participant_ids)
        except Exception:
            # Titles fall back to ids until the next emission
            logger.warning(f"User lookup for roster of {self.user_id} failed", exc_info=True)

        return sort_summaries(build_summary(chat, self.user_id, self.directory) for chat in chats)

    def summary_of(self, chat: Chat) -> ChatSummary:
        """Summary of a single chat, e.g. right after creating it."""
        record = ChatRecord.from_chat(chat)
        self.directory.ensure(uid for uid in record.participant_ids if uid != self.user_id)
        return build_summary(record, self.user_id, self.directory)

    def subscribe(
        self,
        on_summaries: Callable[[list[ChatSummary]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Subscription:
        """Deliver summaries now and after every change to the user's chats."""

        def emit(_payload=None):
            on_summaries(self.summaries())

        subscription = self.feed.listen(roster_topic(self.user_id), emit, on_error=on_error)
        try:
            emit()
        except Exception as exc:
            logger.exception(f"Initial roster for {self.user_id} failed")
            if on_error is not None:
                on_error(exc)
        return subscription

"""
Display helpers for chat clients and notifications.

    format_relative_time(value)         -> "3 minutes ago"
    message_status(record, viewer, ids) -> "Sending…" / "Delivered" / "Read"
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.timestamps import to_datetime

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.records import MessageRecord

ABSOLUTE_AFTER = timedelta(days=30)

STATUS_SENDING = "Sending…"
STATUS_DELIVERED = "Delivered"
STATUS_READ = "Read"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_relative_time(value: Any, now: datetime | None = None) -> str:
    """
    Render a timestamp relative to now.

    Under a minute is "just now"; then minutes, hours and days; beyond 30
    days the absolute date ("Mar 4, 2025"). Unparseable input gives "".
    """
    moment = to_datetime(value)
    if moment is None:
        return ""
    now = now or timezone.now()
    delta = now - moment
    if delta < timedelta(minutes=1):
        return "just now"
    if delta < timedelta(hours=1):
        return _plural(int(delta.total_seconds() // 60), "minute")
    if delta < timedelta(days=1):
        return _plural(int(delta.total_seconds() // 3600), "hour")
    if delta <= ABSOLUTE_AFTER:
        return _plural(delta.days, "day")
    return f"{moment:%b} {moment.day}, {moment.year}"


def message_status(
    record: MessageRecord, viewer_id, participant_ids: Iterable[str]
) -> str | None:
    """
    Delivery status of the viewer's own message.

    None for other people's messages. "Read" once every other participant
    has read it.
    """
    viewer_id = str(viewer_id)
    if record.sender_id != viewer_id:
        return None
    if record.is_pending:
        return STATUS_SENDING
    others = {str(uid) for uid in participant_ids} - {viewer_id}
    if not others:
        return STATUS_DELIVERED
    return STATUS_READ if others <= record.read_by else STATUS_DELIVERED

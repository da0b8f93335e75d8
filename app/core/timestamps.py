"""
Timestamp normalization.

Timestamps reach the chat pipeline in several shapes: aware datetimes from
the ORM, naive datetimes from older rows or tests, ``{"seconds": ...,
"nanoseconds": ...}`` pairs coming over the wire, and database-native
timestamp objects exposing ``seconds``/``nanoseconds`` attributes. Anything
that orders messages or chats first converts to a single comparable instant:
integer milliseconds since the Unix epoch.

Usage:
    from core.timestamps import to_instant

    messages.sort(key=lambda m: to_instant(m.created_at) or 0)

Both helpers are total: malformed input yields None, never an exception.
Unset timestamps therefore sort first when callers use ``or 0``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime, timezone
from numbers import Real
from typing import Any

_SECONDS_KEY = "seconds"
_NANOS_KEY = "nanoseconds"


def _is_number(value: Any) -> bool:
    # bool is an int subclass; True/False are never timestamps
    return isinstance(value, Real) and not isinstance(value, bool)


def _from_pair(seconds: Any, nanoseconds: Any) -> int | None:
    if not (_is_number(seconds) and _is_number(nanoseconds)):
        return None
    if not (math.isfinite(seconds) and math.isfinite(nanoseconds)):
        return None
    return int(seconds * 1000 + math.floor(nanoseconds / 1_000_000))


def to_instant(value: Any) -> int | None:
    """
    Convert a heterogeneous timestamp to epoch milliseconds.

    Accepts:
        - datetime (naive values are treated as UTC)
        - Mapping with numeric "seconds" and "nanoseconds"
        - Object with numeric ``seconds`` and ``nanoseconds`` attributes

    Returns:
        Milliseconds since the epoch, or None for None and anything else.
    """
    try:
        if value is None:
            return None
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return math.floor(value.timestamp() * 1000)
        if isinstance(value, Mapping):
            if _SECONDS_KEY in value and _NANOS_KEY in value:
                return _from_pair(value[_SECONDS_KEY], value[_NANOS_KEY])
            return None
        seconds = getattr(value, _SECONDS_KEY, None)
        nanoseconds = getattr(value, _NANOS_KEY, None)
        if seconds is None or nanoseconds is None:
            return None
        return _from_pair(seconds, nanoseconds)
    except Exception:  # noqa: BLE001 - foreign timestamp objects may raise anything
        return None


def to_datetime(value: Any) -> datetime | None:
    """Convert a heterogeneous timestamp to an aware UTC datetime."""
    instant = to_instant(value)
    if instant is None:
        return None
    try:
        return datetime.fromtimestamp(instant / 1000, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return None


def sort_key(value: Any) -> int:
    """Ordering key with unset timestamps first."""
    instant = to_instant(value)
    return instant if instant is not None else 0

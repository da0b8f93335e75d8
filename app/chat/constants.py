"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message paging and read-receipt batching
- Typing indicator debounce
- The shared lobby chat
- Presence ping rate limiting

Import example:
    from chat.constants import MESSAGE_CONFIG, TYPING_CONFIG
"""

from typing import Final

from core.ratelimit import RateLimitRule


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Window sizes for the live subscription
    DEFAULT_PAGE_SIZE: Final[int] = 30
    ROOM_PAGE_SIZE: Final[int] = 40
    MAX_PAGE_SIZE: Final[int] = 100

    # Read receipts are written in batches of at most this many ids
    MARK_READ_BATCH: Final[int] = 30

    MAX_TEXT_LENGTH: Final[int] = 10000
    MAX_ATTACHMENTS_PER_MESSAGE: Final[int] = 10
    MAX_EMOJI_LENGTH: Final[int] = 16

    # Client-side placeholder ids start with this prefix
    OPTIMISTIC_PREFIX: Final[str] = "optimistic-"

    # Separator between the two sorted user ids of a direct chat id
    DM_ID_SEPARATOR: Final[str] = "__"


# =============================================================================
# Typing Configuration
# =============================================================================


class TYPING_CONFIG:
    """Configuration for typing indicators."""

    # Seconds without input before typing=false is written
    QUIET_INTERVAL_SECONDS: Final[float] = 2.0

    # Readers may ignore typing=true entries older than this
    STALE_AFTER_SECONDS: Final[int] = 10


# =============================================================================
# Lobby Configuration
# =============================================================================


class LOBBY_CONFIG:
    """The shared chat every new user is added to."""

    CHAT_ID: Final[str] = "global-lobby"
    NAME: Final[str] = "HotCode Lobby"
    DESCRIPTION: Final[str] = "Say hello to the community."
    GREETING_TEMPLATE: Final[str] = "👋 Hi {name}! Welcome to HotCode Lobby."

    # Roster placeholder shown before the user belongs to any chat
    PLACEHOLDER_SUBTITLE: Final[str] = "Say hello to everyone here."


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence tracking."""

    STATUSES: Final[tuple] = ("online", "away", "offline")

    # HTTP presence ping: 10 calls per 15 seconds per caller
    RATE_LIMIT: Final[RateLimitRule] = RateLimitRule(window_ms=15_000, max_requests=10)

"""
Constants and configuration for AI features.

Import example:
    from ai.constants import AI_CONFIG, RATE_LIMITS
"""

from typing import Final

from core.ratelimit import RateLimitRule


# =============================================================================
# AI Configuration
# =============================================================================


class AI_CONFIG:
    """Configuration for AI operations."""

    # Transcript sizes
    SUMMARY_MESSAGE_LIMIT: Final[int] = 30
    DRAFT_MESSAGE_LIMIT: Final[int] = 10

    SUGGESTION_COUNT: Final[int] = 3
    MAX_SUGGESTION_LENGTH: Final[int] = 120

    TEMPERATURE: Final[float] = 0.4
    MAX_TOKENS: Final[int] = 400

    DEFAULT_SUMMARY_MESSAGE: Final[str] = (
        "No recent conversation to summarize yet. Start chatting to see AI highlights here."
    )

    # Used when the provider fails or returns nothing usable
    DRAFT_FALLBACK: Final[tuple] = (
        "👍 Sounds good!",
        "Let me check and get back to you.",
        "Thanks for the heads up!",
    )

    # Checked before any provider call; matched case-insensitively as substrings
    BLOCKLIST: Final[tuple] = ("spam", "phishing", "terrorism")
    RESTRICTED_REASON: Final[str] = "Message contains restricted terms."


# =============================================================================
# Rate Limits (per user)
# =============================================================================


class RATE_LIMITS:
    SUMMARIZE: Final[RateLimitRule] = RateLimitRule(window_ms=60_000, max_requests=3)
    DRAFT: Final[RateLimitRule] = RateLimitRule(window_ms=60_000, max_requests=5)
    MODERATE: Final[RateLimitRule] = RateLimitRule(window_ms=30_000, max_requests=10)

"""
Fixed-window rate limiting.

A counter per key (e.g. ``"ai:summarize:<user_id>"``) that resets when its
window expires. Not a sliding window: a burst straddling a boundary can pass
up to twice the nominal rate, which is acceptable for the endpoints it
guards (AI assists and presence pings).

The limiter holds no global state. It works against an injected WindowStore:
    - InMemoryWindowStore: process-local dict with explicit eviction
    - CacheWindowStore: Django cache (Redis in production); buckets expire
      together with their window

Usage:
    from core.ratelimit import FixedWindowRateLimiter, InMemoryWindowStore

    limiter = FixedWindowRateLimiter(InMemoryWindowStore())
    decision = limiter.check("presence:42", window_ms=15_000, max_requests=10)
    if not decision:
        ...

    # Or raise core.exceptions.RateLimitError when exhausted
    limiter.assert_allowed("ai:draft:42", window_ms=60_000, max_requests=5)
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from core.exceptions import RateLimitError

if TYPE_CHECKING:
    from collections.abc import Callable

    from core.protocols import CacheBackend

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please retry in a few moments."


@dataclass(frozen=True)
class RateLimitRule:
    """A named limit: at most max_requests per window_ms."""

    window_ms: int
    max_requests: int


@dataclass(frozen=True)
class WindowBucket:
    """Counter state for one key within one window."""

    count: int
    expires_at_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at_ms <= now_ms


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Outcome of a rate limit check.

    Attributes:
        allowed: Whether the call may proceed
        count: Calls counted in the current window (including this one if allowed)
        remaining: Calls left in the current window
        retry_after_ms: Milliseconds until the window resets (0 when allowed)
    """

    allowed: bool
    count: int
    remaining: int
    retry_after_ms: int = 0

    def __bool__(self) -> bool:
        return self.allowed


class WindowStore(Protocol):
    """
    Storage for window buckets.

    hit() must count atomically: concurrent callers on the same key each
    observe a distinct count.
    """

    def hit(self, key: str, window_ms: int, now_ms: int) -> WindowBucket: ...

    def delete(self, key: str) -> None: ...


class InMemoryWindowStore:
    """
    Process-local bucket storage.

    Expired buckets are only removed by evict_expired(); callers that create
    unbounded key sets (per-user keys) should call it periodically.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, WindowBucket] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> WindowBucket | None:
        return self._buckets.get(key)

    def put(self, key: str, bucket: WindowBucket) -> None:
        with self._lock:
            self._buckets[key] = bucket

    def hit(self, key: str, window_ms: int, now_ms: int) -> WindowBucket:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.is_expired(now_ms):
                bucket = WindowBucket(count=1, expires_at_ms=now_ms + window_ms)
            else:
                bucket = WindowBucket(count=bucket.count + 1, expires_at_ms=bucket.expires_at_ms)
            self._buckets[key] = bucket
            return bucket

    def delete(self, key: str) -> None:
        with self._lock:
            self._buckets.pop(key, None)

    def evict_expired(self, now_ms: int | None = None) -> int:
        """Drop expired buckets and return how many were removed."""
        now_ms = _now_ms() if now_ms is None else now_ms
        with self._lock:
            expired = [key for key, bucket in self._buckets.items() if bucket.is_expired(now_ms)]
            for key in expired:
                del self._buckets[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._buckets)


class CacheWindowStore:
    """
    Bucket storage on a Django cache backend.

    The counter lives under one key and is bumped with cache.add() then
    cache.incr(), both atomic on Redis and locmem, so workers sharing the
    cache share one budget. The window's end instant lives under a second
    key. Both expire with the window.
    """

    key_prefix = "ratelimit"

    def __init__(self, cache: CacheBackend | None = None) -> None:
        if cache is None:
            from django.core.cache import cache as default_cache

            cache = default_cache
        self._cache = cache

    def _count_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}:count"

    def _expiry_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}:expires"

    def get(self, key: str) -> WindowBucket | None:
        count = self._cache.get(self._count_key(key))
        expires_at_ms = self._cache.get(self._expiry_key(key))
        if count is None or expires_at_ms is None:
            return None
        return WindowBucket(count=int(count), expires_at_ms=int(expires_at_ms))

    def _open_window(self, key: str, window_ms: int, now_ms: int) -> WindowBucket | None:
        expires_at_ms = now_ms + window_ms
        timeout = max(1, math.ceil(window_ms / 1000))
        if not self._cache.add(self._count_key(key), 1, timeout=timeout):
            return None
        self._cache.set(self._expiry_key(key), expires_at_ms, timeout=timeout)
        return WindowBucket(count=1, expires_at_ms=expires_at_ms)

    def hit(self, key: str, window_ms: int, now_ms: int) -> WindowBucket:
        expires_at_ms = self._cache.get(self._expiry_key(key))
        if expires_at_ms is not None and int(expires_at_ms) <= now_ms:
            self.delete(key)

        opened = self._open_window(key, window_ms, now_ms)
        if opened is not None:
            return opened
        try:
            count = self._cache.incr(self._count_key(key))
        except ValueError:
            # Counter expired between add() and incr()
            opened = self._open_window(key, window_ms, now_ms)
            if opened is not None:
                return opened
            count = self._cache.incr(self._count_key(key))

        expires_at_ms = self._cache.get(self._expiry_key(key))
        if expires_at_ms is None:
            expires_at_ms = now_ms + window_ms
        return WindowBucket(count=int(count), expires_at_ms=int(expires_at_ms))

    def delete(self, key: str) -> None:
        self._cache.delete(self._count_key(key))
        self._cache.delete(self._expiry_key(key))


def _now_ms() -> int:
    return int(time.time() * 1000)


class FixedWindowRateLimiter:
    """
    Fixed-window counter over an injected store.

    Semantics per check:
        - no bucket, or bucket expired: start a new window with count = 1
        - count past max_requests: reject until the window expires
        - otherwise: allow

    Every call is counted by the store, rejected ones included, so the
    decision never depends on a read made before another caller's write.
    Rejected calls do not extend the window.

    Args:
        store: Bucket storage (defaults to a fresh InMemoryWindowStore)
        clock: Callable returning the current time in epoch milliseconds
    """

    def __init__(
        self,
        store: WindowStore | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.store = store if store is not None else InMemoryWindowStore()
        self._clock = clock or _now_ms

    def check(self, key: str, window_ms: int, max_requests: int) -> RateLimitDecision:
        """Count one call against key and report whether it is allowed."""
        if window_ms <= 0 or max_requests <= 0:
            raise ValueError("window_ms and max_requests must be positive")

        now = self._clock()
        bucket = self.store.hit(key, window_ms, now)
        if bucket.count > max_requests:
            return RateLimitDecision(
                allowed=False,
                count=bucket.count,
                remaining=0,
                retry_after_ms=max(0, bucket.expires_at_ms - now),
            )
        return RateLimitDecision(
            allowed=True,
            count=bucket.count,
            remaining=max_requests - bucket.count,
        )

    def assert_allowed(self, key: str, window_ms: int, max_requests: int) -> RateLimitDecision:
        """
        Same as check() but raises RateLimitError when rejected.

        Raises:
            RateLimitError: details carry retry_after in whole seconds
        """
        decision = self.check(key, window_ms, max_requests)
        if not decision.allowed:
            retry_after = max(1, math.ceil(decision.retry_after_ms / 1000))
            logger.warning(f"Rate limit exceeded for {key} (retry in {retry_after}s)")
            raise RateLimitError(
                RATE_LIMIT_MESSAGE,
                details={"retry_after": retry_after, "limit": max_requests},
            )
        return decision

    def enforce(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        """assert_allowed() for a named rule."""
        return self.assert_allowed(key, rule.window_ms, rule.max_requests)

    def reset(self, key: str) -> None:
        """Forget the bucket for key."""
        self.store.delete(key)


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Limiter backed by the default Django cache, shared across workers."""
    return FixedWindowRateLimiter(CacheWindowStore())

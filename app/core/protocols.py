"""
Protocol definitions for generic infrastructure services.

Protocols define contracts that collaborators must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy substitution in tests

Available Protocols:
    CacheBackend: Cache operations interface (Django's cache satisfies it)
    Scheduler: Delayed callback interface (asyncio event loops satisfy it)

Usage:
    from core.protocols import CacheBackend

    def remember(cache: CacheBackend, key: str, value):
        cache.set(key, value, timeout=60)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol for cache backends.

    Compatible with Django's cache interface (locmem, django-redis).
    """

    def get(self, key: str, default: Any = None) -> Any:
        """Get value from cache, or default when missing or expired."""
        ...

    def set(self, key: str, value: Any, timeout: int | None = None) -> None:
        """Set value in cache; timeout in seconds (None for no expiry)."""
        ...

    def add(self, key: str, value: Any, timeout: int | None = None) -> bool:
        """Set value only if key is absent; True when it was stored."""
        ...

    def incr(self, key: str, delta: int = 1) -> int:
        """Atomically increment an existing counter; ValueError when missing."""
        ...

    def delete(self, key: str) -> bool:
        """Delete value from cache."""
        ...


class CancelHandle(Protocol):
    """Handle returned by Scheduler.call_later."""

    def cancel(self) -> None: ...


@runtime_checkable
class Scheduler(Protocol):
    """
    Protocol for delayed execution.

    asyncio.AbstractEventLoop matches this signature, so debouncers can run
    on the session's event loop in production and on a fake clock in tests.
    """

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> CancelHandle:
        """Run callback(*args) after delay seconds."""
        ...

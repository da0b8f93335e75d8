"""
Push delivery backends.

A backend sends one multicast: the same notification to a set of device
tokens. It reports per-token outcomes instead of raising for a bad token;
it raises only when the provider could not be reached at all.

The active backend is the dotted path in settings.PUSH_BACKEND:

    PUSH_BACKEND = "notifications.backends.LoggingPushBackend"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


@dataclass
class TokenResult:
    token: str
    success: bool
    error: str | None = None


@dataclass
class MulticastResult:
    """Outcome of one multicast send."""

    responses: list[TokenResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for response in self.responses if response.success)

    @property
    def failures(self) -> list[TokenResult]:
        return [response for response in self.responses if not response.success]


class PushBackend:
    """Base class for push providers."""

    def send_multicast(self, payload: dict) -> MulticastResult:
        """
        Send payload["notification"] and payload["data"] to payload["tokens"].

        Raises:
            ConnectionError: The provider could not be reached
        """
        raise NotImplementedError


class LoggingPushBackend(PushBackend):
    """Logs every multicast and reports all tokens delivered."""

    def send_multicast(self, payload: dict) -> MulticastResult:
        tokens = payload.get("tokens", [])
        logger.info(
            f"Push to {len(tokens)} device(s): "
            f"{payload['notification']['title']!r} / {payload['notification']['body']!r}"
        )
        return MulticastResult([TokenResult(token=token, success=True) for token in tokens])


@lru_cache(maxsize=None)
def _load_backend(path: str) -> PushBackend:
    return import_string(path)()


def get_push_backend() -> PushBackend:
    return _load_backend(settings.PUSH_BACKEND)

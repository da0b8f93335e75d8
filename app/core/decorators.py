"""
View decorators for cross-cutting concerns.

Usage:
    from core.decorators import rate_limit

    class ModerationView(APIView):
        @rate_limit(scope="ai:moderate", rule=RATE_LIMITS.MODERATE)
        def post(self, request):
            ...
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

from core.ratelimit import get_rate_limiter

if TYPE_CHECKING:
    from collections.abc import Callable

    from core.ratelimit import FixedWindowRateLimiter, RateLimitRule

logger = logging.getLogger(__name__)


def rate_limit_key(scope: str, request) -> str:
    """Build the limiter key for a request: authenticated users by id, others by IP."""
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return f"{scope}:{user.pk}"
    return f"{scope}:ip:{get_client_ip(request)}"


def get_client_ip(request) -> str:
    """Extract client IP from request, taking the first X-Forwarded-For hop."""
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")


def rate_limit(
    scope: str,
    rule: RateLimitRule,
    limiter_factory: Callable[[], FixedWindowRateLimiter] = get_rate_limiter,
):
    """
    Fixed-window rate limit for a DRF view method.

    Raises core.exceptions.RateLimitError when exhausted; the project's
    exception handler turns that into HTTP 429 with retry_after details.

    Args:
        scope: Operation name used as the key prefix
        rule: Window length and maximum calls per window
        limiter_factory: Builds the limiter (override in tests)
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(view, request, *args, **kwargs):
            limiter = limiter_factory()
            limiter.enforce(rate_limit_key(scope, request), rule)
            return func(view, request, *args, **kwargs)

        return wrapper

    return decorator

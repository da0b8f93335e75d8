"""
Core views providing infrastructure endpoints and error translation.

Contents:
    health_check: liveness/readiness probe
    application_exception_handler: DRF EXCEPTION_HANDLER that renders
        core.exceptions errors as JSON with their HTTP status
"""

import logging

from django.db import connection
from django.http import JsonResponse
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError, RateLimitError

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    HTTP Status Codes:
        200: Database reachable (cache problems only degrade the report)
        503: Database unreachable

    Example Response:
        {"status": "healthy", "database": "connected", "cache": "connected"}
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check could not reach the database")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        health_status["cache"] = (
            "connected" if cache.get("health_check") == "ok" else "disconnected"
        )
    except Exception:
        logger.warning("Health check could not reach the cache", exc_info=True)
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)


def application_exception_handler(exc, context):
    """
    Render domain errors raised inside DRF views.

    Anything that is not a BaseApplicationError falls through to DRF's
    default handler (serializer errors, authentication failures, 404s).
    """
    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        logger.info(
            f"{view.__class__.__name__ if view else 'view'} rejected request: {exc}"
        )
        response = Response(exc.to_dict(), status=exc.http_status)
        if isinstance(exc, RateLimitError) and "retry_after" in exc.details:
            response["Retry-After"] = str(exc.details["retry_after"])
        return response
    return exception_handler(exc, context)

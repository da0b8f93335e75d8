"""
Shared pytest configuration for all apps.

This module tunes Django settings for fast tests and auto-marks tests by
filename. App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    """Adjust Django settings before tests run."""
    from django.conf import settings

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Celery tasks run inline; push delivery goes to the logging backend
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.PUSH_BACKEND = "notifications.backends.LoggingPushBackend"

    # Never reach a real model API from tests
    settings.OPENAI_API_KEY = ""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Rate limit buckets live in the cache; start every test with none."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full send/receive workflows)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_timeline.py, test_ratelimit.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_store.py",
        "test_consumers.py",
        "test_sender.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_managers.py",
        "test_timeline.py",
        "test_timestamps.py",
        "test_ratelimit.py",
        "test_exceptions.py",
        "test_formatting.py",
        "test_realtime.py",
        "test_providers.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)

"""
Tests for notifications app.

- test_services.py: Targets, payload and multicast outcomes
- test_tasks.py: Celery task wrapper
- test_backends.py: Backend loading and the logging backend
"""

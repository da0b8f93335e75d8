"""
Tests for chat app.

This package contains test modules for:
- test_models.py: Chat ids and model constraints
- test_store.py: MessageStore reads, writes and pagination
- test_timeline.py: Optimistic merge engine
- test_sender.py: Send pipeline (moderation, uploads, settlement)
- test_roster.py: Chat summaries and the user directory cache
- test_typing.py: Typing service and debouncer
- test_services.py: ChatService and PresenceService
- test_realtime.py: Change feed and subscriptions
- test_formatting.py: Relative times and delivery status labels
- test_views.py: REST API endpoint tests
- test_consumers.py: WebSocket consumer tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_store.py
"""

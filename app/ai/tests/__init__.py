"""
Tests for AI app.

- test_services.py: Summaries, drafts and moderation (stub and provider paths)
- test_providers.py: Provider registry and the OpenAI adapter
- test_views.py: Endpoints, participant checks and rate limits
"""

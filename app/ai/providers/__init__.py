"""
AI provider implementations.

This package contains provider-specific implementations:
- base.py: BaseProvider protocol definition and ProviderError
- openai.py: OpenAI implementation

Provider Selection:
    Providers are selected by type string (settings.AI_PROVIDER).
    get_default_provider() returns None when no API key is configured;
    callers then answer with deterministic stub output.

Usage:
    from ai.providers import get_default_provider

    provider = get_default_provider()
    if provider is not None:
        response = provider.complete(prompt="Hello")

Adding New Providers:
    1. Create new file (e.g., google.py)
    2. Implement BaseProvider protocol
    3. Register in PROVIDERS dict below
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings

from .openai import OpenAIProvider

if TYPE_CHECKING:
    from .base import BaseProvider

logger = logging.getLogger(__name__)

# Maps provider type string to provider class
PROVIDERS: dict[str, type] = {
    "openai": OpenAIProvider,
}


def get_provider(provider_type: str, **kwargs) -> BaseProvider:
    """
    Get provider instance by type.

    Raises:
        ValueError: If provider type unknown
    """
    provider_class = PROVIDERS.get(provider_type)
    if not provider_class:
        raise ValueError(f"Unknown provider type: {provider_type}")
    return provider_class(**kwargs)


def get_default_provider() -> BaseProvider | None:
    """The configured provider, or None when running without an API key."""
    api_key = getattr(settings, "OPENAI_API_KEY", "")
    if not api_key:
        return None
    return get_provider(settings.AI_PROVIDER, api_key=api_key, default_model=settings.AI_MODEL)


def list_providers() -> list[str]:
    """Get list of available provider types."""
    return list(PROVIDERS.keys())

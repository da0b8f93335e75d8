"""
OpenAI provider implementation.

Implements the BaseProvider protocol over the OpenAI chat completions API.

Configuration:
    settings.OPENAI_API_KEY (or the api_key parameter)
    settings.AI_MODEL for the default model

Usage:
    from ai.providers.openai import OpenAIProvider

    provider = OpenAIProvider(api_key="sk-...")
    response = provider.complete(prompt="Summarize this thread", model="gpt-4o-mini")
"""

from __future__ import annotations

import logging
from typing import Any

import openai

from .base import BaseProviderImpl, ProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProviderImpl):
    """
    OpenAI API provider.

    The SDK client is created on first use.

    Attributes:
        api_key: OpenAI API key
        base_url: Optional custom endpoint (for Azure or proxies)
        default_model: Default model
        organization: Optional organization ID
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "gpt-4o-mini",
        organization: str | None = None,
        timeout: float = 20.0,
    ):
        super().__init__(api_key=api_key, base_url=base_url, default_model=default_model)
        self.organization = organization
        self.timeout = timeout
        self._client = None

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            client_kwargs: dict[str, Any] = {"api_key": self.api_key, "timeout": self.timeout}
            if self.base_url:
                client_kwargs["base_url"] = self.base_url
            if self.organization:
                client_kwargs["organization"] = self.organization
            self._client = openai.OpenAI(**client_kwargs)
        return self._client

    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        **kwargs: Any,
    ) -> dict:
        """
        Generate an OpenAI chat completion.

        Raises:
            ProviderError: API error, timeout, or an empty answer
        """
        model = self._get_model(model)
        try:
            response = self._get_client().chat.completions.create(
                model=model,
                messages=self._build_messages(prompt, system_prompt),
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI API error for model {model}: {e}")
            raise ProviderError("OpenAI API call failed") from e

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content or "").strip() if choice else ""
        if not content:
            raise ProviderError("OpenAI response missing text")

        usage = response.usage
        return {
            "content": content,
            "model": response.model,
            "usage": {
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
            },
            "finish_reason": choice.finish_reason,
        }

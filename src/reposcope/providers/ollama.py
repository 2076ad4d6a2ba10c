"""
RepoScope Ollama Provider

Local model execution through Ollama's OpenAI-compatible endpoint.
No API key needed.

Default URL: http://localhost:11434/v1
Override with OLLAMA_BASE_URL environment variable.
"""

from __future__ import annotations

import os
from typing import Any

from reposcope.providers.base import LLMProvider, LLMResponse, ProviderConfig
from reposcope.providers.openai import OpenAIProvider


class OllamaProvider(LLMProvider):
    """Local Ollama provider using the OpenAI-compatible API.

    The model must be pulled first: ``ollama pull llama3.1:8b``
    """

    DEFAULT_MODEL = "llama3.1:8b"
    DEFAULT_BASE_URL = "http://localhost:11434/v1"

    def __init__(self, config: ProviderConfig | None = None):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        if not self._config.base_url:
            self._config.base_url = os.environ.get("OLLAMA_BASE_URL", self.DEFAULT_BASE_URL)
        self._delegate = self._create_delegate()

    def _create_delegate(self) -> OpenAIProvider:
        config = ProviderConfig(
            api_key="ollama",  # ignored by Ollama, required by the SDK
            model=self._config.model,
            base_url=self._config.base_url,
            timeout_seconds=self._config.timeout_seconds,
            max_retries=1,
        )
        return OpenAIProvider(config)

    async def _create_message_impl(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int = 4096,
        system: str | None = None,
        tools: list[dict] | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Delegate to the OpenAI provider targeting Ollama."""
        return await self._delegate._create_message_impl(
            messages,
            max_tokens=max_tokens,
            system=system,
            tools=tools,
            temperature=temperature,
        )

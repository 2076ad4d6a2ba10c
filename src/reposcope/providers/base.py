"""
RepoScope LLM Provider Base

Abstract interface for the model-calling side of the orchestration
loop. All providers implement this interface, so the loop never
depends on a particular SDK.

Key design decisions:
- Async-first (all providers are async)
- Retry with exponential backoff built into base class
- Tool schemas passed in ``{name, description, inputSchema}`` form and
  converted per backend
- Provider-agnostic response model (LLMResponse)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from reposcope.core.models import ToolCall, new_call_id
from reposcope.exceptions import ProviderTimeoutError, ProviderUnavailableError
from reposcope.logging import get_logger

logger = get_logger("reposcope.providers")


class ContentBlock(BaseModel):
    """A single content block in an LLM response."""
    type: str = "text"  # "text" or "tool_use"
    text: str = ""
    tool_name: str = ""
    tool_input: dict[str, Any] = Field(default_factory=dict)
    tool_use_id: str = ""


class LLMResponse(BaseModel):
    """Unified response from any LLM provider."""
    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: str = "end_turn"
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def text(self) -> str:
        """Concatenated text from all text blocks."""
        return "".join(b.text for b in self.content if b.type == "text")

    @property
    def tool_calls(self) -> list[ToolCall]:
        """tool_use blocks as ToolCalls, in response order."""
        return [
            ToolCall(id=b.tool_use_id or new_call_id(), name=b.tool_name, arguments=b.tool_input)
            for b in self.content
            if b.type == "tool_use"
        ]

    @property
    def has_tool_use(self) -> bool:
        return any(b.type == "tool_use" for b in self.content)


class ProviderConfig(BaseModel):
    """Configuration for an LLM provider."""
    api_key: str | None = None
    model: str = ""
    base_url: str | None = None
    max_retries: int = 3
    timeout_seconds: float = 60.0
    retry_base_delay: float = 1.0  # exponential backoff base (1s, 2s, 4s)


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Subclasses implement ``_create_message_impl``; the base class
    provides retry logic with exponential backoff.
    """

    def __init__(self, config: ProviderConfig | None = None):
        self._config = config or ProviderConfig()

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def model(self) -> str:
        return self._config.model

    @abstractmethod
    async def _create_message_impl(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int = 4096,
        system: str | None = None,
        tools: list[dict] | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Provider-specific implementation of message creation."""
        ...

    async def create_message(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int = 4096,
        system: str | None = None,
        tools: list[dict] | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Create a message with automatic retry and exponential backoff.

        Args:
            messages: List of message dicts (role + content).
            max_tokens: Maximum tokens in response.
            system: Optional system prompt.
            tools: Optional tool schemas; omitted entirely when None or empty.
            temperature: Optional temperature override.

        Raises:
            ProviderTimeoutError: if the final attempt timed out.
            ProviderUnavailableError: if every attempt failed otherwise.
        """
        last_error: Exception | None = None
        for attempt in range(self._config.max_retries):
            try:
                return await self._create_message_impl(
                    messages,
                    max_tokens=max_tokens,
                    system=system,
                    tools=tools or None,
                    temperature=temperature,
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Provider attempt {attempt + 1}/{self._config.max_retries} failed: {e}",
                    extra={"provider": self.name, "model": self.model},
                )
                if attempt < self._config.max_retries - 1:
                    delay = self._config.retry_base_delay * (2 ** attempt)
                    await asyncio.sleep(delay)

        details = {"attempts": self._config.max_retries}
        if isinstance(last_error, (TimeoutError, asyncio.TimeoutError)):
            raise ProviderTimeoutError(self.name, str(last_error), details) from last_error
        raise ProviderUnavailableError(
            self.name,
            f"failed after {self._config.max_retries} retries: {last_error}",
            details,
        ) from last_error

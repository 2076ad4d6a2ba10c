"""
RepoScope Claude Provider

Wraps the Anthropic SDK (anthropic.AsyncAnthropic) behind the
unified LLMProvider interface. Reads ANTHROPIC_API_KEY when no key
is configured.
"""

from __future__ import annotations

from typing import Any

import anthropic

from reposcope.providers.base import (
    ContentBlock,
    LLMProvider,
    LLMResponse,
    ProviderConfig,
)


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider via the official SDK."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        config: ProviderConfig | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        self._client = client or anthropic.AsyncAnthropic(
            api_key=self._config.api_key or None,
            timeout=self._config.timeout_seconds,
        )

    @staticmethod
    def convert_tools(tools: list[dict]) -> list[dict]:
        return [
            {
                "name": t["name"],
                "description": t.get("description", ""),
                "input_schema": t.get("inputSchema") or t.get("input_schema", {}),
            }
            for t in tools
        ]

    @staticmethod
    def _merge_roles(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Anthropic requires alternating, non-empty turns.

        Empty turns (an assistant turn that only requested tools) are dropped
        and consecutive same-role turns are merged.
        """
        merged: list[dict[str, Any]] = []
        for m in messages:
            if not m["content"]:
                continue
            if merged and merged[-1]["role"] == m["role"]:
                merged[-1]["content"] += "\n\n" + m["content"]
            else:
                merged.append({"role": m["role"], "content": m["content"]})
        return merged

    async def _create_message_impl(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int = 4096,
        system: str | None = None,
        tools: list[dict] | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Create a message via the Anthropic Messages API."""
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": max_tokens,
            "messages": self._merge_roles(messages),
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = self.convert_tools(tools)
        if temperature is not None:
            kwargs["temperature"] = temperature

        response = await self._client.messages.create(**kwargs)
        return self._to_response(response)

    @staticmethod
    def _to_response(response: Any) -> LLMResponse:
        blocks: list[ContentBlock] = []
        for block in response.content:
            if block.type == "text":
                blocks.append(ContentBlock(type="text", text=block.text))
            elif block.type == "tool_use":
                blocks.append(ContentBlock(
                    type="tool_use",
                    tool_name=block.name,
                    tool_input=block.input if isinstance(block.input, dict) else {},
                    tool_use_id=block.id,
                ))

        return LLMResponse(
            content=blocks,
            stop_reason=response.stop_reason or "end_turn",
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

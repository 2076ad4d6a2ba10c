"""
RepoScope OpenAI Provider

Wraps the OpenAI chat completions API behind the unified LLMProvider
interface. Set OPENAI_API_KEY, or pass api_key in the config.

Also used for OpenAI-compatible servers (Ollama, vLLM, Together,
Groq) via base_url override.
"""

from __future__ import annotations

import json
from typing import Any

from openai import AsyncOpenAI

from reposcope.providers.base import (
    ContentBlock,
    LLMProvider,
    LLMResponse,
    ProviderConfig,
    logger,
)


class OpenAIProvider(LLMProvider):
    """OpenAI and OpenAI-compatible provider."""

    DEFAULT_MODEL = "gpt-4o"

    def __init__(
        self,
        config: ProviderConfig | None = None,
        client: AsyncOpenAI | None = None,
    ):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        self._client = client or self._create_client()

    def _create_client(self) -> AsyncOpenAI:
        kwargs: dict[str, Any] = {"timeout": self._config.timeout_seconds}
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key
        if self._config.base_url:
            kwargs["base_url"] = self._config.base_url
        return AsyncOpenAI(**kwargs)

    async def _create_message_impl(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int = 4096,
        system: str | None = None,
        tools: list[dict] | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Create a message via the chat completions API."""
        oai_messages: list[dict[str, Any]] = []
        if system:
            oai_messages.append({"role": "system", "content": system})
        oai_messages.extend({"role": m["role"], "content": m.get("content", "")} for m in messages)

        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": max_tokens,
            "messages": oai_messages,
        }
        if tools:
            kwargs["tools"] = self.convert_tools(tools)
        if temperature is not None:
            kwargs["temperature"] = temperature

        response = await self._client.chat.completions.create(**kwargs)
        return self._to_response(response)

    @staticmethod
    def convert_tools(tools: list[dict]) -> list[dict]:
        """Convert tool schemas to the function-calling format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "parameters": tool.get("inputSchema") or tool.get("input_schema", {}),
                },
            }
            for tool in tools
        ]

    @staticmethod
    def parse_arguments(raw: Any, tool_name: str) -> dict[str, Any] | None:
        """Decode tool arguments; None when they are not a JSON object."""
        if isinstance(raw, dict):
            return raw
        if raw is None or raw == "":
            return {}
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(
                "Failed to parse tool arguments; dropping call",
                extra={"tool_name": tool_name},
            )
            return None
        return parsed if isinstance(parsed, dict) else None

    @classmethod
    def _to_response(cls, response: Any) -> LLMResponse:
        """Convert a chat completion into a LLMResponse."""
        choice = response.choices[0] if response.choices else None
        if not choice:
            return LLMResponse()

        blocks: list[ContentBlock] = []
        msg = choice.message
        if msg.content:
            blocks.append(ContentBlock(type="text", text=msg.content))

        for tc in msg.tool_calls or []:
            if not tc.function or not tc.function.name:
                continue
            arguments = cls.parse_arguments(tc.function.arguments, tc.function.name)
            if arguments is None:
                continue
            blocks.append(
                ContentBlock(
                    type="tool_use",
                    tool_name=tc.function.name,
                    tool_input=arguments,
                    tool_use_id=tc.id or "",
                )
            )

        stop_reason_map = {
            "stop": "end_turn",
            "tool_calls": "tool_use",
            "length": "max_tokens",
            "content_filter": "end_turn",
        }
        stop_reason = stop_reason_map.get(choice.finish_reason or "stop", "end_turn")

        usage = response.usage
        return LLMResponse(
            content=blocks,
            stop_reason=stop_reason,
            model=response.model or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

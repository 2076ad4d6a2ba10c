"""Tests for the provider abstraction layer.

Covers:
- LLMResponse properties
- Retry with backoff and error classification
- OpenAI tool conversion, response parsing, malformed arguments
- Claude tool conversion, role merging, response parsing
- Provider factory
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from reposcope.core.models import ChatMessage
from reposcope.exceptions import ProviderTimeoutError, ProviderUnavailableError
from reposcope.orchestrator import Orchestrator, OrchestratorConfig
from reposcope.providers import create_provider
from reposcope.providers.base import ContentBlock, LLMProvider, LLMResponse, ProviderConfig
from reposcope.providers.claude import ClaudeProvider
from reposcope.providers.ollama import OllamaProvider
from reposcope.providers.openai import OpenAIProvider

SCHEMA = {
    "name": "read_file",
    "description": "Read a file",
    "inputSchema": {"type": "object", "properties": {"path": {"type": "string"}}},
}

# ─── LLMResponse ──────────────────────────────────────────


class TestLLMResponse:
    def test_text_property(self):
        response = LLMResponse(content=[
            ContentBlock(type="text", text="Hello "),
            ContentBlock(type="text", text="world"),
        ])
        assert response.text == "Hello world"

    def test_tool_calls_property(self):
        response = LLMResponse(content=[
            ContentBlock(type="text", text="Let me look"),
            ContentBlock(type="tool_use", tool_name="list_files", tool_input={"max_depth": 1},
                         tool_use_id="call_1"),
        ])
        calls = response.tool_calls
        assert len(calls) == 1
        assert calls[0].id == "call_1"
        assert calls[0].name == "list_files"
        assert calls[0].arguments == {"max_depth": 1}
        assert response.has_tool_use is True

    def test_generated_call_id(self):
        response = LLMResponse(content=[ContentBlock(type="tool_use", tool_name="list_files")])
        assert response.tool_calls[0].id.startswith("tc_")

    def test_no_tool_use(self):
        assert LLMResponse(content=[ContentBlock(text="hi")]).has_tool_use is False


# ─── Retry ─────────────────────────────────────────────────


class FlakyProvider(LLMProvider):
    def __init__(self, failures, max_retries=3):
        super().__init__(ProviderConfig(model="flaky", max_retries=max_retries, retry_base_delay=0))
        self._failures = list(failures)
        self.attempts = 0
        self.seen_tools = []

    async def _create_message_impl(self, messages, *, max_tokens=4096, system=None,
                                   tools=None, temperature=None):
        self.attempts += 1
        self.seen_tools.append(tools)
        if self._failures:
            raise self._failures.pop(0)
        return LLMResponse(content=[ContentBlock(text="ok")])


class TestRetry:
    async def test_recovers_after_failures(self):
        provider = FlakyProvider([ConnectionError("a"), ConnectionError("b")])
        response = await provider.create_message([{"role": "user", "content": "hi"}])
        assert response.text == "ok"
        assert provider.attempts == 3

    async def test_unavailable_after_all_retries(self):
        provider = FlakyProvider([ConnectionError("down")] * 3)
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await provider.create_message([{"role": "user", "content": "hi"}])
        assert exc_info.value.details["attempts"] == 3

    async def test_timeout_classified(self):
        provider = FlakyProvider([TimeoutError("slow")], max_retries=1)
        with pytest.raises(ProviderTimeoutError):
            await provider.create_message([{"role": "user", "content": "hi"}])

    async def test_empty_tool_list_not_passed(self):
        provider = FlakyProvider([])
        await provider.create_message([{"role": "user", "content": "hi"}], tools=[])
        assert provider.seen_tools == [None]


# ─── OpenAI ────────────────────────────────────────────────


def _completion(content=None, tool_calls=None, finish_reason="stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(
            message=SimpleNamespace(content=content, tool_calls=tool_calls),
            finish_reason=finish_reason,
        )],
        model="gpt-4o",
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
    )


def _oai_tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


class TestOpenAIProvider:
    def test_convert_tools(self):
        converted = OpenAIProvider.convert_tools([SCHEMA])
        assert converted == [{
            "type": "function",
            "function": {
                "name": "read_file",
                "description": "Read a file",
                "parameters": SCHEMA["inputSchema"],
            },
        }]

    def test_text_response(self):
        response = OpenAIProvider._to_response(_completion(content="Hello"))
        assert response.text == "Hello"
        assert response.stop_reason == "end_turn"
        assert response.input_tokens == 12
        assert response.output_tokens == 3

    def test_tool_call_response(self):
        response = OpenAIProvider._to_response(_completion(
            tool_calls=[_oai_tool_call("call_1", "read_file", '{"path": "README.md"}')],
            finish_reason="tool_calls",
        ))
        assert response.stop_reason == "tool_use"
        assert response.tool_calls[0].arguments == {"path": "README.md"}
        assert response.tool_calls[0].id == "call_1"

    def test_malformed_arguments_dropped(self):
        response = OpenAIProvider._to_response(_completion(tool_calls=[
            _oai_tool_call("call_1", "read_file", '{"path": '),
            _oai_tool_call("call_2", "list_files", "{}"),
        ]))
        assert [c.name for c in response.tool_calls] == ["list_files"]

    def test_non_object_arguments_dropped(self):
        assert OpenAIProvider.parse_arguments("[1, 2]", "read_file") is None
        assert OpenAIProvider.parse_arguments("", "list_files") == {}

    def test_no_choices(self):
        assert OpenAIProvider._to_response(SimpleNamespace(choices=[])).content == []

    async def test_request_shape(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_completion(content="hi"))
        provider = OpenAIProvider(ProviderConfig(model="gpt-4o", max_retries=1), client=client)

        await provider.create_message(
            [{"role": "user", "content": "hello"}],
            system="be brief",
            tools=[SCHEMA],
            temperature=0.3,
        )

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}
        assert kwargs["messages"][1] == {"role": "user", "content": "hello"}
        assert kwargs["tools"][0]["function"]["name"] == "read_file"
        assert kwargs["temperature"] == 0.3

    async def test_tools_omitted_when_none(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_completion(content="hi"))
        provider = OpenAIProvider(ProviderConfig(model="gpt-4o", max_retries=1), client=client)

        await provider.create_message([{"role": "user", "content": "hello"}])

        assert "tools" not in client.chat.completions.create.call_args.kwargs


# ─── Claude ────────────────────────────────────────────────


class TestClaudeProvider:
    def test_convert_tools(self):
        assert ClaudeProvider.convert_tools([SCHEMA]) == [{
            "name": "read_file",
            "description": "Read a file",
            "input_schema": SCHEMA["inputSchema"],
        }]

    def test_merge_roles(self):
        merged = ClaudeProvider._merge_roles([
            {"role": "user", "content": "a"},
            {"role": "user", "content": "b"},
            {"role": "assistant", "content": "c"},
        ])
        assert merged == [
            {"role": "user", "content": "a\n\nb"},
            {"role": "assistant", "content": "c"},
        ]

    def test_merge_roles_drops_empty_turns(self):
        merged = ClaudeProvider._merge_roles([
            {"role": "user", "content": "Find TODOs"},
            {"role": "assistant", "content": ""},
            {"role": "user", "content": "Here are the results"},
        ])
        assert merged == [{"role": "user", "content": "Find TODOs\n\nHere are the results"}]

    async def test_tool_round_sends_no_empty_turn(self, repo, pool):
        tool_turn = SimpleNamespace(
            content=[SimpleNamespace(type="tool_use", name="search_files",
                                     input={"pattern": "TODO"}, id="toolu_1")],
            stop_reason="tool_use", model="claude",
            usage=SimpleNamespace(input_tokens=5, output_tokens=1),
        )
        answer = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Two TODOs.")],
            stop_reason="end_turn", model="claude",
            usage=SimpleNamespace(input_tokens=9, output_tokens=3),
        )
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=[tool_turn, answer])
        provider = ClaudeProvider(ProviderConfig(model="claude", max_retries=1), client=client)
        orchestrator = Orchestrator(
            provider,
            OrchestratorConfig(repo_path=str(repo), prefetch_overview=False),
            pool=pool,
        )

        result = await orchestrator.chat([ChatMessage(role="user", content="Find TODOs")])

        assert result.content == "Two TODOs."
        sent = client.messages.create.call_args_list[1].kwargs["messages"]
        assert all(m["content"] for m in sent)
        assert [m["role"] for m in sent] == ["user"]

    def test_to_response(self):
        raw = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Checking"),
                SimpleNamespace(type="tool_use", name="search_files",
                                input={"pattern": "TODO"}, id="toolu_1"),
            ],
            stop_reason="tool_use",
            model="claude",
            usage=SimpleNamespace(input_tokens=7, output_tokens=2),
        )
        response = ClaudeProvider._to_response(raw)
        assert response.text == "Checking"
        assert response.tool_calls[0].name == "search_files"
        assert response.tool_calls[0].id == "toolu_1"
        assert response.input_tokens == 7


# ─── Factory ───────────────────────────────────────────────


class TestCreateProvider:
    def test_ollama_default(self, monkeypatch):
        monkeypatch.delenv("OLLAMA_BASE_URL", raising=False)
        provider = create_provider("ollama")
        assert isinstance(provider, OllamaProvider)
        assert provider.model == OllamaProvider.DEFAULT_MODEL

    def test_openai(self):
        provider = create_provider("openai", api_key="sk-test", model="gpt-4o-mini")
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o-mini"

    def test_claude_aliases(self):
        assert isinstance(create_provider("claude", api_key="k"), ClaudeProvider)
        assert isinstance(create_provider("Anthropic", api_key="k"), ClaudeProvider)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_provider("mystery")

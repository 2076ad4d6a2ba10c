"""
RepoScope Orchestration Loop

Drives one conversation turn: call the model, run any requested tools,
feed a prose digest of their results back, and repeat until the model
answers in plain content.

Two budgets bound a turn:
- ``max_iterations``: total model invocations
- ``max_tool_rounds``: rounds in which tools are attached; once spent,
  the model is called without tools so it has to answer

Streaming turns push events into an EventChannel:
tool_call events as the Router reports them, then one content event,
then exactly one ``done`` or ``error``.
"""

from __future__ import annotations

import asyncio
from typing import Literal

from pydantic import BaseModel, Field

from reposcope.core.models import (
    ChatMessage,
    ContentEvent,
    ConversationState,
    DoneEvent,
    ErrorEvent,
    ErrorInfo,
    ToolCallEvent,
    ToolCallResult,
    Usage,
)
from reposcope.exceptions import OrchestrationError, RepoScopeError
from reposcope.logging import get_logger
from reposcope.observability import get_tracer, record_model_call
from reposcope.orchestrator.channel import ChannelClosedError, EventChannel
from reposcope.orchestrator.prompts import SUMMARY_INSTRUCTION, PromptBuilder
from reposcope.providers.base import LLMProvider
from reposcope.tools.client import RepoClient, RepoClientPool
from reposcope.tools.formatting import format_tool_results
from reposcope.tools.router import ToolEventEmitter, ToolRouter

logger = get_logger("reposcope.orchestrator")

MAX_ITERATIONS = 5
MAX_TOOL_ROUNDS = 2


class OrchestratorConfig(BaseModel):
    repo_path: str | None = None
    tool_mode: Literal["auto", "manual"] = "auto"
    temperature: float | None = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, ge=1)
    max_iterations: int = Field(default=MAX_ITERATIONS, ge=1)
    max_tool_rounds: int = Field(default=MAX_TOOL_ROUNDS, ge=0)
    prefetch_overview: bool = True
    system_prompt_file: str | None = None


class OrchestrationResult(BaseModel):
    content: str = ""
    tool_calls: list[ToolCallResult] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)


class Orchestrator:
    """Bounded tool-calling loop over one repository."""

    def __init__(
        self,
        provider: LLMProvider,
        config: OrchestratorConfig | None = None,
        pool: RepoClientPool | None = None,
    ):
        self._provider = provider
        self._config = config or OrchestratorConfig()
        self._pool = pool or RepoClientPool()
        self._client: RepoClient | None = None
        self._prompts = PromptBuilder(
            repo_path=self._config.repo_path,
            tool_mode=self._config.tool_mode,
            prompt_file=self._config.system_prompt_file,
        )

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def prompt_builder(self) -> PromptBuilder:
        return self._prompts

    @property
    def tools_available(self) -> bool:
        return self._client is not None and self._client.is_connected

    async def initialize(self) -> None:
        """Acquire a client for the repository and pre-fetch its overview.

        A repository that cannot be opened leaves the orchestrator without
        tools; the failure is logged, not raised.
        """
        if not self._config.repo_path:
            logger.info("No repository configured, tool calls disabled")
            return
        try:
            self._client = await self._pool.get_or_create(self._config.repo_path)
        except RepoScopeError as e:
            logger.error(f"Failed to open repository: {e}", extra={"root": self._config.repo_path})
            return
        logger.info("Orchestrator initialized", extra={"root": self._client.root})
        if self._config.prefetch_overview:
            await self._prefetch_overview()

    async def _prefetch_overview(self) -> None:
        try:
            overview = await self._client.call_tool(
                "get_repo_overview", {"max_depth": 3, "include_stats": True}
            )
        except RepoScopeError as e:
            logger.warning(f"Failed to pre-fetch repository overview: {e}")
            return
        self._prompts.set_repo_overview(overview.model_dump(mode="json", exclude_none=True))

    async def _ensure_initialized(self) -> None:
        if self._config.repo_path and not self.tools_available:
            await self.initialize()

    def _system_prompt(self, messages: list[ChatMessage]) -> str:
        extra = [m.content for m in messages if m.role == "system" and m.content]
        return "\n\n".join([self._prompts.build_system_prompt(), *extra])

    async def _run(
        self,
        messages: list[ChatMessage],
        emitter: ToolEventEmitter | None = None,
    ) -> OrchestrationResult:
        """The shared turn loop.

        Raises:
            OrchestrationError: ``max_iterations`` when the budget runs out.
        """
        await self._ensure_initialized()

        state = ConversationState(messages=list(messages))
        system = self._system_prompt(messages)
        allow_tools = self._prompts.tools_allowed(state.last_user_message())
        router = ToolRouter(self._client, emitter) if self.tools_available else None
        usage = Usage()
        all_results: list[ToolCallResult] = []
        tracer = get_tracer()

        while state.iteration < self._config.max_iterations:
            state.iteration += 1
            tools = None
            if router is not None and allow_tools and state.tool_rounds < self._config.max_tool_rounds:
                tools = self._prompts.tool_definitions

            with tracer.start_as_current_span("model.create_message") as span:
                span.set_attribute("orchestrator.iteration", state.iteration)
                span.set_attribute("orchestrator.tools_attached", tools is not None)
                response = await self._provider.create_message(
                    state.to_provider_messages(),
                    system=system,
                    tools=tools,
                    max_tokens=self._config.max_tokens,
                    temperature=self._config.temperature,
                )
            record_model_call(self._provider.name, tools is not None)
            usage.add(response.input_tokens, response.output_tokens)

            calls = response.tool_calls
            if tools is not None and calls:
                results = await router.execute_all(calls)
                all_results.extend(results)
                state.tool_rounds += 1
                logger.info(
                    f"Tool round finished with {len(results)} call(s)",
                    extra={"iteration": state.iteration, "tool_rounds": state.tool_rounds},
                )
                state.add("assistant", response.text)
                state.add("user", SUMMARY_INSTRUCTION.format(digest=format_tool_results(results)))
                continue

            return OrchestrationResult(content=response.text, tool_calls=all_results, usage=usage)

        logger.warning("Max tool iterations reached", extra={"iteration": state.iteration})
        raise OrchestrationError("max_iterations", "Maximum tool iterations reached")

    async def chat(self, messages: list[ChatMessage]) -> OrchestrationResult:
        """Run a turn to completion and return content, tool calls and usage."""
        return await self._run(messages)

    def stream_chat(self, messages: list[ChatMessage], maxsize: int = 64) -> EventChannel:
        """Start a turn in a background task and return its event channel."""
        channel = EventChannel(maxsize=maxsize)
        task = asyncio.create_task(self._produce(messages, channel))
        channel.attach_producer(task)
        return channel

    async def _produce(self, messages: list[ChatMessage], channel: EventChannel) -> None:
        async def emit(record: ToolCallResult) -> None:
            await channel.send(ToolCallEvent.from_result(record))

        try:
            try:
                result = await self._run(messages, emit)
                if result.content:
                    await channel.send(ContentEvent(delta=result.content))
                await channel.send(DoneEvent(usage=result.usage))
            except OrchestrationError as e:
                await channel.send(ErrorEvent(error=ErrorInfo(**e.to_dict())))
            except ChannelClosedError:
                raise
            except Exception as e:
                logger.exception("Orchestration error")
                await channel.send(ErrorEvent(error=ErrorInfo(
                    code="orchestration_error", message=str(e) or type(e).__name__,
                )))
        except ChannelClosedError:
            logger.info("Event channel closed by consumer")
        finally:
            await channel.finish()

    async def cleanup(self) -> None:
        """Release this orchestrator's hold on its client."""
        self._client = None

"""
RepoScope Tool Router

Sits between a model's tool calls and the repository client. Every
call gets exactly one terminal lifecycle record:

1. Unknown names are rejected at once (one ``error`` event, no ``started``)
2. Known tools emit ``started`` with their arguments
3. The tool runs and is timed
4. ``completed`` (with the result) or ``error`` (with code and message) is emitted

No exception raised by a tool crosses the router. The router does not
limit how many calls it runs; round budgets belong to the orchestrator.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from reposcope.core.models import ToolCall, ToolCallResult, ToolName
from reposcope.exceptions import ErrorCode, InvalidToolError, ToolError
from reposcope.logging import get_logger
from reposcope.observability import get_tracer, record_tool_call
from reposcope.tools.client import RepoClient

logger = get_logger("reposcope.tools.router")

ToolEventEmitter = Callable[[ToolCallResult], Awaitable[None] | None]


class ToolRouter:
    """Executes tool calls against one RepoClient and reports their lifecycle."""

    def __init__(self, client: RepoClient, emitter: ToolEventEmitter | None = None):
        self._client = client
        self._emitter = emitter

    def set_emitter(self, emitter: ToolEventEmitter | None) -> None:
        self._emitter = emitter

    async def _emit(self, record: ToolCallResult) -> None:
        if self._emitter is None:
            return
        outcome = self._emitter(record)
        if asyncio.iscoroutine(outcome):
            await outcome

    async def execute(self, call: ToolCall) -> ToolCallResult:
        """Run a single call; always returns a terminal record."""
        if ToolName.parse(call.name) is None:
            error = InvalidToolError(call.name)
            record = ToolCallResult.failed(call, error.code.value, error.message)
            logger.warning("Rejected unknown tool", extra={"tool_name": call.name, "call_id": call.id})
            await self._emit(record)
            return record

        await self._emit(ToolCallResult.started(call))
        logger.info(
            "Executing tool call",
            extra={"tool_name": call.name, "call_id": call.id},
        )

        start = time.monotonic()
        with get_tracer().start_as_current_span(f"tool.{call.name}") as span:
            span.set_attribute("tool.call_id", call.id)
            try:
                output = await self._client.call_tool(call.name, call.arguments)
                duration_ms = round((time.monotonic() - start) * 1000, 2)
                record = ToolCallResult.completed(
                    call, output.model_dump(mode="json", exclude_none=True), duration_ms
                )
            except ToolError as e:
                duration_ms = round((time.monotonic() - start) * 1000, 2)
                record = ToolCallResult.failed(call, e.code.value, e.message, duration_ms)
            except Exception as e:
                duration_ms = round((time.monotonic() - start) * 1000, 2)
                logger.exception(
                    "Tool raised unexpectedly",
                    extra={"tool_name": call.name, "call_id": call.id},
                )
                record = ToolCallResult.failed(
                    call,
                    ErrorCode.TOOL_EXECUTION_FAILED.value,
                    f"{type(e).__name__}: {e}",
                    duration_ms,
                )
            span.set_attribute("tool.status", record.status.value)

        record_tool_call(call.name, record.status.value, duration_ms)
        if record.error is not None:
            logger.warning(
                "Tool call failed",
                extra={
                    "tool_name": call.name,
                    "call_id": call.id,
                    "error_code": record.error.code,
                    "duration_ms": duration_ms,
                },
            )
        else:
            logger.info(
                "Tool call completed",
                extra={"tool_name": call.name, "call_id": call.id, "duration_ms": duration_ms},
            )
        await self._emit(record)
        return record

    async def execute_all(self, calls: list[ToolCall]) -> list[ToolCallResult]:
        """Run calls one after another, in submission order."""
        results: list[ToolCallResult] = []
        for call in calls:
            results.append(await self.execute(call))
        return results

"""
RepoScope API Server

FastAPI backend exposing the orchestration loop as an OpenAI-style
chat completions endpoint (Server-Sent Events when streaming) plus
direct, sandboxed file browsing endpoints.

Usage:
    uvicorn reposcope.api.server:app --reload
"""

from __future__ import annotations

import json
import os
import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Literal

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from reposcope import __version__
from reposcope.config import get_settings
from reposcope.core.models import ChatMessage, ContentEvent, DoneEvent, ErrorEvent, ToolCallEvent
from reposcope.exceptions import OrchestrationError, ProviderError, RepoScopeError, ToolError
from reposcope.logging import get_logger
from reposcope.observability import init_tracing
from reposcope.orchestrator import EventChannel, Orchestrator, OrchestratorConfig
from reposcope.providers import LLMProvider, create_provider
from reposcope.tools.client import RepoClientPool

logger = get_logger("reposcope.api")


# ─── Request/Response Models ────────────────────────────────

class ChatSettings(BaseModel):
    model: str | None = None
    repo_path: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    tool_mode: Literal["auto", "manual"] = "auto"


class ChatCompletionRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    stream: bool = True
    settings: ChatSettings | None = None
    model: str | None = None
    repo_path: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    tool_mode: Literal["auto", "manual"] = "auto"

    def resolved_settings(self) -> ChatSettings:
        if self.settings is not None:
            return self.settings
        return ChatSettings(
            model=self.model,
            repo_path=self.repo_path,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            tool_mode=self.tool_mode,
        )


# ─── Shared state ───────────────────────────────────────────

pool = RepoClientPool()

ProviderFactory = Callable[[str | None], LLMProvider]


def get_pool() -> RepoClientPool:
    return pool


def get_provider_factory() -> ProviderFactory:
    settings = get_settings()

    def factory(model: str | None) -> LLMProvider:
        base_url = settings.ollama_base_url if settings.provider == "ollama" else None
        return create_provider(settings.provider, model=model or settings.model, base_url=base_url)

    return factory


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_tracing()
    logger.info("API server starting", extra={"provider": get_settings().provider})
    yield
    await pool.close_all()


app = FastAPI(
    title="RepoScope API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


@app.exception_handler(ToolError)
async def tool_error_handler(request: Request, exc: ToolError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    logger.error(f"Provider failure: {exc}", extra={"provider": exc.provider_name})
    return JSONResponse(status_code=502, content=_error_body("provider_unavailable", exc.message))


@app.exception_handler(OrchestrationError)
async def orchestration_error_handler(request: Request, exc: OrchestrationError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": exc.to_dict()})


@app.exception_handler(RepoScopeError)
async def reposcope_error_handler(request: Request, exc: RepoScopeError) -> JSONResponse:
    return JSONResponse(status_code=500, content=_error_body("internal_error", exc.message))


# ─── SSE framing ────────────────────────────────────────────

def _sse(payload: dict | str) -> str:
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n"


def _content_chunk(chat_id: str, model: str, created: int, content: str,
                   finish_reason: str | None = None) -> str:
    return _sse({
        "id": chat_id,
        "object": "chat.completion.chunk",
        "created": created,
        "model": model,
        "choices": [{
            "index": 0,
            "delta": {} if finish_reason else {"content": content},
            "finish_reason": finish_reason,
        }],
    })


async def stream_events(
    channel: EventChannel, chat_id: str, model: str, created: int
) -> AsyncIterator[str]:
    """Translate turn events into SSE frames."""
    try:
        async for event in channel:
            if isinstance(event, ContentEvent):
                yield _content_chunk(chat_id, model, created, event.delta)
            elif isinstance(event, ToolCallEvent):
                yield _sse(event.to_dict())
            elif isinstance(event, DoneEvent):
                yield _content_chunk(chat_id, model, created, "", "stop")
                yield _sse(event.to_dict())
                yield _sse("[DONE]")
            elif isinstance(event, ErrorEvent):
                yield _sse(event.to_dict())
    finally:
        channel.close()


# ─── Endpoints ──────────────────────────────────────────────

@app.get("/api/v1/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__, "repositories": len(pool)}


@app.get("/api/v1/tools")
async def list_tools() -> dict:
    from reposcope.tools.registry import create_default_registry

    return {"tools": create_default_registry().get_schemas()}


@app.post("/api/v1/chat/completions", response_model=None)
async def chat_completions(
    body: ChatCompletionRequest,
    repo_pool: RepoClientPool = Depends(get_pool),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
) -> StreamingResponse | dict:
    settings = body.resolved_settings()
    provider = provider_factory(settings.model)
    model_name = settings.model or provider.model

    repo_path = None
    if settings.repo_path:
        client = await repo_pool.get_or_create(settings.repo_path)
        repo_path = client.root

    config = OrchestratorConfig(
        repo_path=repo_path,
        tool_mode=settings.tool_mode,
        system_prompt_file=get_settings().system_prompt_file,
        max_iterations=get_settings().max_iterations,
        max_tool_rounds=get_settings().max_tool_rounds,
    )
    if settings.temperature is not None:
        config.temperature = settings.temperature
    if settings.max_tokens is not None:
        config.max_tokens = settings.max_tokens

    orchestrator = Orchestrator(provider, config, pool=repo_pool)
    chat_id = f"chatcmpl-{uuid.uuid4().hex[:12]}"
    created = int(time.time())

    if body.stream:
        channel = orchestrator.stream_chat(body.messages)
        return StreamingResponse(
            stream_events(channel, chat_id, model_name, created),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    result = await orchestrator.chat(body.messages)
    return {
        "id": chat_id,
        "object": "chat.completion",
        "created": created,
        "model": model_name,
        "content": result.content,
        "tool_calls": [
            {
                "id": tc.id,
                "name": tc.name,
                "arguments": tc.arguments,
                "status": tc.status.value,
                "result": tc.result,
                "error": tc.error.model_dump() if tc.error else None,
                "duration_ms": tc.duration_ms,
            }
            for tc in result.tool_calls
        ],
        "usage": result.usage.to_dict(),
    }


@app.get("/api/v1/files")
async def browse_files(
    repo: str = Query(default_factory=os.getcwd),
    path: str = ".",
    max_depth: int = 1,
    include_hidden: bool = False,
    repo_pool: RepoClientPool = Depends(get_pool),
) -> dict:
    client = await repo_pool.get_or_create(repo)
    result = await client.list_files(directory=path, max_depth=max_depth, include_hidden=include_hidden)
    return result.model_dump(mode="json", exclude_none=True)


@app.get("/api/v1/files/read")
async def read_file(
    path: str,
    repo: str = Query(default_factory=os.getcwd),
    max_bytes: int = 100_000,
    encoding: Literal["utf-8", "base64"] = "utf-8",
    repo_pool: RepoClientPool = Depends(get_pool),
) -> dict:
    client = await repo_pool.get_or_create(repo)
    result = await client.read_file(path=path, max_bytes=max_bytes, encoding=encoding)
    return result.model_dump(mode="json", exclude_none=True)

"""
RepoScope Core Data Models

Pydantic models for tool calls, their lifecycle results, and the
events a conversation turn streams to its observer.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ToolName(str, Enum):
    """The closed set of inspection tools."""
    LIST_FILES = "list_files"
    READ_FILE = "read_file"
    SEARCH_FILES = "search_files"
    GET_REPO_OVERVIEW = "get_repo_overview"

    @classmethod
    def parse(cls, name: str) -> ToolName | None:
        """Return the matching ToolName, or None for an unknown name."""
        try:
            return cls(name)
        except ValueError:
            return None


class ToolCallStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    ERROR = "error"


def new_call_id() -> str:
    return f"tc_{uuid.uuid4().hex[:12]}"


class ToolCall(BaseModel):
    """A model's request to run one tool."""
    id: str = Field(default_factory=new_call_id)
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ErrorInfo(BaseModel):
    code: str
    message: str


class ToolCallResult(BaseModel):
    """Lifecycle record of a single tool call.

    A call is STARTED and then reaches exactly one terminal state.
    Instances are frozen; each state transition produces a new record.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus
    result: Any = None
    error: ErrorInfo | None = None
    duration_ms: float | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.status != ToolCallStatus.STARTED

    @classmethod
    def started(cls, call: ToolCall) -> ToolCallResult:
        return cls(id=call.id, name=call.name, arguments=call.arguments,
                   status=ToolCallStatus.STARTED)

    @classmethod
    def completed(cls, call: ToolCall, result: Any, duration_ms: float) -> ToolCallResult:
        return cls(id=call.id, name=call.name, arguments=call.arguments,
                   status=ToolCallStatus.COMPLETED, result=result, duration_ms=duration_ms)

    @classmethod
    def failed(
        cls, call: ToolCall, code: str, message: str, duration_ms: float = 0.0
    ) -> ToolCallResult:
        return cls(id=call.id, name=call.name, arguments=call.arguments,
                   status=ToolCallStatus.ERROR, error=ErrorInfo(code=code, message=message),
                   duration_ms=duration_ms)


# ─── Turn events ────────────────────────────────────────────


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def add(self, prompt_tokens: int, completion_tokens: int) -> None:
        self.prompt_tokens += prompt_tokens
        self.completion_tokens += completion_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


class ToolCallEvent(BaseModel):
    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus
    timestamp: datetime
    result: Any = None
    error: ErrorInfo | None = None
    duration_ms: float | None = None

    @classmethod
    def from_result(cls, result: ToolCallResult) -> ToolCallEvent:
        return cls(
            id=result.id,
            name=result.name,
            arguments=result.arguments,
            status=result.status,
            timestamp=result.timestamp,
            result=result.result,
            error=result.error,
            duration_ms=result.duration_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ContentEvent(BaseModel):
    type: Literal["content"] = "content"
    delta: str

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    usage: Usage = Field(default_factory=Usage)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "usage": self.usage.to_dict()}


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: ErrorInfo

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


TurnEvent = ContentEvent | ToolCallEvent | DoneEvent | ErrorEvent


# ─── Conversation ───────────────────────────────────────────


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""


class ConversationState(BaseModel):
    """Messages and round counters for a single turn."""
    messages: list[ChatMessage] = Field(default_factory=list)
    iteration: int = 0
    tool_rounds: int = 0

    def add(self, role: str, content: str) -> None:
        self.messages.append(ChatMessage(role=role, content=content))

    def last_user_message(self) -> str:
        for msg in reversed(self.messages):
            if msg.role == "user":
                return msg.content
        return ""

    def to_provider_messages(self) -> list[dict[str, str]]:
        """Messages in role/content form; system messages are passed separately."""
        return [
            {"role": "user" if m.role == "tool" else m.role, "content": m.content}
            for m in self.messages
            if m.role != "system"
        ]

"""RepoScope core data models."""

from reposcope.core.models import (
    ChatMessage,
    ContentEvent,
    ConversationState,
    DoneEvent,
    ErrorEvent,
    ErrorInfo,
    ToolCall,
    ToolCallEvent,
    ToolCallResult,
    ToolCallStatus,
    ToolName,
    TurnEvent,
    Usage,
)

__all__ = [
    "ChatMessage",
    "ContentEvent",
    "ConversationState",
    "DoneEvent",
    "ErrorEvent",
    "ErrorInfo",
    "ToolCall",
    "ToolCallEvent",
    "ToolCallResult",
    "ToolCallStatus",
    "ToolName",
    "TurnEvent",
    "Usage",
]

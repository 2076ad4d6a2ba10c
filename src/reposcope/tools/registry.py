"""
RepoScope Tool Registry

Central registry for the inspection tools. Each tool is registered
with its definition (name, description, JSON schema), the pydantic
model its arguments are validated into, and an async handler.

The tool set is closed: names are ToolName members, and the registry
refuses anything else.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from reposcope.config import Settings
from reposcope.core.models import ToolName
from reposcope.tools.sandbox import PathSandbox


@dataclass
class ToolDefinition:
    """A tool as described to a model."""
    name: str
    description: str
    input_schema: dict = field(default_factory=dict)

    def to_schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class ToolContext:
    """What a handler may touch: one sandbox and the server limits."""
    sandbox: PathSandbox
    settings: Settings = field(default_factory=Settings)


ToolHandler = Callable[[Any, ToolContext], Awaitable[BaseModel]]


class RegisteredTool:
    """A tool registered in the system with its argument model and handler."""

    def __init__(
        self,
        tool_name: ToolName,
        definition: ToolDefinition,
        args_model: type[BaseModel],
        handler: ToolHandler,
    ):
        self.tool_name = tool_name
        self.definition = definition
        self.args_model = args_model
        self.handler = handler

    @property
    def name(self) -> str:
        return self.tool_name.value


class ToolRegistry:
    """Registry of inspection tools keyed by ToolName."""

    def __init__(self) -> None:
        self._tools: dict[ToolName, RegisteredTool] = {}

    def register(self, tool: RegisteredTool) -> None:
        """Register a tool.

        Raises ValueError if a tool with the same name already exists.
        """
        if tool.tool_name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.tool_name] = tool

    def get(self, name: str | ToolName) -> RegisteredTool | None:
        """Look up a registered tool by name; unknown names return None."""
        key = name if isinstance(name, ToolName) else ToolName.parse(name)
        if key is None:
            return None
        return self._tools.get(key)

    def get_all(self) -> list[RegisteredTool]:
        return list(self._tools.values())

    def get_schemas(self) -> list[dict]:
        """Tool schemas in ``{name, description, inputSchema}`` form."""
        return [t.definition.to_schema() for t in self._tools.values()]

    @property
    def tool_names(self) -> list[str]:
        return [t.name for t in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        if isinstance(name, str):
            return self.get(name) is not None
        return False


def create_default_registry() -> ToolRegistry:
    """Create a registry holding all built-in inspection tools."""
    from reposcope.tools.builtin import register_all_builtins

    registry = ToolRegistry()
    register_all_builtins(registry)
    return registry

"""
RepoScope Tool Layer

Sandboxed, read-only repository inspection tools.

Usage:
    from reposcope.tools import RepoClientPool, ToolRouter

    pool = RepoClientPool()
    client = await pool.get_or_create("/path/to/repo")
    router = ToolRouter(client, emitter=print)
    result = await router.execute(ToolCall(name="list_files", arguments={"max_depth": 1}))
"""

from reposcope.tools.client import RepoClient, RepoClientPool
from reposcope.tools.formatting import format_tool_result, format_tool_results
from reposcope.tools.registry import (
    RegisteredTool,
    ToolContext,
    ToolDefinition,
    ToolRegistry,
    create_default_registry,
)
from reposcope.tools.router import ToolRouter
from reposcope.tools.sandbox import PathSandbox, ValidatedPath, create_sandbox

__all__ = [
    "PathSandbox",
    "RegisteredTool",
    "RepoClient",
    "RepoClientPool",
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
    "ToolRouter",
    "ValidatedPath",
    "create_default_registry",
    "create_sandbox",
    "format_tool_result",
    "format_tool_results",
]

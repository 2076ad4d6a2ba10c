"""
RepoScope Built-in Tools

The four read-only inspection tools, registered together by
``register_all_builtins``.
"""

from reposcope.tools.registry import ToolRegistry

from reposcope.tools.builtin.list_files import LIST_FILES_TOOL
from reposcope.tools.builtin.read_file import READ_FILE_TOOL
from reposcope.tools.builtin.search_files import SEARCH_FILES_TOOL
from reposcope.tools.builtin.repo_overview import REPO_OVERVIEW_TOOL

ALL_BUILTIN_TOOLS = [
    LIST_FILES_TOOL,
    READ_FILE_TOOL,
    SEARCH_FILES_TOOL,
    REPO_OVERVIEW_TOOL,
]


def register_all_builtins(registry: ToolRegistry) -> None:
    """Register all built-in tools with the given registry."""
    for tool in ALL_BUILTIN_TOOLS:
        registry.register(tool)

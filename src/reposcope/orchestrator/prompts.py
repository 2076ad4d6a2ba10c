"""
System prompt construction for repository Q&A turns.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from reposcope.core.models import ToolName
from reposcope.logging import get_logger
from reposcope.tools.registry import ToolRegistry, create_default_registry

logger = get_logger("reposcope.orchestrator.prompts")

ToolMode = Literal["auto", "manual"]

FALLBACK_SYSTEM_PROMPT = """You are an expert software engineering assistant helping developers understand codebases.

You have tools available to explore and read code. Use them to answer questions.

## Tools
- list_files: List directory contents (supports depth parameter for subdirectories)
- read_file: Read a file's contents
- search_files: Search for text patterns across files
- get_repo_overview: Get repository structure overview

## Guidelines
- First understand the project type by checking for config files (pyproject.toml, package.json, etc.)
- Use list_files with depth 2-3 to see beyond root level
- For "what is this project" questions, read the README
- For structure questions, use get_repo_overview or list_files
- For entry point questions, read the config file first to identify the framework
- Always explore before assuming - verify files exist before reading them

When you get tool results, summarize them clearly for the user."""

AUTO_MODE_SECTION = """## Tool Usage Mode: Automatic

You should proactively use tools to gather information needed to answer the user's questions.
Don't ask for permission to use tools - just use them when needed."""

MANUAL_MODE_SECTION = """## Tool Usage Mode: Manual

Only use tools when the user explicitly asks you to.
If you need information, suggest which tool to use and let the user confirm."""

SUMMARY_INSTRUCTION = (
    "Here are the results from the tools you called. Please summarize these results "
    "in a clear, human-readable way to answer my question. Do NOT describe the JSON "
    "structure or explain how to parse it - just tell me what was found.\n\n"
    "{digest}\n\n"
    "Now provide a helpful summary of what you found."
)


def load_base_prompt(prompt_file: str | None = None) -> str:
    """Read the base prompt from ``prompt_file`` if given and readable."""
    if prompt_file:
        try:
            return Path(prompt_file).read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read system prompt file, using fallback: {e}",
                           extra={"path": prompt_file})
    return FALLBACK_SYSTEM_PROMPT


def format_tools_for_prompt(schemas: list[dict]) -> str:
    sections = []
    for tool in schemas:
        properties = tool.get("inputSchema", {}).get("properties", {})
        params = "\n".join(
            f"  - {name} ({spec.get('type', 'any')}): {spec.get('description', '')}"
            for name, spec in properties.items()
        )
        sections.append(f"### {tool['name']}\n{tool['description']}\n\nParameters:\n{params}")
    return "## Available Tools\n\n" + "\n\n".join(sections)


def wants_tools(message: str) -> bool:
    """Manual mode: does the user's message explicitly ask for a tool?"""
    content = message.lower()
    return "use tool" in content or any(name.value in content for name in ToolName)


class PromptBuilder:
    """Builds the system prompt and exposes the tool schemas for a turn."""

    def __init__(
        self,
        repo_path: str | None = None,
        tool_mode: ToolMode = "auto",
        additional_context: str | None = None,
        registry: ToolRegistry | None = None,
        prompt_file: str | None = None,
    ):
        self.repo_path = repo_path
        self.tool_mode = tool_mode
        self.additional_context = additional_context
        self._registry = registry or create_default_registry()
        self._prompt_file = prompt_file
        self._repo_overview: str | None = None

    def set_repo_overview(self, overview: dict | str) -> None:
        if isinstance(overview, dict):
            overview = json.dumps(overview, indent=2)
        self._repo_overview = overview

    @property
    def tool_definitions(self) -> list[dict]:
        return self._registry.get_schemas()

    def build_system_prompt(self) -> str:
        parts = [load_base_prompt(self._prompt_file), format_tools_for_prompt(self.tool_definitions)]

        if self.repo_path:
            parts.append(f"## Current Repository\n\nYou are analyzing: `{self.repo_path}`")

        parts.append(AUTO_MODE_SECTION if self.tool_mode == "auto" else MANUAL_MODE_SECTION)

        if self._repo_overview:
            parts.append(f"## Repository Overview\n\n```json\n{self._repo_overview}\n```")

        if self.additional_context:
            parts.append(f"## Additional Context\n\n{self.additional_context}")

        return "\n\n".join(parts)

    def tools_allowed(self, last_user_message: str) -> bool:
        if self.tool_mode == "auto":
            return True
        return wants_tools(last_user_message)

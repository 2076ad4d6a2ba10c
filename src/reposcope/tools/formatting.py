"""
Prose digests of tool results for re-injection into a conversation.

Digests are plain text on purpose: models fed raw JSON tend to echo
its structure back instead of answering.
"""

from __future__ import annotations

import json
from typing import Any

from reposcope.core.models import ToolCallResult, ToolCallStatus

DIGEST_SEPARATOR = "\n\n---\n\n"

MAX_LISTED_FILES = 30
MAX_LISTED_DIRS = 30
MAX_PREVIEW_CHARS = 2000
MAX_LISTED_MATCHES = 20
MAX_OVERVIEW_LANGUAGES = 10
MAX_OVERVIEW_DIRS = 15
MAX_OVERVIEW_FILES = 10


def _list_files(data: dict[str, Any]) -> str:
    files = data.get("files") or []
    dirs = [f["path"] for f in files if f.get("type") == "directory"]
    regular = [f["path"] for f in files if f.get("type") == "file"]

    out = f"[list_files] Found {len(files)} items:\n"
    if dirs:
        out += "\nDirectories:\n" + "\n".join(f"  - {d}/" for d in dirs[:MAX_LISTED_DIRS])
        if len(dirs) > MAX_LISTED_DIRS:
            out += f"\n  ... and {len(dirs) - MAX_LISTED_DIRS} more directories"
    if regular:
        out += "\nFiles:\n" + "\n".join(f"  - {f}" for f in regular[:MAX_LISTED_FILES])
        if len(regular) > MAX_LISTED_FILES:
            out += f"\n  ... and {len(regular) - MAX_LISTED_FILES} more files"
    if data.get("truncated"):
        out += "\n(listing truncated)"
    return out


def _read_file(data: dict[str, Any]) -> str:
    content = data.get("content") or ""
    path = data.get("path") or "unknown"
    if len(content) > MAX_PREVIEW_CHARS:
        content = content[:MAX_PREVIEW_CHARS] + "\n... (truncated)"
    return f"[read_file] Contents of {path}:\n\n{content}"


def _search_files(data: dict[str, Any]) -> str:
    matches = data.get("matches") or []
    if not matches:
        return "[search_files] No matches found"
    out = f"[search_files] Found {len(matches)} matches:\n"
    out += "\n".join(
        f"  - {m['path']}:{m['line_number']}: {m['line_content'].strip()}"
        for m in matches[:MAX_LISTED_MATCHES]
    )
    if len(matches) > MAX_LISTED_MATCHES:
        out += f"\n  ... and {len(matches) - MAX_LISTED_MATCHES} more matches"
    return out


def _repo_overview(data: dict[str, Any]) -> str:
    stats = data.get("stats") or {}
    structure = data.get("structure") or {}

    out = "[get_repo_overview] Repository overview:\n"
    if data.get("root"):
        out += f"\nRepository: {data['root']}"
    if stats.get("total_files"):
        out += f"\nTotal files: {stats['total_files']}"
    if stats.get("total_directories"):
        out += f"\nTotal directories: {stats['total_directories']}"
    if stats.get("total_size"):
        out += f"\nTotal size: {round(stats['total_size'] / 1024)} KB"
    languages = stats.get("languages") or []
    if languages:
        out += "\n\nLanguages by size:"
        out += "".join(
            f"\n  - {lang['extension']}: {lang['count']} files"
            for lang in languages[:MAX_OVERVIEW_LANGUAGES]
        )

    children = structure.get("children") or []
    dirs = [c["name"] for c in children if c.get("type") == "directory"]
    files = [c["name"] for c in children if c.get("type") == "file"]
    if dirs:
        out += "\n\nTop-level directories:\n" + "\n".join(
            f"  - {d}/" for d in dirs[:MAX_OVERVIEW_DIRS]
        )
    if files:
        out += "\n\nTop-level files:\n" + "\n".join(
            f"  - {f}" for f in files[:MAX_OVERVIEW_FILES]
        )
    return out


_FORMATTERS = {
    "list_files": _list_files,
    "read_file": _read_file,
    "search_files": _search_files,
    "get_repo_overview": _repo_overview,
}


def format_tool_result(result: ToolCallResult) -> str:
    """Digest a single terminal result."""
    if result.status == ToolCallStatus.ERROR:
        message = result.error.message if result.error else "Unknown error"
        return f"[Tool Error] {result.name}: {message}"
    data = result.result
    if not isinstance(data, dict):
        return f"[{result.name}] No results"
    formatter = _FORMATTERS.get(result.name)
    if formatter is None:
        return f"[{result.name}] Result: {json.dumps(data, default=str)}"
    return formatter(data)


def format_tool_results(results: list[ToolCallResult]) -> str:
    """Digest a round's results, in order, separated by ``---`` rules."""
    return DIGEST_SEPARATOR.join(format_tool_result(r) for r in results)

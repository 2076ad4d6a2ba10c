"""search_files tool: line-oriented text/regex search with context."""

from __future__ import annotations

import asyncio
import re
import time

from reposcope.core.models import ToolName
from reposcope.exceptions import NoFilesMatchedError, SearchTimeoutError, to_tool_error
from reposcope.logging import get_logger
from reposcope.tools.models import (
    SearchContext,
    SearchFilesArgs,
    SearchFilesResult,
    SearchMatch,
)
from reposcope.tools.registry import RegisteredTool, ToolContext, ToolDefinition
from reposcope.tools.validation import compile_path_glob, compile_search_pattern, sanitize_glob
from reposcope.tools.walker import BINARY_EXTENSIONS, extension, is_regular, open_regular, walk

logger = get_logger("reposcope.tools.search")

DEFAULT_GLOB = "**/*"
EXCLUDE_DIRS = frozenset({"node_modules", ".git", "dist", "build"})
EXCLUDE_NAMES = frozenset({"package-lock.json", "yarn.lock"})
EXCLUDE_SUFFIXES = (".min.js", ".min.css", ".map")


def _excluded(name: str) -> bool:
    if name in EXCLUDE_NAMES or name.endswith(EXCLUDE_SUFFIXES):
        return True
    return extension(name) in BINARY_EXTENSIONS


def _candidates(ctx: ToolContext, glob: str) -> list[tuple[str, str]]:
    """Sorted ``(relative, absolute)`` pairs of searchable files matching ``glob``."""
    matcher = compile_path_glob(glob)
    found = []
    for entry in walk(ctx.sandbox.root, ctx.sandbox.root, None,
                      skip_dirs=EXCLUDE_DIRS, skip_extensions=frozenset()):
        if entry.is_dir or not is_regular(entry.stat) or _excluded(entry.name):
            continue
        rel = ctx.sandbox.to_relative(entry.path)
        if matcher.match(rel):
            found.append((rel, entry.path))
    found.sort()
    return found


def _search_file(
    path: str, rel: str, regex: re.Pattern[str], context_lines: int, max_size: int
) -> list[SearchMatch] | None:
    """Matches in one file, or None if the file could not be read."""
    try:
        f = open_regular(path)
        if f is None:
            return None
        with f:
            data = f.read(max_size + 1)
    except OSError:
        return None
    if len(data) > max_size:
        return None

    lines = [line.rstrip("\r") for line in data.decode("utf-8", errors="replace").split("\n")]
    matches = []
    for i, line in enumerate(lines):
        if regex.search(line):
            matches.append(SearchMatch(
                path=rel,
                line_number=i + 1,
                line_content=line,
                context=SearchContext(
                    before=lines[max(0, i - context_lines):i],
                    after=lines[i + 1:i + 1 + context_lines],
                ),
            ))
    return matches


def _search(args: SearchFilesArgs, glob: str, ctx: ToolContext) -> SearchFilesResult:
    started = time.monotonic()
    settings = ctx.settings
    timeout_s = settings.search_timeout_ms / 1000
    limit = min(args.max_results, settings.max_search_results)
    regex = compile_search_pattern(args.pattern, args.is_regex, args.case_sensitive)

    files = _candidates(ctx, glob)
    if not files:
        raise NoFilesMatchedError(glob)

    matches: list[SearchMatch] = []
    files_searched = 0
    for rel, path in files:
        if len(matches) >= limit:
            break
        if time.monotonic() - started > timeout_s:
            raise SearchTimeoutError(settings.search_timeout_ms, files_searched)
        found = _search_file(path, rel, regex, args.context_lines, settings.max_file_size_bytes)
        if found is None:
            continue
        files_searched += 1
        matches.extend(found[:limit - len(matches)])

    return SearchFilesResult(
        matches=matches,
        total_matches=len(matches),
        files_searched=files_searched,
        truncated=len(matches) >= limit,
        duration_ms=round((time.monotonic() - started) * 1000, 2),
    )


async def search_files(args: SearchFilesArgs, ctx: ToolContext) -> SearchFilesResult:
    glob = sanitize_glob(args.glob) if args.glob else DEFAULT_GLOB
    # surface a bad pattern before walking the tree
    compile_search_pattern(args.pattern, args.is_regex, args.case_sensitive)
    try:
        result = await asyncio.to_thread(_search, args, glob, ctx)
    except OSError as e:
        raise to_tool_error(e, ".") from e
    logger.debug(
        "Search finished",
        extra={"tool_name": ToolName.SEARCH_FILES.value, "duration_ms": result.duration_ms},
    )
    return result


SEARCH_FILES_TOOL = RegisteredTool(
    tool_name=ToolName.SEARCH_FILES,
    definition=ToolDefinition(
        name=ToolName.SEARCH_FILES.value,
        description=(
            "Search for text patterns across repository files. "
            "Returns matching lines with context."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "Search pattern (plain text or regex)",
                },
                "is_regex": {
                    "type": "boolean",
                    "description": "Treat pattern as a regular expression. Default: false",
                    "default": False,
                },
                "glob": {
                    "type": "string",
                    "description": 'Glob pattern to filter files (e.g., "src/**/*.py")',
                },
                "max_results": {
                    "type": "integer",
                    "description": "Maximum number of matches to return. Default: 50",
                    "default": 50,
                    "minimum": 1,
                    "maximum": 1000,
                },
                "context_lines": {
                    "type": "integer",
                    "description": "Number of lines of context around each match. Default: 2",
                    "default": 2,
                    "minimum": 0,
                    "maximum": 10,
                },
                "case_sensitive": {
                    "type": "boolean",
                    "description": "Case-sensitive search. Default: false",
                    "default": False,
                },
            },
            "required": ["pattern"],
        },
    ),
    args_model=SearchFilesArgs,
    handler=search_files,
)

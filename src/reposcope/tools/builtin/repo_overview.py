"""get_repo_overview tool: depth-bounded tree plus per-extension statistics."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field

from reposcope.core.models import ToolName
from reposcope.exceptions import to_tool_error
from reposcope.tools.models import (
    DirectoryNode,
    LanguageStats,
    RepoOverviewArgs,
    RepoOverviewResult,
    RepoStats,
)
from reposcope.tools.registry import RegisteredTool, ToolContext, ToolDefinition
from reposcope.tools.walker import SKIP_DIRS, StepOutcome, classify_entry, extension, is_hidden, read_dir

TOP_LANGUAGES = 15


@dataclass
class _Counters:
    files: int = 0
    dirs: int = 0
    size: int = 0
    languages: dict[str, LanguageStats] = field(default_factory=dict)

    def add_file(self, name: str, size: int) -> None:
        self.files += 1
        self.size += size
        ext = extension(name)
        if ext:
            stats = self.languages.setdefault(ext, LanguageStats(extension=ext))
            stats.count += 1
            stats.bytes += size


def _build_tree(path: str, root: str, depth: int, max_depth: int, counters: _Counters) -> DirectoryNode:
    node = DirectoryNode(name=os.path.basename(path), type="directory", children=[])
    if depth >= max_depth:
        return node

    listing = read_dir(path)
    outcome = listing.classify(depth)
    if outcome is StepOutcome.FATAL:
        raise listing.error
    if outcome is StepOutcome.SKIP:
        return node

    for entry in listing.entries:
        if depth == 0 and is_hidden(entry.name):
            continue
        info = classify_entry(entry, root)
        if info is None:
            continue
        is_dir, is_link, st = info
        if is_dir:
            if entry.name in SKIP_DIRS:
                continue
            counters.dirs += 1
            if is_link:
                node.children.append(DirectoryNode(name=entry.name, type="directory", children=[]))
            else:
                node.children.append(_build_tree(entry.path, root, depth + 1, max_depth, counters))
        elif st is not None:
            counters.add_file(entry.name, st.st_size)
            node.children.append(DirectoryNode(name=entry.name, type="file", size=st.st_size))
        else:
            node.children.append(DirectoryNode(name=entry.name, type="file"))

    node.children.sort(key=lambda n: (n.type != "directory", n.name))
    return node


def _overview(args: RepoOverviewArgs, ctx: ToolContext) -> RepoOverviewResult:
    counters = _Counters()
    root = ctx.sandbox.root
    structure = _build_tree(root, root, 0, args.max_depth, counters)
    structure.name = ctx.sandbox.root_name

    stats = None
    if args.include_stats:
        languages = sorted(counters.languages.values(), key=lambda s: s.bytes, reverse=True)
        stats = RepoStats(
            total_files=counters.files,
            total_directories=counters.dirs,
            total_size=counters.size,
            languages=languages[:TOP_LANGUAGES],
        )
    return RepoOverviewResult(root=ctx.sandbox.root_name, structure=structure, stats=stats)


async def get_repo_overview(args: RepoOverviewArgs, ctx: ToolContext) -> RepoOverviewResult:
    try:
        return await asyncio.to_thread(_overview, args, ctx)
    except OSError as e:
        raise to_tool_error(e, ".") from e


REPO_OVERVIEW_TOOL = RegisteredTool(
    tool_name=ToolName.GET_REPO_OVERVIEW,
    definition=ToolDefinition(
        name=ToolName.GET_REPO_OVERVIEW.value,
        description=(
            "Get a high-level overview of the repository structure and statistics "
            "including file counts and language breakdown."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "max_depth": {
                    "type": "integer",
                    "description": "Maximum directory depth for the tree. Default: 3",
                    "default": 3,
                    "minimum": 1,
                    "maximum": 5,
                },
                "include_stats": {
                    "type": "boolean",
                    "description": "Include file counts and language statistics. Default: true",
                    "default": True,
                },
            },
        },
    ),
    args_model=RepoOverviewArgs,
    handler=get_repo_overview,
)

"""list_files tool: bounded recursive listing of a repository directory."""

from __future__ import annotations

import asyncio
import os

from reposcope.core.models import ToolName
from reposcope.exceptions import DirectoryNotFoundError, to_tool_error
from reposcope.tools.models import FileEntry, ListFilesArgs, ListFilesResult
from reposcope.tools.registry import RegisteredTool, ToolContext, ToolDefinition
from reposcope.tools.validation import glob_to_regex, sanitize_glob, sanitize_path
from reposcope.tools.walker import walk

MAX_FILES = 500


def _collect(args: ListFilesArgs, start: str, ctx: ToolContext) -> ListFilesResult:
    matcher = glob_to_regex(args.pattern) if args.pattern else None
    files: list[FileEntry] = []
    truncated = False

    for entry in walk(start, ctx.sandbox.root, args.max_depth, args.include_hidden):
        if matcher is not None and not matcher.search(entry.name):
            continue
        if len(files) >= MAX_FILES:
            truncated = True
            break
        files.append(FileEntry(
            path=ctx.sandbox.to_relative(entry.path),
            type="directory" if entry.is_dir else "file",
            size=entry.size,
            modified_at=entry.modified_at,
        ))

    files.sort(key=lambda f: (f.type != "directory", f.path))
    return ListFilesResult(files=files, total_count=len(files), truncated=truncated)


async def list_files(args: ListFilesArgs, ctx: ToolContext) -> ListFilesResult:
    directory = sanitize_path(args.directory)
    if args.pattern:
        args = args.model_copy(update={"pattern": sanitize_glob(args.pattern)})

    target = await ctx.sandbox.validate(directory)
    if not await asyncio.to_thread(os.path.isdir, target.path):
        raise DirectoryNotFoundError(directory)

    try:
        return await asyncio.to_thread(_collect, args, str(target.path), ctx)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise DirectoryNotFoundError(directory) from e
    except OSError as e:
        raise to_tool_error(e, directory) from e


LIST_FILES_TOOL = RegisteredTool(
    tool_name=ToolName.LIST_FILES,
    definition=ToolDefinition(
        name=ToolName.LIST_FILES.value,
        description=(
            "List files and directories within the repository. "
            "Returns file paths, types, sizes, and modification dates."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "directory": {
                    "type": "string",
                    "description": "Directory path relative to repository root. Defaults to root.",
                    "default": ".",
                },
                "pattern": {
                    "type": "string",
                    "description": 'Name pattern to filter entries (e.g., "*.py")',
                },
                "max_depth": {
                    "type": "integer",
                    "description": "Maximum directory depth to traverse. Default: 3",
                    "default": 3,
                    "minimum": 1,
                    "maximum": 10,
                },
                "include_hidden": {
                    "type": "boolean",
                    "description": "Include hidden files and directories. Default: false",
                    "default": False,
                },
            },
        },
    ),
    args_model=ListFilesArgs,
    handler=list_files,
)

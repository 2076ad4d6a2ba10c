"""read_file tool: bounded, binary-aware file reads."""

from __future__ import annotations

import asyncio
import base64
import os
import stat as stat_mod
from datetime import datetime, timezone

from reposcope.core.models import ToolName
from reposcope.exceptions import (
    BinaryFileError,
    FileTooLargeError,
    RepoFileNotFoundError,
    to_tool_error,
)
from reposcope.tools.models import ReadFileArgs, ReadFileResult
from reposcope.tools.registry import RegisteredTool, ToolContext, ToolDefinition
from reposcope.tools.validation import sanitize_path
from reposcope.tools.walker import (
    READ_BINARY_EXTENSIONS,
    SNIFF_BYTES,
    extension,
    looks_binary,
    open_regular,
)


def _read(args: ReadFileArgs, path: str, rel: str, max_file_size: int) -> ReadFileResult:
    try:
        st = os.stat(path)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise RepoFileNotFoundError(rel) from e
    if not stat_mod.S_ISREG(st.st_mode):
        raise RepoFileNotFoundError(rel)
    if st.st_size > max_file_size:
        raise FileTooLargeError(rel, st.st_size, max_file_size)

    binary_by_name = extension(path) in READ_BINARY_EXTENSIONS
    if binary_by_name and args.encoding == "utf-8":
        raise BinaryFileError(rel)

    limit = min(st.st_size, args.max_bytes)
    f = open_regular(path)
    if f is None:
        raise RepoFileNotFoundError(rel)
    with f:
        head = f.read(max(limit, min(st.st_size, SNIFF_BYTES)))

    if args.encoding == "utf-8" and looks_binary(head):
        raise BinaryFileError(rel)

    data = head[:limit]
    if args.encoding == "base64":
        content = base64.b64encode(data).decode("ascii")
    else:
        content = data.decode("utf-8", errors="replace")

    return ReadFileResult(
        path=rel,
        content=content,
        size=st.st_size,
        modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
        encoding=args.encoding,
        truncated=st.st_size > args.max_bytes,
    )


async def read_file(args: ReadFileArgs, ctx: ToolContext) -> ReadFileResult:
    rel_input = sanitize_path(args.path)
    target = await ctx.sandbox.validate(rel_input)
    try:
        return await asyncio.to_thread(
            _read, args, str(target.path), target.relative, ctx.settings.max_file_size_bytes
        )
    except OSError as e:
        raise to_tool_error(e, target.relative) from e


READ_FILE_TOOL = RegisteredTool(
    tool_name=ToolName.READ_FILE,
    definition=ToolDefinition(
        name=ToolName.READ_FILE.value,
        description=(
            "Read the contents of a file from the repository. "
            "Supports text files (UTF-8) and binary files (base64)."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "File path relative to repository root",
                },
                "max_bytes": {
                    "type": "integer",
                    "description": "Maximum bytes to return. Default: 100000",
                    "default": 100000,
                    "minimum": 1,
                },
                "encoding": {
                    "type": "string",
                    "enum": ["utf-8", "base64"],
                    "description": "Content encoding. Default: utf-8",
                    "default": "utf-8",
                },
            },
            "required": ["path"],
        },
    ),
    args_model=ReadFileArgs,
    handler=read_file,
)

"""
Argument validation for the inspection tools.

Raw argument bags from a model are parsed into the typed models in
``reposcope.tools.models`` before any filesystem access happens.
"""

from __future__ import annotations

import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from reposcope.exceptions import (
    AccessDeniedError,
    InvalidArgumentsError,
    InvalidPatternError,
)

ArgsT = TypeVar("ArgsT", bound=BaseModel)

_GLOB_ALLOWED = re.compile(r"^[A-Za-z0-9_\-.*?/\[\]{}]+$")


def sanitize_path(value: str) -> str:
    """Normalize separators to forward slashes."""
    return value.replace("\\", "/")


def sanitize_glob(pattern: str) -> str:
    """Accept only plain glob characters and reject escaping globs.

    Raises:
        InvalidPatternError: on characters outside the glob alphabet.
        AccessDeniedError: on absolute or parent-relative globs.
    """
    pattern = sanitize_path(pattern)
    if not _GLOB_ALLOWED.match(pattern):
        raise InvalidPatternError(pattern, "contains unsupported glob characters")
    if pattern.startswith("/") or ".." in pattern:
        raise AccessDeniedError(pattern, "Glob must stay inside the repository root")
    return pattern


def compile_search_pattern(pattern: str, is_regex: bool, case_sensitive: bool) -> re.Pattern[str]:
    """Compile a search pattern; literal patterns are escaped.

    Raises:
        InvalidPatternError: if ``pattern`` is not a valid regular expression.
    """
    flags = 0 if case_sensitive else re.IGNORECASE
    source = pattern if is_regex else re.escape(pattern)
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise InvalidPatternError(pattern, str(e)) from e


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a name glob: ``*`` and ``?`` are wildcards, all else literal."""
    parts = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts))


def compile_path_glob(pattern: str) -> re.Pattern[str]:
    """Translate a path glob matched against root-relative posix paths.

    ``**/`` spans zero or more directories, ``*`` and ``?`` stay within
    one segment, ``[...]`` is a character class.
    """
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        elif pattern[i] == "[" and "]" in pattern[i + 1:]:
            end = pattern.index("]", i + 1)
            parts.append("[" + pattern[i + 1:end].replace("\\", "\\\\") + "]")
            i = end + 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    try:
        return re.compile("".join(parts) + r"\Z")
    except re.error as e:
        raise InvalidPatternError(pattern, str(e)) from e


def parse_arguments(tool_name: str, model: type[ArgsT], raw: Any) -> ArgsT:
    """Validate a raw argument bag into ``model``.

    Raises:
        InvalidArgumentsError: if ``raw`` is not an object or a field has the wrong type.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidArgumentsError(tool_name, "arguments must be an object")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidArgumentsError(
            tool_name, "; ".join(problems), details={"errors": problems}
        ) from e

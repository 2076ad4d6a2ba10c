"""
RepoScope Custom Exceptions

Structured exception hierarchy for the RepoScope tool layer.
All RepoScope-specific exceptions inherit from RepoScopeError.

Exception hierarchy:
    RepoScopeError
    +-- ConfigurationError            (invalid environment / settings)
    +-- ToolError                     (domain-typed tool failure, carries an ErrorCode)
    |   +-- AccessDeniedError         (sandbox rejection)
    |   +-- RepoFileNotFoundError
    |   +-- DirectoryNotFoundError
    |   +-- FileTooLargeError
    |   +-- BinaryFileError
    |   +-- InvalidPatternError
    |   +-- SearchTimeoutError
    |   +-- NoFilesMatchedError
    |   +-- InvalidArgumentsError
    |   +-- InvalidToolError
    |   +-- ToolExecutionError
    +-- ProviderError                 (LLM provider failure)
    |   +-- ProviderUnavailableError
    |   +-- ProviderTimeoutError
    +-- OrchestrationError            (turn-level failure, converted to one error event)
"""

from __future__ import annotations

import errno
from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes shared by tool results, events and transports."""
    FILE_NOT_FOUND = "file_not_found"
    DIRECTORY_NOT_FOUND = "directory_not_found"
    ACCESS_DENIED = "access_denied"
    FILE_TOO_LARGE = "file_too_large"
    BINARY_FILE = "binary_file"
    INVALID_PATTERN = "invalid_pattern"
    SEARCH_TIMEOUT = "search_timeout"
    NO_FILES_MATCHED = "no_files_matched"
    INVALID_ARGUMENTS = "invalid_arguments"
    INVALID_TOOL = "invalid_tool"
    TOOL_EXECUTION_FAILED = "tool_execution_failed"
    INTERNAL_ERROR = "internal_error"


HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.FILE_NOT_FOUND: 404,
    ErrorCode.DIRECTORY_NOT_FOUND: 404,
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.FILE_TOO_LARGE: 422,
    ErrorCode.BINARY_FILE: 422,
    ErrorCode.INVALID_PATTERN: 422,
    ErrorCode.NO_FILES_MATCHED: 422,
    ErrorCode.SEARCH_TIMEOUT: 408,
    ErrorCode.INVALID_ARGUMENTS: 400,
    ErrorCode.INVALID_TOOL: 400,
    ErrorCode.TOOL_EXECUTION_FAILED: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}

RPC_CODES: dict[ErrorCode, int] = {
    ErrorCode.FILE_NOT_FOUND: -32001,
    ErrorCode.DIRECTORY_NOT_FOUND: -32001,
    ErrorCode.ACCESS_DENIED: -32002,
    ErrorCode.FILE_TOO_LARGE: -32003,
    ErrorCode.BINARY_FILE: -32004,
    ErrorCode.INVALID_PATTERN: -32005,
    ErrorCode.SEARCH_TIMEOUT: -32006,
    ErrorCode.NO_FILES_MATCHED: -32007,
    ErrorCode.INVALID_ARGUMENTS: -32602,
    ErrorCode.INVALID_TOOL: -32601,
    ErrorCode.TOOL_EXECUTION_FAILED: -32603,
    ErrorCode.INTERNAL_ERROR: -32603,
}


class RepoScopeError(Exception):
    """Base exception for all RepoScope errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(RepoScopeError):
    """Raised when environment configuration fails validation."""

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message, details={"fields": fields or []})
        self.fields = fields or []


# ─── Tool errors ────────────────────────────────────────────


class ToolError(RepoScopeError):
    """A domain-typed tool failure.

    Carries a stable ErrorCode. The Router converts these into
    error results; they never escape a tool call.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        code: ErrorCode | None = None,
    ):
        super().__init__(message, details=details)
        if code is not None:
            self.code = code

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.code]

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}

    def to_rpc_error(self) -> dict:
        """Render as a JSON-RPC error object."""
        data = {"code": self.code.value, **self.details}
        return {"code": RPC_CODES[self.code], "message": self.message, "data": data}


class AccessDeniedError(ToolError):
    """Raised when a path fails any sandbox check."""

    code = ErrorCode.ACCESS_DENIED

    def __init__(self, path: str, reason: str = "Path is outside the repository root"):
        super().__init__(f"Access denied: {reason}", details={"path": path})
        self.path = path
        self.reason = reason


class RepoFileNotFoundError(ToolError):
    code = ErrorCode.FILE_NOT_FOUND

    def __init__(self, path: str):
        super().__init__(f"File not found: {path}", details={"path": path})
        self.path = path


class DirectoryNotFoundError(ToolError):
    code = ErrorCode.DIRECTORY_NOT_FOUND

    def __init__(self, path: str):
        super().__init__(f"Directory not found: {path}", details={"path": path})
        self.path = path


class FileTooLargeError(ToolError):
    code = ErrorCode.FILE_TOO_LARGE

    def __init__(self, path: str, size: int, limit: int):
        super().__init__(
            f"File too large: {path} is {size} bytes (limit {limit})",
            details={"path": path, "size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


class BinaryFileError(ToolError):
    code = ErrorCode.BINARY_FILE

    def __init__(self, path: str):
        super().__init__(
            f"Binary file cannot be read as text: {path} (use encoding='base64')",
            details={"path": path},
        )
        self.path = path


class InvalidPatternError(ToolError):
    code = ErrorCode.INVALID_PATTERN

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid pattern '{pattern}': {reason}", details={"pattern": pattern})
        self.pattern = pattern


class SearchTimeoutError(ToolError):
    code = ErrorCode.SEARCH_TIMEOUT

    def __init__(self, timeout_ms: int, files_searched: int = 0):
        super().__init__(
            f"Search timed out after {timeout_ms}ms",
            details={"timeout_ms": timeout_ms, "files_searched": files_searched},
        )
        self.timeout_ms = timeout_ms


class NoFilesMatchedError(ToolError):
    code = ErrorCode.NO_FILES_MATCHED

    def __init__(self, glob: str):
        super().__init__(f"No files matched glob: {glob}", details={"glob": glob})
        self.glob = glob


class InvalidArgumentsError(ToolError):
    code = ErrorCode.INVALID_ARGUMENTS

    def __init__(self, tool_name: str, message: str, details: dict | None = None):
        super().__init__(
            f"Invalid arguments for '{tool_name}': {message}",
            details={"tool_name": tool_name, **(details or {})},
        )
        self.tool_name = tool_name


class InvalidToolError(ToolError):
    code = ErrorCode.INVALID_TOOL

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", details={"tool_name": tool_name})
        self.tool_name = tool_name


class ToolExecutionError(ToolError):
    """Raised when a tool fails for a reason outside its error contract."""

    code = ErrorCode.TOOL_EXECUTION_FAILED

    def __init__(self, tool_name: str, message: str, details: dict | None = None):
        super().__init__(
            f"Tool '{tool_name}' execution failed: {message}",
            details={"tool_name": tool_name, **(details or {})},
        )
        self.tool_name = tool_name


def to_tool_error(exc: BaseException, path: str = "") -> ToolError:
    """Normalize an arbitrary exception into a ToolError.

    OSError values are mapped by errno; ToolErrors pass through unchanged.
    """
    if isinstance(exc, ToolError):
        return exc
    if isinstance(exc, OSError):
        if exc.errno in (errno.ENOENT, errno.ENOTDIR):
            return RepoFileNotFoundError(path or str(exc.filename or ""))
        if exc.errno in (errno.EACCES, errno.EPERM):
            return AccessDeniedError(path or str(exc.filename or ""), "Permission denied")
    return ToolError(f"{type(exc).__name__}: {exc}", code=ErrorCode.INTERNAL_ERROR)


# ─── Provider errors ────────────────────────────────────────


class ProviderError(RepoScopeError):
    """Base exception for LLM provider errors."""

    def __init__(self, provider_name: str, message: str, details: dict | None = None):
        super().__init__(
            f"Provider '{provider_name}' error: {message}",
            details={"provider_name": provider_name, **(details or {})},
        )
        self.provider_name = provider_name


class ProviderUnavailableError(ProviderError):
    """Raised when a provider cannot be reached after all retries."""

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when a provider request times out."""

    pass


# ─── Orchestration errors ───────────────────────────────────


class OrchestrationError(RepoScopeError):
    """Raised for turn-level failures of the orchestration loop."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        super().__init__(message, details={"code": code, **(details or {})})
        self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}

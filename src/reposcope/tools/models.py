"""
RepoScope Tool Models

Typed argument and result models for the four inspection tools.
Argument models apply defaults and clamp numeric ranges; a wrong
type is an invalid_arguments error, an out-of-range number is not.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


def _clamp(value: int, low: int, high: int | None = None) -> int:
    if value < low:
        return low
    if high is not None and value > high:
        return high
    return value


# ─── Arguments ──────────────────────────────────────────────


class ListFilesArgs(BaseModel):
    directory: str = "."
    pattern: str | None = None
    max_depth: int = 3
    include_hidden: bool = False

    @field_validator("max_depth")
    @classmethod
    def _clamp_depth(cls, v: int) -> int:
        return _clamp(v, 1, 10)


class ReadFileArgs(BaseModel):
    path: str
    max_bytes: int = 100_000
    encoding: Literal["utf-8", "base64"] = "utf-8"

    @field_validator("max_bytes")
    @classmethod
    def _clamp_bytes(cls, v: int) -> int:
        return _clamp(v, 1)


class SearchFilesArgs(BaseModel):
    pattern: str = Field(min_length=1)
    is_regex: bool = False
    glob: str | None = None
    max_results: int = 50
    context_lines: int = 2
    case_sensitive: bool = False

    @field_validator("max_results")
    @classmethod
    def _clamp_results(cls, v: int) -> int:
        return _clamp(v, 1, 1000)

    @field_validator("context_lines")
    @classmethod
    def _clamp_context(cls, v: int) -> int:
        return _clamp(v, 0, 10)


class RepoOverviewArgs(BaseModel):
    max_depth: int = 3
    include_stats: bool = True

    @field_validator("max_depth")
    @classmethod
    def _clamp_depth(cls, v: int) -> int:
        return _clamp(v, 1, 5)


# ─── Results ────────────────────────────────────────────────


class FileEntry(BaseModel):
    path: str
    type: Literal["file", "directory"]
    size: int | None = None
    modified_at: str | None = None


class ListFilesResult(BaseModel):
    files: list[FileEntry] = Field(default_factory=list)
    total_count: int = 0
    truncated: bool = False


class ReadFileResult(BaseModel):
    path: str
    content: str
    size: int
    modified_at: str
    encoding: Literal["utf-8", "base64"]
    truncated: bool = False


class SearchContext(BaseModel):
    before: list[str] = Field(default_factory=list)
    after: list[str] = Field(default_factory=list)


class SearchMatch(BaseModel):
    path: str
    line_number: int
    line_content: str
    context: SearchContext = Field(default_factory=SearchContext)


class SearchFilesResult(BaseModel):
    matches: list[SearchMatch] = Field(default_factory=list)
    total_matches: int = 0
    files_searched: int = 0
    truncated: bool = False
    duration_ms: float = 0.0


class DirectoryNode(BaseModel):
    name: str
    type: Literal["file", "directory"]
    size: int | None = None
    children: list[DirectoryNode] | None = None


class LanguageStats(BaseModel):
    extension: str
    count: int = 0
    bytes: int = 0


class RepoStats(BaseModel):
    total_files: int = 0
    total_directories: int = 0
    total_size: int = 0
    languages: list[LanguageStats] = Field(default_factory=list)


class RepoOverviewResult(BaseModel):
    root: str
    structure: DirectoryNode
    stats: RepoStats | None = None


DirectoryNode.model_rebuild()

"""
Directory walking shared by the inspection tools.

A walk is a sequence of directory reads. Each read produces a
DirListing that is either OK (entries) or failed (the OSError).
The walker classifies a failed read by depth: at the requested
directory it is FATAL, anywhere below it the directory is SKIPPED.

All functions here block; tools run them via ``asyncio.to_thread``.
"""

from __future__ import annotations

import os
import stat as stat_mod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import BinaryIO

from reposcope.tools.sandbox import is_within

SKIP_DIRS = frozenset({
    "node_modules", ".git", ".next", "dist", "build",
    "__pycache__", ".cache", "coverage",
})

SKIP_EXTENSIONS = frozenset({".lock", ".log", ".map"})

BINARY_EXTENSIONS = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".webp", ".bmp",
    ".pdf", ".zip", ".tar", ".gz", ".bz2", ".7z", ".rar",
    ".exe", ".dll", ".so", ".dylib", ".wasm", ".pyc", ".class",
    ".o", ".obj",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".mp3", ".mp4", ".wav", ".avi", ".mov",
    ".sqlite", ".db",
})

# read_file also refuses .svg as text
READ_BINARY_EXTENSIONS = BINARY_EXTENSIONS | {".svg"}

MAGIC_PREFIXES = (
    b"\x7fELF",
    b"MZ",
    b"\x89PNG",
    b"\xff\xd8\xff",
    b"GIF87a",
    b"GIF89a",
    b"PK",
    b"\x1f\x8b",
)

SNIFF_BYTES = 8192

# FIFOs and device nodes must not block an open()
_READ_FLAGS = os.O_RDONLY | getattr(os, "O_NONBLOCK", 0)


class StepOutcome(str, Enum):
    OK = "ok"
    SKIP = "skip"
    FATAL = "fatal"


@dataclass
class DirListing:
    """Result of reading one directory."""
    path: str
    entries: list[os.DirEntry] = field(default_factory=list)
    error: OSError | None = None

    def classify(self, depth: int) -> StepOutcome:
        if self.error is None:
            return StepOutcome.OK
        return StepOutcome.FATAL if depth == 0 else StepOutcome.SKIP


@dataclass
class WalkEntry:
    path: str
    name: str
    is_dir: bool
    depth: int
    stat: os.stat_result | None = None

    @property
    def modified_at(self) -> str | None:
        if self.stat is None:
            return None
        return datetime.fromtimestamp(self.stat.st_mtime, tz=timezone.utc).isoformat()

    @property
    def size(self) -> int | None:
        if self.stat is None or self.is_dir:
            return None
        return self.stat.st_size


def read_dir(path: str) -> DirListing:
    """Read a directory's entries sorted by name, capturing any OSError."""
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        return DirListing(path=path, error=e)
    return DirListing(path=path, entries=entries)


def extension(name: str) -> str:
    return os.path.splitext(name)[1].lower()


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def classify_entry(
    entry: os.DirEntry, root: str
) -> tuple[bool, bool, os.stat_result | None] | None:
    """Return ``(is_dir, is_link, stat)`` for an entry, or None when it must be skipped.

    Symlinks are kept only when their target stays inside ``root``;
    symlinked directories are listed but never descended into.
    """
    try:
        if entry.is_symlink():
            real = os.path.realpath(entry.path)
            if not is_within(real, root):
                return None
            return (os.path.isdir(real), True, os.stat(real))
        is_dir = entry.is_dir(follow_symlinks=False)
        return (is_dir, False, entry.stat(follow_symlinks=False))
    except OSError:
        return (False, False, None)


def walk(
    start: str,
    root: str,
    max_depth: int | None,
    include_hidden: bool = False,
    skip_dirs: frozenset[str] = SKIP_DIRS,
    skip_extensions: frozenset[str] = SKIP_EXTENSIONS,
) -> Iterator[WalkEntry]:
    """Yield entries below ``start`` down to ``max_depth`` levels.

    Depth 1 yields the direct children of ``start``; ``None`` means
    unbounded. Skipped directory names are neither yielded nor descended;
    hidden entries are dropped unless ``include_hidden``.

    Raises:
        OSError: if ``start`` itself cannot be read.
    """
    stack: list[tuple[str, int]] = [(start, 0)]
    while stack:
        path, depth = stack.pop()
        listing = read_dir(path)
        outcome = listing.classify(depth)
        if outcome is StepOutcome.FATAL:
            raise listing.error
        if outcome is StepOutcome.SKIP:
            continue

        subdirs: list[tuple[str, int]] = []
        for entry in listing.entries:
            if not include_hidden and is_hidden(entry.name):
                continue
            info = classify_entry(entry, root)
            if info is None:
                continue
            is_dir, is_link, st = info
            if is_dir and entry.name in skip_dirs:
                continue
            if not is_dir and extension(entry.name) in skip_extensions:
                continue
            yield WalkEntry(path=entry.path, name=entry.name, is_dir=is_dir,
                            depth=depth + 1, stat=st)
            if is_dir and not is_link and (max_depth is None or depth + 1 < max_depth):
                subdirs.append((entry.path, depth + 1))
        # reversed so the stack pops them in name order
        stack.extend(reversed(subdirs))


def looks_binary(head: bytes) -> bool:
    """Magic-byte sniff plus a NUL scan of the first 8 KiB."""
    if head.startswith(MAGIC_PREFIXES):
        return True
    return b"\0" in head[:SNIFF_BYTES]


def is_regular(st: os.stat_result | None) -> bool:
    return st is not None and stat_mod.S_ISREG(st.st_mode)


def open_regular(path: str) -> BinaryIO | None:
    """Open ``path`` for binary reading, or return None if it is not a regular file.

    Raises:
        OSError: if the file cannot be opened.
    """
    fd = os.open(path, _READ_FLAGS)
    try:
        regular = is_regular(os.fstat(fd))
    except OSError:
        os.close(fd)
        raise
    if not regular:
        os.close(fd)
        return None
    return os.fdopen(fd, "rb")

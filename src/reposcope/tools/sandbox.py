"""
RepoScope Path Sandbox

Every filesystem path a tool touches goes through a PathSandbox bound
to one repository root. Validation runs three layers in order:

1. Lexical rejection of traversal and expansion sequences
   (``..``, ``~``, ``$``, backtick, NUL, percent-encoded ``.``, ``/``, ``\\``)
2. Containment of the normalized path within the root
3. Symlink resolution with containment re-checked on the real path

Only ``validate`` runs all three. ``validate_sync`` skips layer 3 and
must not be used to authorize a read.
"""

from __future__ import annotations

import asyncio
import errno
import os
from dataclasses import dataclass
from pathlib import Path

from reposcope.exceptions import AccessDeniedError, to_tool_error
from reposcope.logging import get_logger

logger = get_logger("reposcope.tools.sandbox")

DENY_PATTERNS = ("..", "~", "$", "`", "\0", "%2e", "%2f", "%5c")

# realpath failures that just mean "does not exist (yet)"
_MISSING_ERRNOS = {errno.ENOENT, errno.ENOTDIR}


@dataclass(frozen=True)
class ValidatedPath:
    """An absolute path proven to lie inside a sandbox root.

    Only PathSandbox creates these; tools accept nothing else.
    """
    path: Path
    relative: str

    def __fspath__(self) -> str:
        return str(self.path)

    def __str__(self) -> str:
        return str(self.path)


def is_within(child: str, root: str) -> bool:
    """Component-wise containment: child equals root or is below it."""
    try:
        return os.path.commonpath([root, child]) == root
    except ValueError:
        # mixed absolute/relative or different drives
        return False


class PathSandbox:
    """Confines path resolution to a single repository root."""

    def __init__(self, root: str | os.PathLike[str]):
        self._root = os.path.realpath(os.path.abspath(os.fspath(root)))

    @property
    def root(self) -> str:
        return self._root

    @property
    def root_name(self) -> str:
        return os.path.basename(self._root) or self._root

    def _check_lexical(self, relative_path: str) -> None:
        lowered = relative_path.lower()
        for pattern in DENY_PATTERNS:
            if pattern in lowered:
                shown = "NUL byte" if pattern == "\0" else pattern
                raise AccessDeniedError(
                    relative_path, f"Path contains suspicious pattern: {shown}"
                )

    def _check_containment(self, relative_path: str) -> str:
        target = os.path.normpath(os.path.join(self._root, relative_path or "."))
        if not is_within(target, self._root):
            raise AccessDeniedError(relative_path, "Path is outside the repository root")
        return target

    def _check_real(self, relative_path: str, target: str) -> str:
        """Resolve symlinks and re-check containment (blocking)."""
        try:
            real = os.path.realpath(target, strict=True)
        except OSError as e:
            if e.errno not in _MISSING_ERRNOS:
                raise to_tool_error(e, relative_path) from e
            # Missing target: resolve the existing prefix so an escaping
            # symlinked parent is denied whether or not the leaf exists.
            real = os.path.realpath(target)
            if not is_within(real, self._root):
                raise AccessDeniedError(
                    relative_path, "Symlink resolves outside the repository root"
                ) from None
            return real

        if not is_within(real, self._root):
            raise AccessDeniedError(relative_path, "Symlink resolves outside the repository root")
        return real

    async def validate(self, relative_path: str) -> ValidatedPath:
        """Validate a caller-supplied path and return its safe absolute form.

        Raises:
            AccessDeniedError: if any layer rejects the path.
        """
        self._check_lexical(relative_path)
        target = self._check_containment(relative_path)
        real = await asyncio.to_thread(self._check_real, relative_path, target)
        return ValidatedPath(path=Path(real), relative=self.to_relative(target))

    def validate_sync(self, relative_path: str) -> ValidatedPath:
        """Layers 1 and 2 only; does not follow symlinks."""
        self._check_lexical(relative_path)
        target = self._check_containment(relative_path)
        return ValidatedPath(path=Path(target), relative=self.to_relative(target))

    def is_allowed(self, relative_path: str) -> bool:
        try:
            self.validate_sync(relative_path)
            return True
        except AccessDeniedError:
            return False

    def to_relative(self, absolute_path: str | os.PathLike[str]) -> str:
        """Express an absolute path relative to the root, with forward slashes.

        Pure string operation; may return ``..`` segments for paths outside
        the root.
        """
        rel = os.path.relpath(os.fspath(absolute_path), self._root)
        return rel.replace(os.sep, "/")


def create_sandbox(
    root: str | os.PathLike[str],
    allowed_root: str | os.PathLike[str] | None = None,
) -> PathSandbox:
    """Create a sandbox for a repository, enforcing the global allowed root.

    Raises:
        AccessDeniedError: if ``root`` lies outside ``allowed_root``.
    """
    if allowed_root:
        global_root = os.path.realpath(os.path.abspath(os.fspath(allowed_root)))
        repo_root = os.path.realpath(os.path.abspath(os.fspath(root)))
        if not is_within(repo_root, global_root):
            logger.warning(
                "Repository outside allowed root",
                extra={"root": repo_root, "path": global_root},
            )
            raise AccessDeniedError(
                os.fspath(root), f"Repository must be inside {os.fspath(allowed_root)}"
            )
    return PathSandbox(root)

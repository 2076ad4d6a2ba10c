"""
Per-repository tool clients and the pool that shares them.

A RepoClient binds the tool registry to one sandboxed repository
root. The RepoClientPool hands out one connected client per resolved
root; callers own the pool explicitly (there is no module-level map).
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from reposcope.config import Settings, get_settings
from reposcope.exceptions import DirectoryNotFoundError, InvalidToolError, RepoScopeError
from reposcope.logging import get_logger
from reposcope.tools.registry import ToolContext, ToolRegistry, create_default_registry
from reposcope.tools.sandbox import create_sandbox
from reposcope.tools.validation import parse_arguments

logger = get_logger("reposcope.tools.client")


def resolve_root(root: str | os.PathLike[str]) -> str:
    return os.path.realpath(os.path.abspath(os.path.expanduser(os.fspath(root))))


class RepoClient:
    """Tool access to a single repository.

    ``connect`` validates the root against the global allowed root and
    builds the sandbox; ``call_tool`` validates arguments and dispatches.
    """

    def __init__(
        self,
        root: str | os.PathLike[str],
        settings: Settings | None = None,
        registry: ToolRegistry | None = None,
    ):
        self._root = resolve_root(root)
        self._settings = settings or get_settings()
        self._registry = registry or create_default_registry()
        self._context: ToolContext | None = None
        self._disconnect_callbacks: list[Callable[[RepoClient], None]] = []

    @property
    def root(self) -> str:
        return self._root

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def is_connected(self) -> bool:
        return self._context is not None

    def on_disconnect(self, callback: Callable[[RepoClient], None]) -> None:
        self._disconnect_callbacks.append(callback)

    async def connect(self) -> None:
        """Create the sandbox for this root.

        Raises:
            AccessDeniedError: if the root lies outside ALLOWED_REPO_ROOT.
            DirectoryNotFoundError: if the root is not a directory.
        """
        if self.is_connected:
            return
        sandbox = create_sandbox(self._root, self._settings.allowed_root)
        if not await asyncio.to_thread(os.path.isdir, sandbox.root):
            raise DirectoryNotFoundError(self._root)
        self._context = ToolContext(sandbox=sandbox, settings=self._settings)
        logger.info("Repository client connected", extra={"root": self._root})

    async def disconnect(self) -> None:
        if not self.is_connected:
            return
        self._context = None
        logger.info("Repository client disconnected", extra={"root": self._root})
        for callback in self._disconnect_callbacks:
            callback(self)

    def list_tools(self) -> list[dict]:
        return self._registry.get_schemas()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> BaseModel:
        """Validate ``arguments`` and run tool ``name``.

        Raises:
            InvalidToolError: if ``name`` is not a known tool.
            ToolError: any domain failure of the tool itself.
        """
        if self._context is None:
            raise RepoScopeError(f"Client for {self._root} is not connected")
        tool = self._registry.get(name)
        if tool is None:
            raise InvalidToolError(name)
        args = parse_arguments(tool.name, tool.args_model, arguments)
        return await tool.handler(args, self._context)

    async def list_files(self, **arguments: Any) -> BaseModel:
        return await self.call_tool("list_files", arguments)

    async def read_file(self, **arguments: Any) -> BaseModel:
        return await self.call_tool("read_file", arguments)

    async def search_files(self, **arguments: Any) -> BaseModel:
        return await self.call_tool("search_files", arguments)

    async def get_repo_overview(self, **arguments: Any) -> BaseModel:
        return await self.call_tool("get_repo_overview", arguments)


class RepoClientPool:
    """Connected RepoClients keyed by resolved repository root."""

    def __init__(
        self,
        settings: Settings | None = None,
        registry: ToolRegistry | None = None,
    ):
        self._settings = settings
        self._registry = registry
        self._clients: dict[str, RepoClient] = {}

    async def get_or_create(self, root: str | os.PathLike[str]) -> RepoClient:
        """Return the connected client for ``root``, creating one if needed.

        A disconnected entry is discarded and replaced.
        """
        key = resolve_root(root)
        existing = self._clients.get(key)
        if existing is not None and existing.is_connected:
            return existing
        self._clients.pop(key, None)

        client = RepoClient(key, settings=self._settings, registry=self._registry)
        await client.connect()

        # another task may have connected the same root meanwhile
        winner = self._clients.get(key)
        if winner is not None and winner.is_connected:
            await client.disconnect()
            return winner

        client.on_disconnect(self._forget)
        self._clients[key] = client
        return client

    def _forget(self, client: RepoClient) -> None:
        if self._clients.get(client.root) is client:
            del self._clients[client.root]

    async def evict(self, root: str | os.PathLike[str]) -> bool:
        """Disconnect and drop the client for ``root``; False if none existed."""
        client = self._clients.pop(resolve_root(root), None)
        if client is None:
            return False
        await client.disconnect()
        return True

    async def close_all(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.disconnect()

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, root: object) -> bool:
        if isinstance(root, (str, os.PathLike)):
            return resolve_root(root) in self._clients
        return False

"""
RepoScope stdio tool server

Serves the four repository tools over newline-delimited JSON-RPC 2.0
on stdin/stdout, the transport MCP hosts use to launch local tool
servers. Methods:

- ``initialize``: protocol handshake, returns server info
- ``tools/list``: tool schemas
- ``tools/call``: run one tool; tool failures come back as a result
  with ``isError`` set. An unknown tool or malformed arguments is a
  request error and gets a JSON-RPC error instead

stdout carries protocol messages only; logging goes to stderr.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, TextIO

from reposcope import __version__
from reposcope.exceptions import InvalidArgumentsError, InvalidToolError, ToolError
from reposcope.logging import get_logger
from reposcope.tools.client import RepoClient

logger = get_logger("reposcope.mcp")

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "reposcope"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


def _response(msg_id: Any, result: dict) -> dict:
    return {"jsonrpc": "2.0", "id": msg_id, "result": result}


def _error(msg_id: Any, code: int, message: str, data: dict | None = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": msg_id, "error": error}


def _text_content(payload: Any, is_error: bool = False) -> dict:
    return {
        "content": [{"type": "text", "text": json.dumps(payload, indent=2)}],
        "isError": is_error,
    }


class McpServer:
    """JSON-RPC dispatcher bound to one connected RepoClient."""

    def __init__(self, client: RepoClient):
        self._client = client
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def handle(self, message: Any) -> dict | None:
        """Dispatch one decoded message. Notifications return None."""
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0" or "method" not in message:
            return _error(message.get("id") if isinstance(message, dict) else None,
                          INVALID_REQUEST, "Invalid Request")

        msg_id = message.get("id")
        method = message["method"]
        params = message.get("params") or {}
        is_notification = "id" not in message

        if method == "initialize":
            self._initialized = True
            result = {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": SERVER_NAME, "version": __version__},
            }
        elif method == "notifications/initialized":
            return None
        elif method == "ping":
            result = {}
        elif method == "tools/list":
            result = {"tools": self._client.list_tools()}
        elif method == "tools/call":
            if not isinstance(params, dict) or not isinstance(params.get("name"), str):
                return _error(msg_id, INVALID_PARAMS, "tools/call requires a string 'name'")
            try:
                result = await self._call_tool(params["name"], params.get("arguments"))
            except (InvalidToolError, InvalidArgumentsError) as e:
                return {"jsonrpc": "2.0", "id": msg_id, "error": e.to_rpc_error()}
        else:
            if is_notification:
                return None
            return _error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        if is_notification:
            return None
        return _response(msg_id, result)

    async def _call_tool(self, name: str, arguments: Any) -> dict:
        try:
            result = await self._client.call_tool(name, arguments)
        except (InvalidToolError, InvalidArgumentsError):
            raise
        except ToolError as e:
            logger.info(
                f"Tool {name} failed: {e.message}",
                extra={"tool_name": name, "error_code": e.code.value},
            )
            return _text_content({"error": e.to_dict()}, is_error=True)
        except Exception as e:
            logger.exception("Unexpected tool failure", extra={"tool_name": name})
            return _text_content(
                {"error": {"code": "tool_execution_failed", "message": f"{type(e).__name__}: {e}"}},
                is_error=True,
            )
        return _text_content(result.model_dump(mode="json", exclude_none=True))

    async def handle_line(self, line: str) -> dict | None:
        """Decode one line of input and dispatch it."""
        line = line.strip()
        if not line:
            return None
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            return _error(None, PARSE_ERROR, f"Parse error: {e.msg}")
        return await self.handle(message)

    async def serve(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        """Read requests until EOF, writing one response line per request."""
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        logger.info("stdio server ready", extra={"root": self._client.root})
        while True:
            line = await asyncio.to_thread(stdin.readline)
            if not line:
                break
            response = await self.handle_line(line)
            if response is not None:
                stdout.write(json.dumps(response) + "\n")
                stdout.flush()
        logger.info("stdin closed, shutting down")


async def run_stdio(root: str) -> None:
    """Connect to ``root`` and serve tools on stdin/stdout."""
    client = RepoClient(root)
    await client.connect()
    try:
        await McpServer(client).serve()
    finally:
        await client.disconnect()

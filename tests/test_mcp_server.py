"""Tests for the stdio JSON-RPC tool server."""

import io
import json

import pytest

from reposcope import __version__
from reposcope.mcp.server import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PROTOCOL_VERSION,
    McpServer,
)


@pytest.fixture
def server(client):
    return McpServer(client)


def _payload(response):
    return json.loads(response["result"]["content"][0]["text"])


def _call(name, arguments=None, msg_id=1):
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"jsonrpc": "2.0", "id": msg_id, "method": "tools/call", "params": params}


class TestLifecycle:
    async def test_initialize(self, server):
        response = await server.handle({"jsonrpc": "2.0", "id": 1, "method": "initialize",
                                        "params": {"protocolVersion": PROTOCOL_VERSION}})
        assert response["id"] == 1
        assert response["result"]["protocolVersion"] == PROTOCOL_VERSION
        assert response["result"]["serverInfo"] == {"name": "reposcope", "version": __version__}
        assert response["result"]["capabilities"] == {"tools": {}}
        assert server.initialized

    async def test_initialized_notification(self, server):
        assert await server.handle({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None

    async def test_ping(self, server):
        assert (await server.handle({"jsonrpc": "2.0", "id": 7, "method": "ping"}))["result"] == {}


class TestTools:
    async def test_list(self, server):
        response = await server.handle({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
        tools = response["result"]["tools"]
        assert [t["name"] for t in tools] == [
            "list_files", "read_file", "search_files", "get_repo_overview",
        ]
        assert all("inputSchema" in t for t in tools)

    async def test_call_read_file(self, server):
        response = await server.handle(_call("read_file", {"path": "README.md"}))
        assert response["result"]["isError"] is False
        assert _payload(response)["content"] == "# Sample\n\nA sample project.\n"

    async def test_call_search(self, server):
        response = await server.handle(_call("search_files", {"pattern": "TODO"}))
        assert _payload(response)["total_matches"] == 2

    async def test_call_without_arguments(self, server):
        response = await server.handle(_call("get_repo_overview"))
        assert response["result"]["isError"] is False
        assert "structure" in _payload(response)

    async def test_tool_error_is_result(self, server):
        response = await server.handle(_call("read_file", {"path": "missing.txt"}))
        assert "error" not in response
        assert response["result"]["isError"] is True
        assert _payload(response)["error"]["code"] == "file_not_found"

    @pytest.mark.adversarial
    async def test_traversal_is_error_result(self, server):
        response = await server.handle(_call("read_file", {"path": "../outside/secret.txt"}))
        assert response["result"]["isError"] is True
        assert _payload(response)["error"]["code"] == "access_denied"
        assert "top secret" not in json.dumps(response)

    async def test_unknown_tool(self, server):
        response = await server.handle(_call("delete_file", {"path": "README.md"}))
        assert response["error"]["code"] == METHOD_NOT_FOUND
        assert response["error"]["data"]["code"] == "invalid_tool"

    async def test_invalid_arguments(self, server):
        response = await server.handle(_call("read_file", {}))
        assert response["error"]["code"] == INVALID_PARAMS
        assert response["error"]["data"]["code"] == "invalid_arguments"

    async def test_missing_name(self, server):
        response = await server.handle({"jsonrpc": "2.0", "id": 3, "method": "tools/call",
                                        "params": {}})
        assert response["error"]["code"] == INVALID_PARAMS


class TestProtocolErrors:
    async def test_unknown_method(self, server):
        response = await server.handle({"jsonrpc": "2.0", "id": 4, "method": "resources/list"})
        assert response["error"]["code"] == METHOD_NOT_FOUND

    async def test_unknown_notification_ignored(self, server):
        assert await server.handle({"jsonrpc": "2.0", "method": "notifications/cancelled"}) is None

    async def test_invalid_request(self, server):
        response = await server.handle({"id": 5, "method": "ping"})
        assert response["error"]["code"] == INVALID_REQUEST
        assert response["id"] == 5

    async def test_non_object(self, server):
        response = await server.handle([1, 2])
        assert response["error"]["code"] == INVALID_REQUEST
        assert response["id"] is None

    async def test_parse_error(self, server):
        response = await server.handle_line("{not json")
        assert response["error"]["code"] == PARSE_ERROR
        assert response["id"] is None

    async def test_blank_line(self, server):
        assert await server.handle_line("   \n") is None


class TestServe:
    async def test_round_trip_over_streams(self, server):
        stdin = io.StringIO("\n".join([
            json.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}),
            json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
            json.dumps(_call("list_files", {"max_depth": 1}, msg_id=2)),
            "garbage",
        ]) + "\n")
        stdout = io.StringIO()

        await server.serve(stdin=stdin, stdout=stdout)

        lines = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert [line["id"] for line in lines] == [1, 2, None]
        paths = [entry["path"] for entry in _payload(lines[1])["files"]]
        assert "README.md" in paths
        assert lines[2]["error"]["code"] == PARSE_ERROR

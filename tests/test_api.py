"""Tests for the RepoScope API Server.

Covers the chat completions endpoint (SSE and JSON), the file
browsing endpoints, and error mapping.
Uses httpx + ASGITransport with a scripted provider.
"""

import json

import pytest
from httpx import ASGITransport, AsyncClient

from reposcope import __version__
from reposcope.api.server import app, get_provider_factory, pool
from reposcope.providers.base import ContentBlock, LLMProvider, LLMResponse, ProviderConfig


class ScriptedProvider(LLMProvider):
    def __init__(self, responses):
        super().__init__(ProviderConfig(model="scripted", max_retries=1, retry_base_delay=0))
        self._responses = list(responses)
        self.calls = []

    async def _create_message_impl(self, messages, *, max_tokens=4096, system=None,
                                   tools=None, temperature=None):
        self.calls.append({"messages": messages, "system": system, "tools": tools,
                           "temperature": temperature, "max_tokens": max_tokens})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def text(value):
    return LLMResponse(content=[ContentBlock(type="text", text=value)],
                       input_tokens=10, output_tokens=5)


def tool_use(name, arguments, call_id="call_1"):
    return LLMResponse(
        content=[ContentBlock(type="tool_use", tool_name=name, tool_input=arguments,
                              tool_use_id=call_id)],
        stop_reason="tool_use",
        input_tokens=20,
        output_tokens=4,
    )


@pytest.fixture
def script():
    """Install a scripted provider; returns a setter taking the responses."""
    holder = {}

    def install(*responses):
        holder["provider"] = ScriptedProvider(responses)
        app.dependency_overrides[get_provider_factory] = lambda: (lambda model: holder["provider"])
        return holder["provider"]

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
async def api():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    await pool.close_all()


def _frames(body):
    return [chunk[len("data: "):] for chunk in body.split("\n\n") if chunk.startswith("data: ")]


# ─── Health / Tools ─────────────────────────────────────────


class TestMetaEndpoints:
    async def test_health(self, api):
        response = await api.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__

    async def test_tools(self, api):
        response = await api.get("/api/v1/tools")
        names = [tool["name"] for tool in response.json()["tools"]]
        assert names == ["list_files", "read_file", "search_files", "get_repo_overview"]


# ─── Chat completions ───────────────────────────────────────


class TestChatStreaming:
    async def test_tool_round_then_answer(self, api, repo, script):
        provider = script(
            tool_use("read_file", {"path": "README.md"}),
            text("It is a sample project."),
        )

        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "What is this project?"}],
            "settings": {"repo_path": str(repo)},
        })

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        frames = _frames(response.text)
        assert frames[-1] == "[DONE]"
        events = [json.loads(f) for f in frames[:-1]]

        tool_events = [e for e in events if e.get("type") == "tool_call"]
        assert [e["status"] for e in tool_events] == ["started", "completed"]
        assert tool_events[1]["result"]["content"].startswith("# Sample")

        chunks = [e for e in events if e.get("object") == "chat.completion.chunk"]
        assert chunks[0]["choices"][0]["delta"] == {"content": "It is a sample project."}
        assert chunks[0]["id"].startswith("chatcmpl-")
        assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
        assert chunks[-1]["choices"][0]["delta"] == {}

        done = events[-1]
        assert done == {"type": "done", "usage": {
            "prompt_tokens": 30, "completion_tokens": 9, "total_tokens": 39,
        }}
        assert "You are analyzing:" in provider.calls[0]["system"]
        assert provider.calls[1]["tools"] is not None

    async def test_without_repository(self, api, script):
        provider = script(text("Hello."))

        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "hi"}],
        })

        frames = _frames(response.text)
        assert json.loads(frames[0])["choices"][0]["delta"]["content"] == "Hello."
        assert frames[-1] == "[DONE]"
        assert provider.calls[0]["tools"] is None

    async def test_iteration_budget_error_event(self, api, repo, script, monkeypatch):
        from reposcope.config import reset_settings

        monkeypatch.setenv("MAX_TOOL_ITERATIONS", "2")
        monkeypatch.setenv("MAX_TOOL_ROUNDS", "5")
        reset_settings()
        script(tool_use("list_files", {}, call_id="c1"), tool_use("list_files", {}, call_id="c2"))

        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "explore"}],
            "settings": {"repo_path": str(repo)},
        })

        frames = _frames(response.text)
        assert "[DONE]" not in frames
        last = json.loads(frames[-1])
        assert last["type"] == "error"
        assert last["error"]["code"] == "max_iterations"


class TestChatJson:
    async def test_non_streaming(self, api, repo, script):
        provider = script(
            tool_use("search_files", {"pattern": "TODO"}),
            text("Two TODOs."),
        )

        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "Find TODOs"}],
            "stream": False,
            "repo_path": str(repo),
            "temperature": 0.0,
            "max_tokens": 256,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["object"] == "chat.completion"
        assert data["model"] == "scripted"
        assert data["content"] == "Two TODOs."
        assert data["tool_calls"][0]["name"] == "search_files"
        assert data["tool_calls"][0]["status"] == "completed"
        assert data["tool_calls"][0]["result"]["total_matches"] == 2
        assert data["usage"]["total_tokens"] == 39
        assert provider.calls[0]["temperature"] == 0.0
        assert provider.calls[0]["max_tokens"] == 256

    async def test_tool_error_reported_in_call(self, api, repo, script):
        script(tool_use("read_file", {"path": "../outside/secret.txt"}), text("Denied."))

        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "read the secret"}],
            "stream": False,
            "repo_path": str(repo),
        })

        call = response.json()["tool_calls"][0]
        assert call["status"] == "error"
        assert call["error"]["code"] == "access_denied"
        assert call["result"] is None

    async def test_provider_failure(self, api, script):
        script(ConnectionError("refused"))

        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "hi"}],
            "stream": False,
        })

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "provider_unavailable"


class TestChatValidation:
    async def test_empty_messages(self, api, script):
        script()
        response = await api.post("/api/v1/chat/completions", json={"messages": []})
        assert response.status_code == 422

    async def test_bad_role(self, api, script):
        script()
        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "robot", "content": "beep"}],
        })
        assert response.status_code == 422

    async def test_temperature_out_of_range(self, api, script):
        script()
        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "hi"}],
            "settings": {"temperature": 3.5},
        })
        assert response.status_code == 422

    async def test_missing_repository(self, api, repo, script):
        script()
        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "hi"}],
            "settings": {"repo_path": str(repo / "missing")},
        })
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "directory_not_found"

    async def test_repository_outside_allowed_root(self, api, repo, script, monkeypatch):
        from reposcope.config import reset_settings

        monkeypatch.setenv("ALLOWED_REPO_ROOT", str(repo / "src"))
        reset_settings()
        script()
        response = await api.post("/api/v1/chat/completions", json={
            "messages": [{"role": "user", "content": "hi"}],
            "settings": {"repo_path": str(repo)},
        })
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "access_denied"


# ─── File browsing ──────────────────────────────────────────


class TestFileEndpoints:
    async def test_list_top_level(self, api, repo):
        response = await api.get("/api/v1/files", params={"repo": str(repo)})
        assert response.status_code == 200
        paths = [entry["path"] for entry in response.json()["files"]]
        assert "README.md" in paths
        assert "src" in paths
        assert "src/main.py" not in paths
        assert ".env" not in paths

    async def test_list_subdirectory(self, api, repo):
        response = await api.get("/api/v1/files", params={
            "repo": str(repo), "path": "src", "max_depth": 2,
        })
        paths = [entry["path"] for entry in response.json()["files"]]
        assert "src/utils/helpers.py" in paths

    async def test_read(self, api, repo):
        response = await api.get("/api/v1/files/read", params={
            "repo": str(repo), "path": "README.md",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "# Sample\n\nA sample project.\n"
        assert data["encoding"] == "utf-8"

    @pytest.mark.adversarial
    async def test_read_traversal_denied(self, api, repo):
        response = await api.get("/api/v1/files/read", params={
            "repo": str(repo), "path": "../outside/secret.txt",
        })
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "access_denied"
        assert "top secret" not in response.text

    async def test_read_missing(self, api, repo):
        response = await api.get("/api/v1/files/read", params={
            "repo": str(repo), "path": "nope.txt",
        })
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "file_not_found"

    async def test_read_binary_rejected(self, api, repo):
        response = await api.get("/api/v1/files/read", params={
            "repo": str(repo), "path": "logo.png",
        })
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "binary_file"

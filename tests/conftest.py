"""Shared test fixtures for the RepoScope test suite."""

import pytest

from reposcope.config import Settings, reset_settings
from reposcope.tools.client import RepoClient, RepoClientPool
from reposcope.tools.registry import ToolContext
from reposcope.tools.sandbox import PathSandbox

MAIN_PY = """import os

def main():
    # TODO: parse args
    print('hello')

if __name__ == '__main__':
    main()
"""

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(32)


def write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    return path


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for var in ("ALLOWED_REPO_ROOT", "REPOSCOPE_PROVIDER", "REPOSCOPE_MODEL"):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def repo(tmp_path):
    """A small repository next to (not inside) an ``outside`` directory."""
    root = tmp_path / "repo"
    write(root / "README.md", "# Sample\n\nA sample project.\n")
    write(root / "package.json", '{"name": "sample"}\n')
    write(root / "src" / "main.py", MAIN_PY)
    write(root / "src" / "app.ts", "export const app = () => 'TODO';\n")
    write(root / "src" / "utils" / "helpers.py", "def helper():\n    return 42\n")
    write(root / "docs" / "guide.md", "# Guide\n")
    write(root / "logo.png", PNG_BYTES)
    write(root / ".env", "SECRET=1\n")
    write(root / "node_modules" / "dep" / "index.js", "// TODO vendored\n")
    write(tmp_path / "outside" / "secret.txt", "top secret\n")
    return root


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def sandbox(repo):
    return PathSandbox(repo)


@pytest.fixture
def ctx(sandbox, settings):
    return ToolContext(sandbox=sandbox, settings=settings)


@pytest.fixture
async def client(repo, settings):
    c = RepoClient(repo, settings=settings)
    await c.connect()
    yield c
    await c.disconnect()


@pytest.fixture
async def pool(settings):
    p = RepoClientPool(settings=settings)
    yield p
    await p.close_all()

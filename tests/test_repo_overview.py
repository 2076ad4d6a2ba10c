"""Tests for the get_repo_overview tool."""

import os

import pytest


def _names(node):
    return [c.name for c in node.children]


class TestRepoOverview:
    async def test_structure(self, client):
        result = await client.get_repo_overview()
        assert result.root == "repo"
        assert result.structure.name == "repo"
        assert result.structure.type == "directory"
        assert _names(result.structure) == ["docs", "src", "README.md", "logo.png", "package.json"]

        src = result.structure.children[1]
        assert _names(src) == ["utils", "app.ts", "main.py"]
        assert _names(src.children[0]) == ["helpers.py"]

    async def test_file_nodes_carry_size(self, client):
        result = await client.get_repo_overview()
        readme = next(c for c in result.structure.children if c.name == "README.md")
        assert readme.type == "file"
        assert readme.size == len("# Sample\n\nA sample project.\n")
        assert readme.children is None

    async def test_stats(self, client):
        stats = (await client.get_repo_overview()).stats
        assert stats.total_files == 7
        assert stats.total_directories == 3
        by_ext = {lang.extension: lang for lang in stats.languages}
        assert by_ext[".py"].count == 2
        assert by_ext[".md"].count == 2
        assert stats.total_size == sum(lang.bytes for lang in stats.languages)

    async def test_languages_sorted_by_bytes(self, client):
        languages = (await client.get_repo_overview()).stats.languages
        sizes = [lang.bytes for lang in languages]
        assert sizes == sorted(sizes, reverse=True)

    async def test_depth_one(self, client):
        result = await client.get_repo_overview(max_depth=1)
        docs = result.structure.children[0]
        assert docs.name == "docs"
        assert docs.children == []
        assert result.stats.total_files == 3
        assert result.stats.total_directories == 2

    async def test_without_stats(self, client):
        result = await client.get_repo_overview(include_stats=False)
        assert result.stats is None

    async def test_hidden_only_skipped_at_top_level(self, client, repo):
        (repo / "src" / ".config").write_text("x")
        result = await client.get_repo_overview()
        assert ".env" not in _names(result.structure)
        src = next(c for c in result.structure.children if c.name == "src")
        assert ".config" in _names(src)

    async def test_extensionless_files_not_in_languages(self, client, repo):
        (repo / "Makefile").write_text("all:\n")
        stats = (await client.get_repo_overview()).stats
        assert stats.total_files == 8
        assert "" not in {lang.extension for lang in stats.languages}


@pytest.mark.adversarial
class TestRepoOverviewSandbox:
    async def test_escaping_symlink_omitted(self, client, repo, tmp_path):
        os.symlink(tmp_path / "outside", repo / "escape")
        result = await client.get_repo_overview()
        assert "escape" not in _names(result.structure)

    async def test_internal_symlinked_dir_not_descended(self, client, repo):
        os.symlink(repo / "src", repo / "alias")
        result = await client.get_repo_overview()
        alias = next(c for c in result.structure.children if c.name == "alias")
        assert alias.type == "directory"
        assert alias.children == []

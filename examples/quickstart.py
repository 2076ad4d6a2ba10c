"""RepoScope quickstart: run the tools directly, then ask a local model."""

import asyncio

from reposcope.core.models import ChatMessage
from reposcope.orchestrator import Orchestrator, OrchestratorConfig
from reposcope.providers import create_provider
from reposcope.tools.client import RepoClient


async def main(repo: str = ".") -> None:
    client = RepoClient(repo)
    await client.connect()
    overview = await client.get_repo_overview(max_depth=2)
    print(f"Files: {overview.stats.total_files}, directories: {overview.stats.total_directories}")
    todos = await client.search_files(pattern="TODO", glob="**/*.py", max_results=5)
    for match in todos.matches:
        print(f"  {match.path}:{match.line_number}  {match.line_content.strip()}")
    await client.disconnect()

    orchestrator = Orchestrator(create_provider("ollama"), OrchestratorConfig(repo_path=repo))
    result = await orchestrator.chat([ChatMessage(role="user", content="What does this project do?")])
    print(f"\n{result.content}")
    print(f"Tool calls: {len(result.tool_calls)}, tokens: {result.usage.total_tokens}")


if __name__ == "__main__":
    asyncio.run(main())

"""
RepoScope CLI

Command-line interface for RepoScope.

Commands:
    reposcope ask REPO "question"            Ask a question about a repository
    reposcope tool REPO NAME --args JSON     Run one tool directly
    reposcope serve                          Start the HTTP API server
    reposcope mcp REPO                       Serve tools over stdio JSON-RPC
    reposcope status                         Show configuration

Usage:
    pip install reposcope
    reposcope ask ~/src/myproject "Where is the config loaded?"
"""

from __future__ import annotations

import asyncio
import json
import sys

import click

from reposcope import __version__
from reposcope.config import get_settings
from reposcope.exceptions import ConfigurationError, RepoScopeError, ToolError
from reposcope.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="reposcope")
def cli() -> None:
    """RepoScope: ask a language model about a local repository."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    configure_logging(level=settings.log_level, json_output=settings.log_json)


@cli.command()
@click.argument("repo", type=click.Path(exists=True, file_okay=False))
@click.argument("question")
@click.option("--provider", default=None, help="ollama, openai or claude")
@click.option("--model", default=None, help="Model name override")
@click.option("--tool-mode", type=click.Choice(["auto", "manual"]), default="auto")
@click.option("--json-output", is_flag=True, help="Output the result as JSON")
def ask(
    repo: str,
    question: str,
    provider: str | None,
    model: str | None,
    tool_mode: str,
    json_output: bool,
) -> None:
    """Ask QUESTION about the repository at REPO."""
    asyncio.run(
        _ask(
            repo=repo,
            question=question,
            provider_name=provider,
            model=model,
            tool_mode=tool_mode,
            json_output=json_output,
        )
    )


@cli.command()
@click.argument("repo", type=click.Path(exists=True, file_okay=False))
@click.argument("name")
@click.option("--args", "args_json", default="{}", help="Tool arguments as a JSON object")
def tool(repo: str, name: str, args_json: str) -> None:
    """Run tool NAME against REPO and print its result."""
    try:
        arguments = json.loads(args_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e.msg}", param_hint="--args") from e
    asyncio.run(_tool(repo, name, arguments))


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Port number")
@click.option("--reload", is_flag=True, help="Auto-reload on changes")
def serve(host: str, port: int, reload: bool) -> None:
    """Start the RepoScope API server."""
    _serve(host, port, reload)


@cli.command()
@click.argument("repo", type=click.Path(exists=True, file_okay=False))
def mcp(repo: str) -> None:
    """Serve the repository tools for REPO over stdio JSON-RPC."""
    from reposcope.mcp import run_stdio

    try:
        asyncio.run(run_stdio(repo))
    except ToolError as e:
        raise click.ClickException(e.message) from e


@cli.command()
def status() -> None:
    """Show RepoScope configuration."""
    settings = get_settings()
    _print_header("RepoScope Status")
    print(f"  Version: {__version__}")
    print(f"  Python: {sys.version.split()[0]}")
    print(f"  Provider: {settings.provider}")
    print(f"  Model: {settings.model or '(provider default)'}")
    print(f"  Allowed root: {settings.allowed_root or '(unrestricted)'}")
    print(f"  Max file size: {settings.max_file_size_bytes} bytes")
    print(f"  Max search results: {settings.max_search_results}")
    print(f"  Search timeout: {settings.search_timeout_ms} ms")
    print(f"  Max iterations: {settings.max_iterations}")
    print(f"  Max tool rounds: {settings.max_tool_rounds}")


async def _ask(
    repo: str,
    question: str,
    provider_name: str | None = None,
    model: str | None = None,
    tool_mode: str = "auto",
    json_output: bool = False,
) -> None:
    """Run one streamed turn and print tool activity and the answer."""
    from reposcope.core.models import ChatMessage, ContentEvent, DoneEvent, ErrorEvent, ToolCallEvent
    from reposcope.orchestrator import Orchestrator, OrchestratorConfig
    from reposcope.providers import create_provider

    settings = get_settings()
    name = provider_name or settings.provider
    base_url = settings.ollama_base_url if name == "ollama" else None
    try:
        provider = create_provider(name, model=model or settings.model, base_url=base_url)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    orchestrator = Orchestrator(
        provider,
        OrchestratorConfig(
            repo_path=repo,
            tool_mode=tool_mode,
            max_iterations=settings.max_iterations,
            max_tool_rounds=settings.max_tool_rounds,
            system_prompt_file=settings.system_prompt_file,
        ),
    )

    if not json_output:
        _print_header("RepoScope")
        print(f"  Repository: {repo}")
        print(f"  Question: {question}")
        print()

    events: list[dict] = []
    content = ""
    failed = False
    channel = orchestrator.stream_chat([ChatMessage(role="user", content=question)])
    try:
        async for event in channel:
            events.append(event.to_dict())
            if isinstance(event, ToolCallEvent) and not json_output:
                suffix = f" ({event.duration_ms:.0f}ms)" if event.duration_ms is not None else ""
                error = f" {event.error.code}: {event.error.message}" if event.error else ""
                print(f"  [{event.status.value:9s}] {event.name}{suffix}{error}")
            elif isinstance(event, ContentEvent):
                content += event.delta
            elif isinstance(event, DoneEvent) and not json_output:
                print()
                print(content)
                print(f"\n  Tokens: {event.usage.total_tokens}")
            elif isinstance(event, ErrorEvent):
                failed = True
                if not json_output:
                    print(f"\n  Error [{event.error.code}]: {event.error.message}", file=sys.stderr)
    finally:
        await orchestrator.cleanup()

    if json_output:
        print(json.dumps({"content": content, "events": events}, indent=2, default=str))
    if failed:
        sys.exit(1)


async def _tool(repo: str, name: str, arguments: dict) -> None:
    """Call one tool directly and print the JSON result."""
    from reposcope.tools.client import RepoClient

    client = RepoClient(repo)
    try:
        await client.connect()
        result = await client.call_tool(name, arguments)
    except ToolError as e:
        print(json.dumps({"error": e.to_dict()}, indent=2), file=sys.stderr)
        sys.exit(1)
    except RepoScopeError as e:
        raise click.ClickException(str(e)) from e
    finally:
        await client.disconnect()
    print(json.dumps(result.model_dump(mode="json", exclude_none=True), indent=2))


def _serve(host: str, port: int, reload: bool) -> None:
    """Start the RepoScope API server."""
    import uvicorn

    _print_header("RepoScope API Server")
    print(f"  Binding: {host}:{port}")
    print(f"  Reload: {'enabled' if reload else 'disabled'}")
    print()

    uvicorn.run(
        "reposcope.api.server:app",
        host=host,
        port=port,
        reload=reload,
    )


def _print_header(title: str) -> None:
    """Print a formatted header."""
    print(f"\n  {'=' * 60}")
    print(f"  {title}")
    print(f"  {'=' * 60}\n")


if __name__ == "__main__":
    cli()

"""
RepoScope: sandboxed repository inspection tools for language models.

Usage:
    from reposcope.orchestrator import Orchestrator, OrchestratorConfig
    from reposcope.providers import create_provider

    orchestrator = Orchestrator(
        create_provider("ollama"),
        OrchestratorConfig(repo_path="/path/to/repo"),
    )
    result = await orchestrator.chat([ChatMessage(role="user", content="What is this project?")])
"""

__version__ = "0.3.0"

__all__ = ["__version__"]

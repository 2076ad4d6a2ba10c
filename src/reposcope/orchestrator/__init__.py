"""RepoScope orchestration: the bounded tool-calling loop and its event channel."""

from reposcope.orchestrator.channel import ChannelClosedError, EventChannel
from reposcope.orchestrator.loop import OrchestrationResult, Orchestrator, OrchestratorConfig
from reposcope.orchestrator.prompts import PromptBuilder

__all__ = [
    "ChannelClosedError",
    "EventChannel",
    "OrchestrationResult",
    "Orchestrator",
    "OrchestratorConfig",
    "PromptBuilder",
]

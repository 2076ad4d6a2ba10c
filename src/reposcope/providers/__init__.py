"""
RepoScope LLM Provider Abstraction

Providers wrap different LLM APIs (Ollama, OpenAI, Anthropic)
behind a common interface used by the orchestration loop.

Usage:
    from reposcope.providers import create_provider

    provider = create_provider("ollama", model="llama3.1:8b")
    response = await provider.create_message(messages=[...], tools=schemas)
"""

from reposcope.providers.base import ContentBlock, LLMProvider, LLMResponse, ProviderConfig

__all__ = [
    "ContentBlock",
    "LLMProvider",
    "LLMResponse",
    "ProviderConfig",
    "create_provider",
]


def create_provider(
    name: str = "ollama",
    *,
    api_key: str | None = None,
    model: str | None = None,
    base_url: str | None = None,
) -> LLMProvider:
    """Factory function to create an LLM provider by name.

    Args:
        name: Provider name ("ollama", "openai", "claude").
        api_key: Optional API key override.
        model: Optional model name override.
        base_url: Optional endpoint override (ollama, openai).

    Raises:
        ValueError: for an unknown provider name.
    """
    name_lower = name.lower()

    if name_lower in ("claude", "anthropic"):
        from reposcope.providers.claude import ClaudeProvider
        config = ProviderConfig(api_key=api_key, model=model or ClaudeProvider.DEFAULT_MODEL)
        return ClaudeProvider(config)
    elif name_lower == "openai":
        from reposcope.providers.openai import OpenAIProvider
        config = ProviderConfig(
            api_key=api_key, model=model or OpenAIProvider.DEFAULT_MODEL, base_url=base_url
        )
        return OpenAIProvider(config)
    elif name_lower == "ollama":
        from reposcope.providers.ollama import OllamaProvider
        config = ProviderConfig(model=model or OllamaProvider.DEFAULT_MODEL, base_url=base_url)
        return OllamaProvider(config)
    else:
        raise ValueError(
            f"Unknown provider: {name}. Supported: ollama, openai, claude"
        )

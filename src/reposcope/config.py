"""
RepoScope Configuration

Server-side limits and defaults, loaded from environment variables.
Tool argument ceilings (file size, search results, search timeout)
live here so they are enforced regardless of what a model asks for.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from reposcope.exceptions import ConfigurationError

_DISABLED_VALUES = {"", "false", "0", "null", "none"}

ENV_FIELDS: dict[str, str] = {
    "ALLOWED_REPO_ROOT": "allowed_root",
    "MAX_FILE_SIZE_BYTES": "max_file_size_bytes",
    "MAX_SEARCH_RESULTS": "max_search_results",
    "SEARCH_TIMEOUT_MS": "search_timeout_ms",
    "MAX_TOOL_ITERATIONS": "max_iterations",
    "MAX_TOOL_ROUNDS": "max_tool_rounds",
    "REPOSCOPE_PROVIDER": "provider",
    "REPOSCOPE_MODEL": "model",
    "OLLAMA_BASE_URL": "ollama_base_url",
    "REPOSCOPE_SYSTEM_PROMPT_FILE": "system_prompt_file",
    "REPOSCOPE_LOG_LEVEL": "log_level",
    "REPOSCOPE_LOG_JSON": "log_json",
}


class Settings(BaseModel):
    """Validated runtime settings."""
    allowed_root: str | None = None
    max_file_size_bytes: int = Field(default=1_048_576, ge=1024, le=10 * 1024 * 1024)
    max_search_results: int = Field(default=50, ge=1, le=1000)
    search_timeout_ms: int = Field(default=10_000, ge=1000, le=60_000)
    max_iterations: int = Field(default=5, ge=1, le=20)
    max_tool_rounds: int = Field(default=2, ge=0, le=10)
    provider: str = "ollama"
    model: str | None = None
    ollama_base_url: str = "http://localhost:11434/v1"
    system_prompt_file: str | None = None
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("allowed_root", mode="before")
    @classmethod
    def _disable_allowed_root(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() in _DISABLED_VALUES:
            return None
        return value

    @field_validator("provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        value = value.lower()
        if value not in ("ollama", "openai", "claude", "anthropic"):
            raise ValueError(f"unsupported provider '{value}'")
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Raises:
            ConfigurationError: if any variable fails validation.
        """
        env = os.environ if environ is None else environ
        values = {field: env[var] for var, field in ENV_FIELDS.items() if var in env}
        try:
            return cls(**values)
        except ValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ConfigurationError(
                f"Invalid configuration: {', '.join(fields)}", fields=fields
            ) from e


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None

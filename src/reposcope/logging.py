"""
RepoScope Structured Logging

Provides a configured logger for RepoScope using stdlib logging
with structured context. Output goes to stderr so the stdio JSON-RPC
transport keeps stdout to itself.

Usage:
    from reposcope.logging import get_logger

    logger = get_logger("reposcope.tools.router")
    logger.info("Tool executed", extra={"tool_name": "read_file", "duration_ms": 3.2})

For production, configure with JSON output:
    from reposcope.logging import configure_logging
    configure_logging(json_output=True, level="INFO")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

_STRUCTURED_KEYS = (
    "tool_name", "call_id", "status", "error_code", "duration_ms",
    "root", "path", "provider", "model", "iteration", "tool_rounds",
)


class RepoScopeFormatter(logging.Formatter):
    """Structured log formatter.

    Outputs either human-readable or JSON format depending on configuration.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _STRUCTURED_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self._json_output:
            return json.dumps(log_data, default=str)

        extra_keys = {k: v for k, v in log_data.items()
                      if k not in ("timestamp", "level", "logger", "message", "exception")}
        extra_str = ""
        if extra_keys:
            extra_str = " | " + " ".join(f"{k}={v}" for k, v in extra_keys.items())

        line = f"[{log_data['timestamp']}] {record.levelname:8s} {record.name}: {record.getMessage()}{extra_str}"
        if "exception" in log_data:
            line = f"{line}\n{log_data['exception']}"
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """Configure RepoScope logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output JSON format.
    """
    root_logger = logging.getLogger("reposcope")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(RepoScopeFormatter(json_output=json_output))
    root_logger.addHandler(handler)

    root_logger.propagate = False


def get_logger(name: str = "reposcope") -> logging.Logger:
    """Get a RepoScope logger instance.

    Args:
        name: Logger name (usually module path like "reposcope.tools").
    """
    return logging.getLogger(name)


# Auto-configure with sensible defaults on import
configure_logging()

"""
Structured logging for railyard.

Provides a single entry point for configuring structlog plus execution-aware
context that is attached to every log entry. Each service instance binds its
job number and current station, so interleaved log lines from concurrent
instances stay attributable.

Configuration is read from arguments or environment variables:
- RAILYARD_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: INFO)
- RAILYARD_LOG_FORMAT: json | console (default: console)

Design choice: contextvars
- asyncio-compatible (each task gets its own copy at spawn time)
- No need to pass context through every function
- Clean integration with structlog processors

Usage:
    from railyard.core.logging import configure_logging, get_logger, bind_context

    configure_logging(level="DEBUG")
    log = get_logger(__name__)

    bind_context(number=42, station="#geeks")
    log.info("service_arrived", delay=3)
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from typing import Any

import structlog
from structlog.types import Processor

# Track if logging has been configured
_configured = False


@dataclass
class LogContext:
    """
    Context attached to all log entries.

    number:  Job number of the running service instance
    station: Station the instance is currently at or travelling to
    actor:   Actor behind a command (register, deboard)
    command: Command being handled
    """

    number: int | None = None
    station: str | None = None
    actor: str | None = None
    command: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs: Any) -> LogContext:
        """Create new context with merged values."""
        current = asdict(self)
        current.update({k: v for k, v in kwargs.items() if v is not None})
        return LogContext(**current)


_log_context: ContextVar[LogContext] = ContextVar("railyard_log_context")  # noqa: B039


def get_context() -> LogContext:
    """Get the current log context."""
    return _log_context.get(LogContext())


def bind_context(**kwargs: Any) -> LogContext:
    """Merge values into the current context and return the result."""
    updated = get_context().merge(**kwargs)
    _log_context.set(updated)
    return updated


def clear_context() -> None:
    """Reset the current context to empty."""
    _log_context.set(LogContext())


def add_context_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that adds the current context to every entry."""
    for key, value in get_context().to_dict().items():
        if key not in event_dict:
            event_dict[key] = value
    return event_dict


def configure_logging(
    level: str | None = None,
    format: str | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Should be called once at startup (CLI entry). Subsequent calls are no-ops
    unless ``force=True``.

    Args:
        level: Log level (overrides RAILYARD_LOG_LEVEL)
        format: Output format, ``json`` or ``console`` (overrides RAILYARD_LOG_FORMAT)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("RAILYARD_LOG_LEVEL", "INFO")).upper()
    log_format = (format or os.environ.get("RAILYARD_LOG_FORMAT", "console")).lower()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_context_processor,
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )
    logging.getLogger("railyard").setLevel(getattr(logging, log_level, logging.INFO))

    _configured = True


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def get_logger(name: str | None = None) -> Any:
    """
    Get a structured logger.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


__all__ = [
    "LogContext",
    "add_context_processor",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_context",
    "get_logger",
    "is_configured",
]

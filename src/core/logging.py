"""Structured logging (structlog).

Configured once at startup by the CLI (or by the embedding application); library
modules only call `structlog.get_logger(__name__)` and log events with
key/value context, e.g. `logger.info("operation_completed", processed=3)`.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", *, json_format: bool | None = None) -> None:
    """Configure structlog output.

    - `json_format=None` picks JSON when stderr is not a TTY and a colored
      console renderer otherwise.
    - Log lines go to stderr so command output on stdout stays clean.
    """

    if json_format is None:
        json_format = not sys.stderr.isatty()

    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def bind_context(**values: object) -> None:
    """Bind values (e.g. `site=...`) to every log line of the current context."""

    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()

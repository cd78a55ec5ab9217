"""Structured logging configuration and progress sinks.

Two kinds of output leave the orchestrator:
- diagnostics (retries, tolerated errors) through structlog loggers
- progress messages through a LogSink, one line per message
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Any, Callable, Optional, TextIO

import structlog
from structlog.types import Processor

from testbed_orchestrator.ports.outbound import LogSink


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Set up structured logging with structlog.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Keep connection pool chatter out of the progress stream
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a bound logger instance.

    Args:
        name: Logger name (module name typically)
        **initial_context: Initial context to bind to the logger

    Returns:
        A bound structlog logger
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


class TimestampedStdoutSink:
    """Default progress sink: "2024-01-01 12:00:00.123 => message" on stdout."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._stream = stream
        self._now = now

    def log(self, message: str) -> None:
        stamp = self._now()
        text = stamp.strftime("%Y-%m-%d %H:%M:%S") + f".{stamp.microsecond // 1000:03d}"
        # Resolved per call so redirected stdout is honoured
        print(f"{text} => {message}", file=self._stream or sys.stdout, flush=True)


class StructlogSink:
    """Progress sink forwarding each message to a structlog logger."""

    def __init__(self, logger: Optional[structlog.BoundLogger] = None) -> None:
        self._logger = logger or get_logger("testbed_orchestrator.progress")

    def log(self, message: str) -> None:
        self._logger.info(message)


def create_log_sink(kind: str = "stdout") -> LogSink:
    """Create the progress sink named in configuration."""
    if kind == "structlog":
        return StructlogSink()
    if kind == "stdout":
        return TimestampedStdoutSink()
    raise ValueError(f"Unknown progress sink: {kind}")

"""Structured logging configuration for box-view-client.

Uses structlog with three output formats:
- ``console``: colorized, human-friendly (default on a TTY)
- ``logfmt``: machine-parseable key=value lines (default otherwise)
- ``json``: one JSON object per line

Every logical API operation gets an operation ID so the several HTTP
attempts of a polled request can be correlated in the logs.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog
from structlog.contextvars import (
    bound_contextvars,
    get_contextvars,
    merge_contextvars,
)
from structlog.processors import TimeStamper, add_log_level


if TYPE_CHECKING:
    from collections.abc import Iterator

    from structlog.typing import Processor

__all__ = [
    "LogFormat",
    "LogLevel",
    "configure_logging",
    "generate_operation_id",
    "get_logger",
    "get_operation_id",
    "operation_context",
]


class LogLevel(StrEnum):
    """Supported log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_stdlib_level(self) -> int:
        """Convert to stdlib logging level.

        Returns:
            The corresponding logging module level constant.
        """
        level: int = getattr(logging, self.name)
        return level


class LogFormat(StrEnum):
    """Log output formats."""

    CONSOLE = "console"
    LOGFMT = "logfmt"
    JSON = "json"


def generate_operation_id() -> str:
    """Generate a new operation ID (first 8 hex characters of a UUID4)."""
    return uuid.uuid4().hex[:8]


def get_operation_id() -> str | None:
    """Get the ID of the operation running in this context, if any."""
    operation_id = get_contextvars().get("operation_id")
    return operation_id if isinstance(operation_id, str) else None


@contextmanager
def operation_context(operation_id: str | None = None) -> Iterator[str]:
    """Bind an operation ID to every log line emitted inside the block.

    The previous ID, if any, is restored on exit, so operations started
    from another operation's callback nest correctly.

    Args:
        operation_id: ID to bind. If None, a new one is generated.

    Yields:
        The bound operation ID.

    Example:
        >>> with operation_context() as operation_id:
        ...     get_logger(__name__).info("upload_started")
    """
    if operation_id is None:
        operation_id = generate_operation_id()

    with bound_contextvars(operation_id=operation_id):
        yield operation_id


def _create_renderer(log_format: LogFormat) -> Processor:
    if log_format is LogFormat.CONSOLE:
        return structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    if log_format is LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    return structlog.processors.LogfmtRenderer(
        key_order=["timestamp", "level", "event", "operation_id"],
        drop_missing=True,
        bool_as_flag=False,  # Use explicit true/false for machines
    )


def _detect_format() -> LogFormat:
    is_tty = (
        sys.stderr is not None
        and hasattr(sys.stderr, "isatty")
        and sys.stderr.isatty()
    )
    return LogFormat.CONSOLE if is_tty else LogFormat.LOGFMT


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    *,
    log_format: LogFormat | str | None = None,
) -> None:
    """Configure structured logging.

    Call once at startup (the CLI does this); library code only obtains
    loggers and never configures them.

    Args:
        level: Minimum log level, as a LogLevel or its string value
            (case-insensitive).
        log_format: Output format. If None, ``console`` on a TTY and
            ``logfmt`` otherwise.

    Example:
        >>> from box_view.observability import configure_logging, LogLevel
        >>> configure_logging(level=LogLevel.DEBUG, log_format="json")
    """
    if isinstance(level, str):
        level = LogLevel(level.lower())

    if log_format is None:
        log_format = _detect_format()
    elif isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    processors: list[Processor] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if log_format is LogFormat.JSON:
        processors.append(structlog.processors.format_exc_info)
    processors.append(_create_renderer(log_format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level.to_stdlib_level()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # httpx logs through stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level.to_stdlib_level(),
        force=True,
    )


def get_logger(
    name: str | None = None,
    **initial_context: object,
) -> structlog.BoundLogger:
    """Get a structured logger, optionally with bound context.

    Example:
        >>> logger = get_logger(__name__, command="upload")
        >>> logger.info("upload_started", name="report.pdf")
    """
    log: structlog.BoundLogger = structlog.get_logger(name)
    if initial_context:
        log = log.bind(**initial_context)
    return log

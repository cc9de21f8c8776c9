"""Observability module (structured logging)."""

from __future__ import annotations

from box_view.observability.logging import (
    LogFormat,
    LogLevel,
    configure_logging,
    generate_operation_id,
    get_logger,
    get_operation_id,
    operation_context,
)


__all__ = [
    "LogFormat",
    "LogLevel",
    "configure_logging",
    "generate_operation_id",
    "get_logger",
    "get_operation_id",
    "operation_context",
]

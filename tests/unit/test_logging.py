"""Unit tests for the logging module."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from box_view.observability import (
    LogFormat,
    LogLevel,
    configure_logging,
    generate_operation_id,
    get_logger,
    get_operation_id,
    operation_context,
)


# ---------------------------------------------------------------------------
# TestLogLevel
# ---------------------------------------------------------------------------


class TestLogLevel:
    """Tests for LogLevel enum."""

    def test_log_level_values(self) -> None:
        """Test LogLevel enum values."""
        assert LogLevel.DEBUG == "debug"
        assert LogLevel.INFO == "info"
        assert LogLevel.WARNING == "warning"
        assert LogLevel.ERROR == "error"
        assert LogLevel.CRITICAL == "critical"

    @pytest.mark.parametrize(
        ("level", "expected"),
        [
            (LogLevel.DEBUG, logging.DEBUG),
            (LogLevel.INFO, logging.INFO),
            (LogLevel.WARNING, logging.WARNING),
            (LogLevel.ERROR, logging.ERROR),
            (LogLevel.CRITICAL, logging.CRITICAL),
        ],
    )
    def test_to_stdlib_level(self, level: LogLevel, expected: int) -> None:
        """Test conversion to stdlib levels."""
        assert level.to_stdlib_level() == expected

    def test_log_format_values(self) -> None:
        """Test LogFormat enum values."""
        assert LogFormat.CONSOLE == "console"
        assert LogFormat.LOGFMT == "logfmt"
        assert LogFormat.JSON == "json"


# ---------------------------------------------------------------------------
# TestOperationId
# ---------------------------------------------------------------------------


class TestOperationId:
    """Tests for operation ID management."""

    def test_generate_operation_id(self) -> None:
        """Test operation IDs are 8 hex characters."""
        operation_id = generate_operation_id()
        assert len(operation_id) == 8
        int(operation_id, 16)

    def test_generate_operation_id_unique(self) -> None:
        """Test each generated operation ID is unique."""
        ids = {generate_operation_id() for _ in range(100)}
        assert len(ids) == 100

    def test_get_operation_id_default(self) -> None:
        """Test get_operation_id returns None outside an operation."""
        assert get_operation_id() is None

    def test_operation_context_binds_id(self) -> None:
        """Test the given ID is bound inside the block and gone after."""
        with operation_context("op-123") as operation_id:
            assert operation_id == "op-123"
            assert get_operation_id() == "op-123"
        assert get_operation_id() is None

    def test_operation_context_generates_when_none(self) -> None:
        """Test an ID is generated when none is given."""
        with operation_context() as operation_id:
            assert len(operation_id) == 8
            assert get_operation_id() == operation_id

    def test_nested_operation_context_restores_outer(self) -> None:
        """Test leaving a nested operation restores the outer ID."""
        with operation_context("outer"):
            with operation_context("inner"):
                assert get_operation_id() == "inner"
            assert get_operation_id() == "outer"


# ---------------------------------------------------------------------------
# TestConfigureLogging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for configure_logging and get_logger output."""

    def test_configure_with_uppercase_string(self) -> None:
        """Test string levels are case-insensitive."""
        configure_logging(level="DEBUG", log_format="logfmt")

    def test_configure_invalid_level_raises(self) -> None:
        """Test invalid log level raises ValueError."""
        with pytest.raises(ValueError, match="'invalid' is not a valid LogLevel"):
            configure_logging(level="invalid")

    def test_configure_invalid_format_raises(self) -> None:
        """Test invalid log format raises ValueError."""
        with pytest.raises(ValueError, match="'xml' is not a valid LogFormat"):
            configure_logging(log_format="xml")

    def test_logfmt_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        """Test logfmt lines carry level, event, and timestamp."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.LOGFMT)
        get_logger(__name__).info("test_event", attempt=2)

        err = capfd.readouterr().err
        assert "event=test_event" in err
        assert "level=info" in err
        assert "attempt=2" in err
        assert "timestamp=" in err

    def test_json_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        """Test JSON output is one object per line."""
        configure_logging(level=LogLevel.DEBUG, log_format="json")
        get_logger(__name__, command="upload").warning("test_event")

        line = capfd.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "test_event"
        assert record["level"] == "warning"
        assert record["command"] == "upload"
        assert record["timestamp"].endswith("Z")

    def test_operation_id_in_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        """Test the context operation ID is added to every line."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.JSON)
        with operation_context("op-abc123"):
            get_logger(__name__).info("test_event")

        record = json.loads(capfd.readouterr().err.strip().splitlines()[-1])
        assert record["operation_id"] == "op-abc123"

    def test_level_filtering(self, capfd: pytest.CaptureFixture[str]) -> None:
        """Test messages below the configured level are dropped."""
        configure_logging(level=LogLevel.WARNING, log_format=LogFormat.LOGFMT)
        logger = get_logger(__name__)
        logger.info("hidden_event")
        logger.warning("shown_event")

        err = capfd.readouterr().err
        assert "hidden_event" not in err
        assert "shown_event" in err

    def test_get_logger_returns_logger(self) -> None:
        """Test get_logger without a name."""
        structlog.reset_defaults()
        assert get_logger() is not None

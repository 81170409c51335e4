"""Tests for logging module."""

from __future__ import annotations

import json
import logging
import sys
from io import StringIO

import pytest

from relay_sidecar.logging import (
    ContextAdapter,
    DiagnosticFilter,
    JSONFormatter,
    SidecarLogger,
    StructuredFormatter,
    get_logger,
    setup_logging,
)


def make_record(
    name: str = "relay_sidecar.test",
    level: int = logging.INFO,
    msg: str = "Test message",
) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_basic_format(self) -> None:
        result = StructuredFormatter().format(make_record())

        assert "INFO" in result
        assert "test" in result  # component extracted from logger name
        assert "Test message" in result

    def test_format_with_context(self) -> None:
        record = make_record(name="relay_sidecar.driver", msg="Health cycle recorded")
        record.probe_id = "6f1c"
        record.outcome = "success"

        result = StructuredFormatter().format(record)

        assert "probe_id=6f1c" in result
        assert "outcome=success" in result
        assert "Health cycle recorded" in result

    def test_format_extracts_component_from_name(self) -> None:
        result = StructuredFormatter().format(
            make_record(name="relay_sidecar.interceptor", level=logging.WARNING)
        )

        assert "[interceptor" in result

    def test_format_handles_simple_name(self) -> None:
        result = StructuredFormatter().format(make_record(name="mylogger", level=logging.ERROR))

        assert "[mylogger" in result

    def test_format_includes_exception(self) -> None:
        try:
            raise ValueError("bad value")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        result = StructuredFormatter().format(record)

        assert "ValueError: bad value" in result


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_format(self) -> None:
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["component"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data

    def test_format_with_context(self) -> None:
        record = make_record(name="relay_sidecar.probe")
        record.probe_id = "6f1c"
        record.latency_ms = 12.5

        data = json.loads(JSONFormatter().format(record))

        assert data["probe_id"] == "6f1c"
        assert data["latency_ms"] == 12.5
        assert "outcome" not in data


class TestDiagnosticFilter:
    """Tests for DiagnosticFilter."""

    def test_untagged_debug_passes(self) -> None:
        assert DiagnosticFilter().filter(make_record(level=logging.DEBUG)) is True

    def test_tagged_debug_blocked_unless_enabled(self) -> None:
        record = make_record(level=logging.DEBUG)
        record.diagnostic_tag = "forward"

        assert DiagnosticFilter().filter(record) is False
        assert DiagnosticFilter(frozenset({"forward"})).filter(record) is True
        assert DiagnosticFilter(frozenset({"intercept"})).filter(record) is False

    def test_tagged_info_always_passes(self) -> None:
        record = make_record(level=logging.INFO)
        record.diagnostic_tag = "forward"

        assert DiagnosticFilter().filter(record) is True

    def test_wildcard_enables_all(self) -> None:
        record = make_record(level=logging.DEBUG)
        record.diagnostic_tag = "anything"

        assert DiagnosticFilter.from_config_string("*").filter(record) is True

    @pytest.mark.parametrize(
        ("tags_csv", "expected"),
        [
            ("", frozenset()),
            ("   ", frozenset()),
            ("intercept", frozenset({"intercept"})),
            (" intercept , forward ,", frozenset({"intercept", "forward"})),
        ],
    )
    def test_from_config_string(self, tags_csv: str, expected: frozenset[str]) -> None:
        assert DiagnosticFilter.from_config_string(tags_csv).enabled_tags == expected


class TestContextAdapter:
    """Tests for ContextAdapter."""

    def test_adds_context_to_logs(self) -> None:
        adapter = ContextAdapter(logging.getLogger("test"), {"probe_id": "6f1c"})
        _, kwargs = adapter.process("msg", {})
        assert kwargs["extra"]["probe_id"] == "6f1c"

    def test_merges_with_existing_extra(self) -> None:
        adapter = ContextAdapter(logging.getLogger("test"), {"probe_id": "6f1c"})
        _, kwargs = adapter.process("msg", {"extra": {"outcome": "failure"}})
        assert kwargs["extra"] == {"outcome": "failure", "probe_id": "6f1c"}


class TestSidecarLogger:
    """Tests for SidecarLogger."""

    def test_with_context_returns_adapter(self) -> None:
        logger = get_logger("relay_sidecar.test.context")
        adapter = logger.with_context(probe_id="6f1c")
        assert isinstance(adapter, ContextAdapter)
        assert adapter.extra == {"probe_id": "6f1c"}

    def test_get_logger_returns_sidecar_logger(self) -> None:
        logger = get_logger("relay_sidecar.test.class")
        assert isinstance(logger, SidecarLogger)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_sets_log_level(self) -> None:
        setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("relay_sidecar").level == logging.DEBUG

    def test_json_format_adds_json_formatter(self) -> None:
        setup_logging(level="INFO", json_format=True)

        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_structured_format_by_default(self) -> None:
        setup_logging(level="INFO")

        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_handles_invalid_level_gracefully(self) -> None:
        setup_logging(level="INVALID")

        assert logging.getLogger().level == logging.INFO

    def test_replace_handlers_true_removes_existing(self) -> None:
        root = logging.getLogger()
        existing_handler = logging.StreamHandler(StringIO())
        root.addHandler(existing_handler)

        setup_logging(level="INFO")

        assert existing_handler not in root.handlers
        assert len(root.handlers) == 1

    def test_replace_handlers_false_preserves_existing(self) -> None:
        root = logging.getLogger()
        setup_logging(level="INFO")
        existing_handler = logging.StreamHandler(StringIO())
        root.addHandler(existing_handler)

        setup_logging(level="INFO", replace_handlers=False)

        assert existing_handler in root.handlers
        assert len(root.handlers) == 3

    def test_diagnostic_filter_installed(self) -> None:
        setup_logging(level="DEBUG", diagnostic_tags="forward")

        filters = logging.getLogger().handlers[0].filters
        assert any(
            isinstance(f, DiagnosticFilter) and f.enabled_tags == frozenset({"forward"})
            for f in filters
        )

    def test_quiets_uvicorn_access_log(self) -> None:
        setup_logging(level="DEBUG")

        assert logging.getLogger("uvicorn.access").level == logging.WARNING

"""Tests for the structured logging system (hr_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from hr_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Start each test unconfigured; restore the suite configuration after."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "hr_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("previewed", extra={"line_count": 42, "error_count": 0})

        record = _parse_log(stream)
        assert record["line_count"] == 42
        assert record["error_count"] == 0

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", month_year="2025-03")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["month_year"] == "2025-03"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        from hr_kernel.exceptions import DuplicateConfirmationError

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise DuplicateConfirmationError(["EMP-1"], "2025-03")
        except DuplicateConfirmationError:
            get_logger("test").error("confirm_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "ALREADY_GENERATED"
        assert record["exc_type"] == "DuplicateConfirmationError"
        assert record["exc_employee_ids"] == ["EMP-1"]
        assert record["exc_month_year"] == "2025-03"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "run_id" not in record

    def test_uuid_and_decimal_serialized(self):
        from decimal import Decimal

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_values", extra={"run": uid, "net": Decimal("10.50")})

        record = _parse_log(stream)
        assert record["run"] == str(uid)
        assert record["net"] == "10.50"

    def test_default_level_drops_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", employee_id="EMP-1")
        assert LogContext.get_all() == {"correlation_id": "x", "employee_id": "EMP-1"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        assert "run_id" not in LogContext.get_all()
        with LogContext.bind(run_id="temp"):
            assert LogContext.get_all()["run_id"] == "temp"
        assert "run_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(producer="batch"):
            assert LogContext.get_all() == {}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            run_id="r",
            employee_id="e",
            month_year="2025-03",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["actor_id"] == "a"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert logging.getLogger("hr_kernel").handlers == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("modules.payroll.service").name == "hr_kernel.modules.payroll.service"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "hr_kernel.deep.nested.module"

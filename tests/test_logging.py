"""Tests for recon_kernel.logging_config: JSON output, context and setup."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from recon_kernel.exceptions import PostingConflictError
from recon_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from recon_modules.cycle_count.models import SessionStatus


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def emitted():
    """
    Configure logging into a buffer; calling the fixture value returns the
    records written so far as dicts.
    """
    buffer = StringIO()
    configure_logging(stream=buffer)

    def _records() -> list[dict]:
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    return _records


log = get_logger("tests.logging")


class TestJsonRecords:

    def test_envelope(self, emitted):
        log.info("session_opened")

        (record,) = emitted()
        assert record["message"] == "session_opened"
        assert record["level"] == "INFO"
        assert record["logger"] == "recon_kernel.tests.logging"
        assert record["ts"].endswith("+00:00")

    def test_extra_payload(self, emitted):
        log.info("count_recorded", extra={"line": 3, "status": "counting"})

        (record,) = emitted()
        assert (record["line"], record["status"]) == (3, "counting")

    def test_domain_values(self, emitted):
        material_id = uuid4()
        log.info(
            "typed_values",
            extra={
                "material_id": material_id,
                "delta": Decimal("-2.500"),
                "status": SessionStatus.REVIEW,
                "tags": {"b", "a"},
            },
        )

        (record,) = emitted()
        assert record["material_id"] == str(material_id)
        assert record["delta"] == "-2.500"
        assert record["status"] == "review"
        assert record["tags"] == ["a", "b"]

    def test_below_level_is_dropped(self, emitted):
        log.debug("noise")
        log.warning("signal")

        assert [r["message"] for r in emitted()] == ["signal"]

    def test_plain_exception(self, emitted):
        try:
            raise ValueError("bad input")
        except ValueError:
            log.error("load_failed", exc_info=True)

        (record,) = emitted()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "bad input"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_kernel_exception_attributes(self, emitted):
        try:
            raise PostingConflictError("mat-1", 3)
        except PostingConflictError:
            log.error("posting_failed", exc_info=True)

        (record,) = emitted()
        assert record["exc_code"] == "POSTING_CONFLICT"
        assert record["exc_material_id"] == "mat-1"
        assert record["exc_attempts"] == 3


class TestContextFields:

    def test_bound_fields_appear(self, emitted):
        with LogContext.bind(session_id="s-1", actor="jo"):
            log.info("inside")
        log.info("outside")

        inside, outside = emitted()
        assert (inside["session_id"], inside["actor"]) == ("s-1", "jo")
        assert "session_id" not in outside

    def test_context_beats_extra(self, emitted):
        with LogContext.bind(session_id="from-context"):
            log.info("dup", extra={"session_id": "from-extra"})

        assert emitted()[0]["session_id"] == "from-context"

    def test_nested_bind_restores(self):
        LogContext.set(actor="outer")
        with LogContext.bind(actor="inner", material_id="m-1"):
            assert LogContext.get_all() == {"actor": "inner", "material_id": "m-1"}
        assert LogContext.get_all() == {"actor": "outer"}

    def test_values_stringified_none_skipped(self):
        session_id = uuid4()
        with LogContext.bind(session_id=session_id, actor=None):
            assert LogContext.get_all() == {"session_id": str(session_id)}

    def test_set_accumulates_and_clear_empties(self):
        LogContext.set(correlation_id="c")
        LogContext.set(trace_id="t")
        assert LogContext.get_all() == {"correlation_id": "c", "trace_id": "t"}

        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="event_id"):
            LogContext.set(event_id="x")


class TestSetup:

    def test_first_configuration_wins(self):
        first, second = logging.StreamHandler(StringIO()), logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=second)

        assert logging.getLogger("recon_kernel").handlers == [first]
        assert isinstance(first.formatter, StructuredFormatter)

    def test_reset_allows_reconfiguration(self):
        configure_logging(stream=StringIO())
        reset_logging()
        assert logging.getLogger("recon_kernel").handlers == []

        configure_logging(stream=StringIO(), level=logging.DEBUG)
        assert logging.getLogger("recon_kernel").level == logging.DEBUG

    def test_child_logger_names(self):
        assert get_logger("modules.cycle_count.posting").name == (
            "recon_kernel.modules.cycle_count.posting"
        )

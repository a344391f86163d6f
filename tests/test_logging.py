"""
Structured logging: JSON output, request-scoped context and one-time setup.
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from warehouse_kernel.exceptions import InvalidStateTransitionError, ItemNotFoundError
from warehouse_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from warehouse_kernel.models.inventory_item import ItemStatus


@pytest.fixture
def json_log():
    """
    Route warehouse_kernel logging into a buffer.

    Yields a callable returning every emitted line parsed as JSON.
    """
    reset_logging()
    LogContext.clear()
    buffer = StringIO()
    configure_logging(stream=buffer, level=logging.DEBUG)

    def lines() -> list[dict]:
        return [json.loads(raw) for raw in buffer.getvalue().splitlines() if raw]

    yield lines

    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


class TestRecordShape:
    def test_envelope(self, json_log):
        get_logger("services.lots").info("lot_split")

        (record,) = json_log()
        assert record["message"] == "lot_split"
        assert record["level"] == "INFO"
        assert record["logger"] == "warehouse_kernel.services.lots"
        assert record["ts"].endswith("+00:00")

    def test_extra_becomes_top_level(self, json_log):
        get_logger("t").info("item_issued", extra={"quantity": 12, "technician": "t-1"})

        (record,) = json_log()
        assert record["quantity"] == 12
        assert record["technician"] == "t-1"

    def test_domain_values_rendered_as_strings(self, json_log):
        item_id = uuid4()
        get_logger("t").info(
            "valued",
            extra={"item": item_id, "status": ItemStatus.ASSIGNED, "total": Decimal("33.00")},
        )

        (record,) = json_log()
        assert record["item"] == str(item_id)
        assert record["status"] == "ASSIGNED"
        assert record["total"] == "33.00"

    def test_one_json_object_per_line(self, json_log):
        log = get_logger("t")
        log.debug("a")
        log.info("b", extra={"k": "v"})
        log.warning("c")

        assert [r["message"] for r in json_log()] == ["a", "b", "c"]


class TestExceptionFields:
    def test_plain_exception(self, json_log):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("t").error("failed", exc_info=True)

        (record,) = json_log()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_kernel_error_context_unpacked(self, json_log):
        try:
            raise InvalidStateTransitionError("item-1", "ASSIGNED", "issue")
        except InvalidStateTransitionError:
            get_logger("t").error("transition_refused", exc_info=True)

        (record,) = json_log()
        assert record["exc_code"] == "INVALID_STATE_TRANSITION"
        assert record["exc_current_status"] == "ASSIGNED"
        assert record["exc_operation"] == "issue"

    def test_not_found_code(self, json_log):
        try:
            raise ItemNotFoundError("missing")
        except ItemNotFoundError:
            get_logger("t").warning("lookup_failed", exc_info=True)

        (record,) = json_log()
        assert record["exc_code"] == "ITEM_NOT_FOUND"
        assert record["exc_item_ref"] == "missing"


class TestLogContext:
    def test_fields_reach_records(self, json_log):
        LogContext.set(correlation_id="req-7", tenant="vectra")
        get_logger("t").info("scoped")

        (record,) = json_log()
        assert record["correlation_id"] == "req-7"
        assert record["tenant"] == "vectra"
        assert "item_id" not in record

    def test_set_skips_none_and_unknown(self):
        LogContext.clear()
        LogContext.set(item_id="i-1", actor_id=None, producer="x")
        assert LogContext.get_all() == {"item_id": "i-1"}
        LogContext.clear()

    def test_values_stored_as_strings(self):
        LogContext.clear()
        actor = uuid4()
        LogContext.set(actor_id=actor)
        assert LogContext.get_all() == {"actor_id": str(actor)}
        LogContext.clear()

    def test_bind_restores_previous_values(self):
        LogContext.clear()
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", trace_id="tr"):
            assert LogContext.get_all() == {"correlation_id": "inner", "trace_id": "tr"}
        assert LogContext.get_all() == {"correlation_id": "outer"}
        LogContext.clear()

    def test_bind_restores_on_error(self):
        LogContext.clear()
        with pytest.raises(RuntimeError):
            with LogContext.bind(tenant="vectra"):
                raise RuntimeError("inside")
        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(correlation_id="c", actor_id="a", tenant="t", item_id="i", trace_id="tr")
        assert len(LogContext.get_all()) == 5
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestSetup:
    def test_second_configure_is_ignored(self, json_log):
        extra_handler = logging.StreamHandler(StringIO())
        configure_logging(handler=extra_handler)

        handlers = logging.getLogger("warehouse_kernel").handlers
        assert extra_handler not in handlers
        # Test runners may attach their own capture handlers; count only ours.
        structured = [h for h in handlers if isinstance(h.formatter, StructuredFormatter)]
        assert len(structured) == 1

    def test_custom_handler_gets_structured_formatter(self):
        reset_logging()
        handler = logging.StreamHandler(StringIO())
        try:
            configure_logging(handler=handler)
            assert isinstance(handler.formatter, StructuredFormatter)
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG)

    def test_records_do_not_propagate_to_root(self, json_log):
        assert logging.getLogger("warehouse_kernel").propagate is False

    def test_level_filters(self):
        reset_logging()
        buffer = StringIO()
        try:
            configure_logging(stream=buffer, level=logging.WARNING)
            get_logger("t").info("dropped")
            get_logger("t").warning("kept")
            messages = [json.loads(x)["message"] for x in buffer.getvalue().splitlines()]
            assert messages == ["kept"]
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG)

"""Tests for the structured JSON log format and LogContext propagation."""

import json
import logging
import sys
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from waybill_kernel.exceptions import OperationAlreadyRunningError
from waybill_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record: logging.LogRecord) -> dict:
    return json.loads(StructuredFormatter().format(record))


def _record(msg="event_name", extra=None, exc_info=None) -> logging.LogRecord:
    record = logging.LogRecord(
        "waybill_kernel.test", logging.INFO, __file__, 1, msg, (), exc_info,
    )
    for key, value in (extra or {}).items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_base_fields(self):
        payload = _format(_record())
        assert payload["message"] == "event_name"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "waybill_kernel.test"
        assert "ts" in payload

    def test_extra_values_are_serialized(self):
        job_id = uuid4()
        payload = _format(_record(extra={
            "job_id": job_id,
            "amount": Decimal("1.50"),
            "day": date(2024, 1, 2),
            "token": b"\x01\x02",
        }))
        assert payload["job_id"] == str(job_id)
        assert payload["amount"] == "1.50"
        assert payload["day"] == "2024-01-02"
        assert payload["token"] == "0102"

    def test_context_fields_are_included(self):
        with LogContext.bind(tenant_id="t1", correlation_id="c1"):
            payload = _format(_record())
        assert payload["tenant_id"] == "t1"
        assert payload["correlation_id"] == "c1"
        assert "tenant_id" not in _format(_record())

    def test_kernel_error_fields_are_flattened(self):
        try:
            raise OperationAlreadyRunningError("t1", "MONTHLY_REPORT")
        except OperationAlreadyRunningError:
            exc_info = sys.exc_info()
        payload = _format(_record(exc_info=exc_info))
        assert payload["exc_type"] == "OperationAlreadyRunningError"
        assert payload["exc_code"] == "OPERATION_ALREADY_RUNNING"
        assert payload["exc_lock_name"] == "MONTHLY_REPORT"
        assert "traceback" in payload


class TestLogContext:
    def test_bind_restores_previous_values(self):
        LogContext.set(tenant_id="outer")
        with LogContext.bind(tenant_id="inner", job_id="j1"):
            assert LogContext.get_all() == {"tenant_id": "inner", "job_id": "j1"}
        assert LogContext.get_all() == {"tenant_id": "outer"}

    def test_unknown_field_is_rejected(self):
        with pytest.raises(ValueError):
            with LogContext.bind(actor="someone"):
                pass

    def test_logger_namespace(self):
        assert get_logger("services.gateway").name == "waybill_kernel.services.gateway"

    def test_captured_logs_carry_context(self, captured_logs):
        with LogContext.bind(tenant_id="t9"):
            get_logger("test").info("something_happened", extra={"count": 3})
        (record,) = [r for r in captured_logs() if r["message"] == "something_happened"]
        assert record["tenant_id"] == "t9"
        assert record["count"] == 3

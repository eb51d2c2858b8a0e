"""
Structured logging as the kernel uses it.

Engine operations carry their tenant, actor, operation name, correlation id
and attempt number on every record; kernel values are encoded to plain JSON;
kernel errors logged with exc_info export their code, category and fields.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.domain.dtos import StockLevel
from stock_kernel.domain.types import AllocationType, Classification
from stock_kernel.exceptions import LotNotFoundError, MissingAuthorizationError
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


def _format(message, exc_info=None, **extra):
    record = logging.LogRecord("stock_kernel.test", logging.INFO, __file__, 1, message, (), exc_info)
    record.__dict__.update(extra)
    return json.loads(StructuredFormatter().format(record))


def _raised(exc):
    try:
        raise exc
    except Exception as caught:
        return (type(caught), caught, caught.__traceback__)


class TestOperationContext:

    def test_engine_operation_fields_on_service_records(self, stock_engine, receive, captured_logs, tenant_id, actor_id, product_id):
        receive(product_id, 10)

        stock_engine.allocate(
            tenant_id=tenant_id,
            product_id=product_id,
            quantity=4,
            allocation_type=AllocationType.RESERVATION,
            actor_id=actor_id,
        )

        completed = [r for r in captured_logs() if r["message"] == "allocation_completed"][0]
        assert completed["logger"] == "stock_kernel.services.allocation"
        assert completed["tenant_id"] == tenant_id
        assert completed["actor_id"] == actor_id
        assert completed["operation"] == "allocate"
        assert completed["attempt"] == 1
        assert completed["quantity"] == 4

    def test_each_operation_gets_its_own_correlation_id(self, stock_engine, captured_logs, tenant_id, product_id):
        stock_engine.receive_lot(tenant_id=tenant_id, product_id=product_id, quantity=5)
        stock_engine.receive_lot(tenant_id=tenant_id, product_id=product_id, quantity=5)

        created = [r for r in captured_logs() if r["message"] == "lot_received"]
        assert len(created) == 2
        assert created[0]["correlation_id"] != created[1]["correlation_id"]
        assert all(r["operation"] == "receive_lot" for r in created)

    def test_context_released_after_operation(self, stock_engine, tenant_id, product_id):
        stock_engine.receive_lot(tenant_id=tenant_id, product_id=product_id, quantity=5)
        assert LogContext.get_all() == {}

    def test_context_released_when_operation_fails(self, stock_engine, tenant_id):
        with pytest.raises(LotNotFoundError):
            stock_engine.classify(tenant_id=tenant_id, lot_id=uuid4())
        assert LogContext.get_all() == {}

    def test_nested_scope_restores_outer(self):
        with LogContext.operation("adjust", "tenant-main", "user-42"):
            outer = LogContext.get_all()
            with LogContext.operation("allocate", "tenant-main"):
                inner = LogContext.get_all()
            assert LogContext.get_all() == outer

        assert inner["operation"] == "allocate"
        assert inner["actor_id"] == "user-42"
        assert inner["correlation_id"] != outer["correlation_id"]

    def test_unknown_context_field_rejected(self):
        with pytest.raises(TypeError, match="warehouse"):
            with LogContext.bind(warehouse="north"):
                pass


class TestValueEncoding:

    def test_kernel_values(self):
        lot_id = uuid4()
        record = _format(
            "lot_expiration_date_updated",
            lot_id=lot_id,
            expiration_date=date(2026, 3, 1),
            classification=Classification.CRITICAL,
            ratio=Decimal("0.5"),
        )

        assert record["lot_id"] == str(lot_id)
        assert record["expiration_date"] == "2026-03-01"
        assert record["classification"] == "critical"
        assert record["ratio"] == "0.5"

    def test_location_set_with_unassigned_last(self):
        location = uuid4()
        record = _format("thresholds_evaluated", locations={None, location})
        assert record["locations"] == [str(location), None]

    def test_frozen_view_fields(self):
        product_id = uuid4()
        level = StockLevel(
            product_id=product_id, location_id=None, quantity=12, allocated_quantity=4, lot_count=1
        )

        record = _format("stock_level_read", stock_level=level)

        assert record["stock_level"] == {
            "product_id": str(product_id),
            "location_id": None,
            "quantity": 12,
            "allocated_quantity": 4,
            "lot_count": 1,
        }


class TestExceptionExport:

    def test_kernel_error_fields(self):
        record = _format("adjustment_rejected", exc_info=_raised(MissingAuthorizationError(120, 100)))

        assert record["exc_type"] == "MissingAuthorizationError"
        assert record["exc_code"] == "MISSING_AUTHORIZATION"
        assert record["exc_category"] == "business_rule"
        assert record["exc_quantity"] == 120
        assert record["exc_threshold"] == 100
        assert "traceback" in record

    def test_foreign_error_has_no_kernel_fields(self):
        record = _format("event_publication_failed", exc_info=_raised(ConnectionError("broker down")))

        assert record["exc_type"] == "ConnectionError"
        assert record["exc_message"] == "broker down"
        assert "exc_code" not in record
        assert "exc_category" not in record

    def test_sweep_failure_exports_lot_error(self, stock_engine, receive, captured_logs, monkeypatch, tenant_id, product_id):
        lot = receive(product_id, 10, date(2026, 2, 1))

        def classify(*, tenant_id, lot_id):
            raise LotNotFoundError(str(lot_id))

        monkeypatch.setattr(stock_engine, "classify", classify)
        stock_engine.run_classification_sweep(tenant_id=tenant_id)

        failure = [r for r in captured_logs() if r["message"] == "classification_sweep_lot_failed"][0]
        assert failure["level"] == "ERROR"
        assert failure["exc_code"] == "LOT_NOT_FOUND"
        assert failure["exc_category"] == "not_found"
        assert failure["exc_lot_id"] == str(lot.id)


class TestConfigureLogging:

    @pytest.fixture(autouse=True)
    def _fresh_logging(self):
        reset_logging()
        yield
        reset_logging()
        configure_logging(level=logging.DEBUG, stream=StringIO())

    def test_level_by_name_and_first_call_wins(self):
        first, second = StringIO(), StringIO()
        configure_logging(level="warning", stream=first)
        configure_logging(level=logging.DEBUG, stream=second)

        get_logger("services.allocation").info("allocation_completed")
        get_logger("services.allocation").warning("allocation_insufficient_stock")

        lines = first.getvalue().strip().split("\n")
        assert [json.loads(line)["message"] for line in lines] == ["allocation_insufficient_stock"]
        assert second.getvalue() == ""

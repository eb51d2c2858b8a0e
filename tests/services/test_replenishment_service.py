"""
Restock request generation, deduplication and lifecycle.
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from stock_kernel.domain.types import RestockPriority, RestockStatus
from stock_kernel.exceptions import (
    DuplicateRestockRequestError,
    InvalidRestockTransitionError,
    RestockRequestNotFoundError,
    StockValidationError,
)
from stock_kernel.services.replenishment_service import ReplenishmentService


def _trigger(stock_engine, tenant_id, product_id, current=10, minimum=50, maximum=None, location_id=None):
    return stock_engine.trigger_replenishment(
        tenant_id=tenant_id,
        product_id=product_id,
        current_quantity=current,
        minimum_quantity=minimum,
        maximum_quantity=maximum,
        location_id=location_id,
    )


class TestTrigger:

    def test_low_stock_is_high_priority(self, stock_engine, sink, tenant_id, product_id):
        result = _trigger(stock_engine, tenant_id, product_id, current=10, minimum=50)

        assert result.request.priority == RestockPriority.HIGH
        assert result.request.status == RestockStatus.PENDING
        assert result.request.requested_quantity == 90
        assert sink.event_types == ["restock_request_generated"]
        event = sink.events[0]
        assert event.aggregate_id == result.request.id
        assert event.requested_quantity == 90

    def test_requested_quantity_targets_maximum(self, stock_engine, tenant_id, product_id):
        result = _trigger(stock_engine, tenant_id, product_id, current=45, minimum=50, maximum=300)

        assert result.request.priority == RestockPriority.LOW
        assert result.request.requested_quantity == 255

    def test_second_trigger_is_duplicate(self, stock_engine, sink, tenant_id, product_id):
        first = _trigger(stock_engine, tenant_id, product_id)
        sink.batches.clear()

        with pytest.raises(DuplicateRestockRequestError) as exc_info:
            _trigger(stock_engine, tenant_id, product_id, current=5)

        assert exc_info.value.existing_request_id == str(first.request.id)
        assert sink.events == []

    def test_duplicate_check_is_per_location(self, stock_engine, tenant_id, product_id, location_id):
        _trigger(stock_engine, tenant_id, product_id)
        at_location = _trigger(stock_engine, tenant_id, product_id, location_id=location_id)

        assert at_location.request.location_id == location_id
        with pytest.raises(DuplicateRestockRequestError):
            _trigger(stock_engine, tenant_id, product_id, location_id=location_id)

    def test_sent_request_still_blocks(self, stock_engine, tenant_id, product_id):
        first = _trigger(stock_engine, tenant_id, product_id)
        stock_engine.mark_restock_sent(
            tenant_id=tenant_id, request_id=first.request.id, external_order_reference="PO-1"
        )
        with pytest.raises(DuplicateRestockRequestError):
            _trigger(stock_engine, tenant_id, product_id)

    def test_cancelled_request_allows_new_one(self, stock_engine, tenant_id, product_id):
        first = _trigger(stock_engine, tenant_id, product_id)
        stock_engine.cancel_restock_request(tenant_id=tenant_id, request_id=first.request.id)

        second = _trigger(stock_engine, tenant_id, product_id)

        assert second.request.id != first.request.id
        active = stock_engine.active_restock_request(tenant_id, product_id)
        assert active.id == second.request.id

    def test_tenants_are_independent(self, stock_engine, product_id):
        _trigger(stock_engine, "tenant-main", product_id)
        other = _trigger(stock_engine, "tenant-other", product_id)
        assert other.request.tenant_id == "tenant-other"

    def test_stock_above_minimum_rejected(self, stock_engine, tenant_id, product_id):
        with pytest.raises(StockValidationError):
            _trigger(stock_engine, tenant_id, product_id, current=60, minimum=50)


class TestUniqueIndexBackstop:

    def test_concurrent_insert_surfaces_as_duplicate(self, session, clock, monkeypatch, tenant_id, product_id):
        service = ReplenishmentService(session, clock)
        service.trigger_replenishment(
            tenant_id=tenant_id, product_id=product_id, current_quantity=10, minimum_quantity=50
        )
        # A writer that raced past the selector check
        monkeypatch.setattr(service.selector, "active_request", lambda *args, **kwargs: None)

        with pytest.raises(DuplicateRestockRequestError) as exc_info:
            service.trigger_replenishment(
                tenant_id=tenant_id, product_id=product_id, current_quantity=10, minimum_quantity=50
            )

        assert isinstance(exc_info.value.__cause__, IntegrityError)


class TestLifecycle:

    def test_pending_sent_fulfilled(self, stock_engine, sink, tenant_id, product_id):
        request = _trigger(stock_engine, tenant_id, product_id).request
        sink.batches.clear()

        sent = stock_engine.mark_restock_sent(
            tenant_id=tenant_id, request_id=request.id, external_order_reference="PO-2231"
        )
        fulfilled = stock_engine.mark_restock_fulfilled(tenant_id=tenant_id, request_id=request.id)

        assert sent.request.status == RestockStatus.SENT
        assert sent.request.external_order_reference == "PO-2231"
        assert fulfilled.request.status == RestockStatus.FULFILLED
        changes = sink.of_type("restock_request_status_changed")
        assert [(e.previous, e.new) for e in changes] == [
            (RestockStatus.PENDING, RestockStatus.SENT),
            (RestockStatus.SENT, RestockStatus.FULFILLED),
        ]
        assert stock_engine.active_restock_request(tenant_id, product_id) is None

    def test_fulfil_is_idempotent(self, stock_engine, sink, tenant_id, product_id):
        request = _trigger(stock_engine, tenant_id, product_id).request
        stock_engine.mark_restock_fulfilled(tenant_id=tenant_id, request_id=request.id)
        sink.batches.clear()

        again = stock_engine.mark_restock_fulfilled(tenant_id=tenant_id, request_id=request.id)

        assert again.request.status == RestockStatus.FULFILLED
        assert again.events == ()
        assert sink.events == []

    def test_cannot_send_twice(self, stock_engine, tenant_id, product_id):
        request = _trigger(stock_engine, tenant_id, product_id).request
        stock_engine.mark_restock_sent(
            tenant_id=tenant_id, request_id=request.id, external_order_reference="PO-1"
        )
        with pytest.raises(InvalidRestockTransitionError) as exc_info:
            stock_engine.mark_restock_sent(
                tenant_id=tenant_id, request_id=request.id, external_order_reference="PO-2"
            )
        assert exc_info.value.from_status == "sent"

    def test_cannot_cancel_fulfilled(self, stock_engine, tenant_id, product_id):
        request = _trigger(stock_engine, tenant_id, product_id).request
        stock_engine.mark_restock_fulfilled(tenant_id=tenant_id, request_id=request.id)
        with pytest.raises(InvalidRestockTransitionError):
            stock_engine.cancel_restock_request(tenant_id=tenant_id, request_id=request.id)

    def test_unknown_request(self, stock_engine, tenant_id):
        with pytest.raises(RestockRequestNotFoundError):
            stock_engine.cancel_restock_request(tenant_id=tenant_id, request_id=uuid4())

"""
Thresholds and low-stock signals raised after stock changes.
"""

from datetime import date

import pytest

from stock_kernel.domain.types import AdjustmentType, AllocationType, RestockPriority
from stock_kernel.exceptions import StockValidationError


def _allocate(stock_engine, tenant_id, actor_id, product_id, quantity, location_id=None):
    return stock_engine.allocate(
        tenant_id=tenant_id,
        product_id=product_id,
        quantity=quantity,
        allocation_type=AllocationType.RESERVATION,
        actor_id=actor_id,
        location_id=location_id,
    )


class TestThresholds:

    def test_set_threshold_replaces_existing(self, stock_engine, tenant_id, product_id):
        first = stock_engine.set_threshold(
            tenant_id=tenant_id, product_id=product_id, minimum_quantity=10
        )
        second = stock_engine.set_threshold(
            tenant_id=tenant_id,
            product_id=product_id,
            minimum_quantity=20,
            maximum_quantity=80,
            enable_auto_restock=True,
        )

        assert second.id == first.id
        assert second.minimum_quantity == 20
        assert second.maximum_quantity == 80
        assert second.enable_auto_restock

    def test_invalid_threshold_rejected(self, stock_engine, tenant_id, product_id):
        with pytest.raises(StockValidationError):
            stock_engine.set_threshold(
                tenant_id=tenant_id, product_id=product_id, minimum_quantity=20, maximum_quantity=5
            )


class TestLowStockSignals:

    def test_allocation_below_minimum_signals(self, stock_engine, receive, sink, tenant_id, actor_id, product_id):
        receive(product_id, 25)
        stock_engine.set_threshold(tenant_id=tenant_id, product_id=product_id, minimum_quantity=20)
        sink.batches.clear()

        result = _allocate(stock_engine, tenant_id, actor_id, product_id, 10)

        assert [e.event_type for e in result.events] == [
            "stock_allocated",
            "stock_level_below_minimum",
        ]
        signal = sink.of_type("stock_level_below_minimum")[0]
        assert signal.current_quantity == 15
        assert signal.minimum_quantity == 20
        assert stock_engine.active_restock_request(tenant_id, product_id) is None

    def test_above_minimum_is_quiet(self, stock_engine, receive, sink, tenant_id, actor_id, product_id):
        receive(product_id, 100)
        stock_engine.set_threshold(tenant_id=tenant_id, product_id=product_id, minimum_quantity=20)
        sink.batches.clear()

        _allocate(stock_engine, tenant_id, actor_id, product_id, 10)

        assert sink.of_type("stock_level_below_minimum") == []

    def test_auto_restock_creates_one_request(self, stock_engine, receive, sink, tenant_id, actor_id, product_id):
        receive(product_id, 25)
        stock_engine.set_threshold(
            tenant_id=tenant_id,
            product_id=product_id,
            minimum_quantity=20,
            maximum_quantity=100,
            enable_auto_restock=True,
        )
        sink.batches.clear()

        _allocate(stock_engine, tenant_id, actor_id, product_id, 10)
        _allocate(stock_engine, tenant_id, actor_id, product_id, 5)

        generated = sink.of_type("restock_request_generated")
        assert len(generated) == 1
        assert len(sink.of_type("stock_level_below_minimum")) == 2
        request = stock_engine.active_restock_request(tenant_id, product_id)
        assert request.current_quantity == 15
        assert request.requested_quantity == 85
        assert request.priority == RestockPriority.MEDIUM

    def test_decrease_adjustment_triggers_restock(self, stock_engine, receive, sink, tenant_id, actor_id, product_id):
        receive(product_id, 30)
        stock_engine.set_threshold(
            tenant_id=tenant_id, product_id=product_id, minimum_quantity=20, enable_auto_restock=True
        )
        sink.batches.clear()

        result = stock_engine.adjust(
            tenant_id=tenant_id,
            product_id=product_id,
            adjustment_type=AdjustmentType.DECREASE,
            quantity=25,
            reason="water damage",
            actor_id=actor_id,
        )

        assert [e.event_type for e in result.events] == [
            "stock_adjusted",
            "stock_level_below_minimum",
            "restock_request_generated",
        ]
        request = stock_engine.active_restock_request(tenant_id, product_id)
        assert request.priority == RestockPriority.HIGH
        assert request.requested_quantity == 35

    def test_location_threshold_counts_location_stock(self, stock_engine, receive, sink, tenant_id, actor_id, product_id, location_id):
        receive(product_id, 12, location_id=location_id)
        receive(product_id, 500)
        stock_engine.set_threshold(
            tenant_id=tenant_id, product_id=product_id, minimum_quantity=10, location_id=location_id
        )
        stock_engine.set_threshold(tenant_id=tenant_id, product_id=product_id, minimum_quantity=50)
        sink.batches.clear()

        check = stock_engine.check_stock_level(
            tenant_id=tenant_id, product_id=product_id, location_id=location_id
        )
        assert check.below_minimum == ()

        _allocate(stock_engine, tenant_id, actor_id, product_id, 5, location_id=location_id)

        signals = sink.of_type("stock_level_below_minimum")
        assert [(s.location_id, s.current_quantity) for s in signals] == [(location_id, 7)]

    def test_unlocated_allocation_checks_drawn_lot_location(self, stock_engine, receive, sink, tenant_id, actor_id, product_id, location_id):
        receive(product_id, 12, date(2026, 2, 1), location_id=location_id)
        receive(product_id, 500, date(2026, 6, 1))
        stock_engine.set_threshold(
            tenant_id=tenant_id, product_id=product_id, minimum_quantity=10, location_id=location_id
        )
        sink.batches.clear()

        result = _allocate(stock_engine, tenant_id, actor_id, product_id, 5)

        assert [a.location_id for a in result.allocations] == [location_id]
        signals = sink.of_type("stock_level_below_minimum")
        assert [(s.location_id, s.current_quantity) for s in signals] == [(location_id, 7)]

    def test_lot_adjustment_checks_lot_location(self, stock_engine, receive, sink, tenant_id, actor_id, product_id, location_id):
        placed = receive(product_id, 12, location_id=location_id)
        receive(product_id, 500)
        stock_engine.set_threshold(
            tenant_id=tenant_id, product_id=product_id, minimum_quantity=10, location_id=location_id
        )
        stock_engine.set_threshold(tenant_id=tenant_id, product_id=product_id, minimum_quantity=50)
        sink.batches.clear()

        stock_engine.adjust(
            tenant_id=tenant_id,
            product_id=product_id,
            adjustment_type=AdjustmentType.DECREASE,
            quantity=4,
            reason="crushed cases",
            actor_id=actor_id,
            lot_id=placed.id,
        )

        signals = sink.of_type("stock_level_below_minimum")
        assert [(s.location_id, s.current_quantity) for s in signals] == [(location_id, 8)]

    def test_check_stock_level_reports_without_change(self, stock_engine, receive, sink, tenant_id, product_id):
        receive(product_id, 5)
        stock_engine.set_threshold(tenant_id=tenant_id, product_id=product_id, minimum_quantity=10)
        sink.batches.clear()

        check = stock_engine.check_stock_level(tenant_id=tenant_id, product_id=product_id)

        assert len(check.below_minimum) == 1
        assert check.restock_requests == ()
        assert sink.event_types == ["stock_level_below_minimum"]

"""
Manual stock adjustments.

Covers the authorization gate, FEFO decrease across lots, the guard that
keeps allocated units untouchable, lot materialization on INCREASE, scope
resolution and the audit record.
"""

from datetime import date
from uuid import uuid4

import pytest

from stock_kernel.domain.policy import StockPolicy
from stock_kernel.domain.types import AdjustmentType, AllocationType
from stock_kernel.exceptions import (
    InsufficientStockForAdjustmentError,
    LotNotFoundError,
    MissingAuthorizationError,
    NoStockToAdjustError,
    StockValidationError,
)
from stock_kernel.services.stock_engine import StockEngine


def _adjust(stock_engine, tenant_id, actor_id, product_id, adjustment_type, quantity, **kwargs):
    return stock_engine.adjust(
        tenant_id=tenant_id,
        product_id=product_id,
        adjustment_type=adjustment_type,
        quantity=quantity,
        reason=kwargs.pop("reason", "cycle count"),
        actor_id=actor_id,
        **kwargs,
    )


class TestAuthorizationGate:

    def test_large_increase_without_code_rejected(self, stock_engine, receive, tenant_id, actor_id, product_id):
        lot = receive(product_id, 10)

        with pytest.raises(MissingAuthorizationError) as exc_info:
            _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 120)

        assert exc_info.value.threshold == 100
        assert stock_engine.get_lot(tenant_id, lot.id).quantity == 10
        assert stock_engine.adjustment_history(tenant_id, product_id) == []

    def test_small_increase_without_code_succeeds(self, stock_engine, receive, tenant_id, actor_id, product_id):
        lot = receive(product_id, 10)

        result = _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 99)

        assert result.quantity_before == 10
        assert result.quantity_after == 109
        assert stock_engine.get_lot(tenant_id, lot.id).quantity == 109

    def test_threshold_itself_requires_code(self, stock_engine, receive, tenant_id, actor_id, product_id):
        receive(product_id, 10)
        with pytest.raises(MissingAuthorizationError):
            _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 100)

    def test_blank_code_counts_as_missing(self, stock_engine, receive, tenant_id, actor_id, product_id):
        receive(product_id, 10)
        with pytest.raises(MissingAuthorizationError):
            _adjust(
                stock_engine, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 150,
                authorization_code="   ",
            )

    def test_code_unlocks_large_adjustment(self, stock_engine, receive, tenant_id, actor_id, product_id):
        receive(product_id, 10)

        result = _adjust(
            stock_engine, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 150,
            authorization_code="MGR-7781",
        )

        assert result.adjustment.authorization_code == "MGR-7781"
        assert result.quantity_after == 160

    def test_threshold_is_tenant_policy(self, session_factory, sink, clock, receive, tenant_id, actor_id, product_id):
        receive(product_id, 10)
        lenient = StockEngine(
            session_factory,
            sink,
            clock=clock,
            policy_resolver=lambda tenant: StockPolicy(authorization_threshold=500),
        )

        result = _adjust(lenient, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 120)

        assert result.quantity_after == 130


class TestDecrease:

    def test_decrease_beyond_stock_rejected(self, stock_engine, receive, tenant_id, actor_id, product_id):
        lot = receive(product_id, 100)

        with pytest.raises(InsufficientStockForAdjustmentError) as exc_info:
            _adjust(
                stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 150,
                authorization_code="MGR-1",
            )

        assert exc_info.value.available == 100
        assert stock_engine.get_lot(tenant_id, lot.id).quantity == 100
        assert stock_engine.adjustment_history(tenant_id, product_id) == []

    def test_decrease_drawn_fefo(self, stock_engine, receive, tenant_id, actor_id, product_id):
        late = receive(product_id, 50, date(2026, 3, 1))
        early = receive(product_id, 30, date(2026, 1, 20))

        result = _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 40)

        assert result.quantity_before == 80
        assert result.quantity_after == 40
        assert result.lot_ids == (early.id, late.id)
        assert stock_engine.get_lot(tenant_id, early.id).quantity == 0
        assert stock_engine.get_lot(tenant_id, late.id).quantity == 40

    def test_allocated_units_are_protected(self, stock_engine, receive, tenant_id, actor_id, product_id):
        lot = receive(product_id, 50)
        stock_engine.allocate(
            tenant_id=tenant_id,
            product_id=product_id,
            quantity=45,
            allocation_type=AllocationType.RESERVATION,
            actor_id=actor_id,
        )

        with pytest.raises(InsufficientStockForAdjustmentError) as exc_info:
            _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 10)

        assert exc_info.value.available == 5
        stored = stock_engine.get_lot(tenant_id, lot.id)
        assert stored.quantity == 50
        assert stored.allocated_quantity == 45

    def test_no_stock_to_adjust(self, stock_engine, tenant_id, actor_id, product_id):
        with pytest.raises(NoStockToAdjustError):
            _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 1)


class TestScope:

    def test_increase_materializes_lot(self, stock_engine, sink, tenant_id, actor_id, product_id, location_id):
        result = _adjust(
            stock_engine, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 12,
            location_id=location_id,
        )

        assert result.created_lot_id is not None
        lot = stock_engine.get_lot(tenant_id, result.created_lot_id)
        assert lot.quantity == 12
        assert lot.location_id == location_id
        assert lot.expiration_date is None
        assert result.quantity_before == 0
        assert sink.event_types == ["lot_created", "stock_adjusted"]

    def test_lot_scope(self, stock_engine, receive, tenant_id, actor_id, product_id):
        target = receive(product_id, 20, date(2026, 5, 1))
        other = receive(product_id, 20, date(2026, 2, 1))

        result = _adjust(
            stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 5,
            lot_id=target.id,
        )

        assert result.adjustment.lot_id == target.id
        assert stock_engine.get_lot(tenant_id, target.id).quantity == 15
        assert stock_engine.get_lot(tenant_id, other.id).quantity == 20

    def test_lot_of_other_product_not_found(self, stock_engine, receive, tenant_id, actor_id, product_id):
        foreign = receive(uuid4(), 20)
        with pytest.raises(LotNotFoundError):
            _adjust(
                stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 5,
                lot_id=foreign.id,
            )

    def test_location_scope_falls_back_to_unassigned(self, stock_engine, receive, tenant_id, actor_id, product_id, location_id):
        unassigned = receive(product_id, 20)
        elsewhere = receive(product_id, 20, location_id=uuid4())

        result = _adjust(
            stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 5,
            location_id=location_id,
        )

        assert result.lot_ids == (unassigned.id,)
        assert stock_engine.get_lot(tenant_id, elsewhere.id).quantity == 20

    def test_location_scope_prefers_bound_lots(self, stock_engine, receive, tenant_id, actor_id, product_id, location_id):
        unassigned = receive(product_id, 20)
        bound = receive(product_id, 20, location_id=location_id)

        result = _adjust(
            stock_engine, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 5,
            location_id=location_id,
        )

        assert result.lot_ids == (bound.id,)
        assert stock_engine.get_lot(tenant_id, unassigned.id).quantity == 20


class TestAuditRecord:

    def test_history_records_every_adjustment(self, stock_engine, receive, clock, sink, tenant_id, actor_id, product_id):
        receive(product_id, 40)
        sink.batches.clear()
        _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 4, reason="damaged")
        clock.tick()
        _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.INCREASE, 9, reason="found")

        history = stock_engine.adjustment_history(tenant_id, product_id)

        assert [(h.adjustment_type, h.quantity_before, h.quantity_after) for h in history] == [
            (AdjustmentType.DECREASE, 40, 36),
            (AdjustmentType.INCREASE, 36, 45),
        ]
        assert [h.reason for h in history] == ["damaged", "found"]
        assert all(h.adjusted_by == actor_id for h in history)
        adjusted = sink.of_type("stock_adjusted")
        assert [(e.before, e.after) for e in adjusted] == [(40, 36), (36, 45)]

    def test_missing_reason_rejected(self, stock_engine, receive, tenant_id, actor_id, product_id):
        receive(product_id, 40)
        with pytest.raises(StockValidationError) as exc_info:
            _adjust(stock_engine, tenant_id, actor_id, product_id, AdjustmentType.DECREASE, 4, reason="")
        assert exc_info.value.fields == ["reason"]

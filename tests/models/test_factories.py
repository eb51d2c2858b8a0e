"""Tests for validated aggregate construction."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from stock_kernel.domain.types import (
    AdjustmentType,
    AllocationStatus,
    AllocationType,
    RestockPriority,
    RestockStatus,
)
from stock_kernel.exceptions import ErrorCategory, StockValidationError
from stock_kernel.models.factories import (
    new_adjustment,
    new_allocation,
    new_restock_request,
    new_stock_item,
    new_threshold,
    validate_adjustment_request,
    validate_allocation_request,
    validate_restock_levels,
)
from stock_kernel.models.restock_request import ANY_LOCATION_KEY

NOW = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)


class TestStockItemFactory:

    def test_collects_every_field_error(self):
        with pytest.raises(StockValidationError) as exc_info:
            new_stock_item(tenant_id=" ", product_id=None, quantity=-1, receipt_seq=0, now=NOW)
        assert exc_info.value.fields == ["tenant_id", "product_id", "quantity", "receipt_seq"]
        assert exc_info.value.category == ErrorCategory.VALIDATION

    def test_builds_empty_allocation_state(self):
        lot = new_stock_item(tenant_id="t", product_id=uuid4(), quantity=10, receipt_seq=1, now=NOW)
        assert lot.id is not None
        assert lot.allocated_quantity == 0
        assert lot.created_at == NOW


class TestAllocationValidation:

    @pytest.mark.parametrize("allocation_type", [AllocationType.SALES_ORDER, AllocationType.PICKING_ORDER])
    def test_order_types_require_reference(self, allocation_type):
        with pytest.raises(StockValidationError) as exc_info:
            validate_allocation_request(
                tenant_id="t",
                product_id=uuid4(),
                quantity=5,
                allocation_type=allocation_type,
                actor_id="user",
                reference_id=None,
            )
        assert exc_info.value.fields == ["reference_id"]

    def test_reservation_needs_no_reference(self):
        validate_allocation_request(
            tenant_id="t",
            product_id=uuid4(),
            quantity=5,
            allocation_type=AllocationType.RESERVATION,
            actor_id="user",
            reference_id=None,
        )

    def test_non_positive_quantity(self):
        with pytest.raises(StockValidationError) as exc_info:
            validate_allocation_request(
                tenant_id="t",
                product_id=uuid4(),
                quantity=0,
                allocation_type=AllocationType.RESERVATION,
                actor_id="",
                reference_id=None,
            )
        assert exc_info.value.fields == ["quantity", "actor_id"]

    def test_new_allocation_starts_allocated(self):
        allocation = new_allocation(
            tenant_id="t",
            product_id=uuid4(),
            lot_id=uuid4(),
            quantity=3,
            allocation_type=AllocationType.SALES_ORDER,
            allocated_by="user",
            now=NOW,
            reference_id="SO-1",
        )
        assert allocation.status == AllocationStatus.ALLOCATED
        assert allocation.allocated_at == NOW


class TestAdjustmentFactory:

    def test_arithmetic_must_match(self):
        with pytest.raises(StockValidationError) as exc_info:
            new_adjustment(
                tenant_id="t",
                product_id=uuid4(),
                adjustment_type=AdjustmentType.DECREASE,
                quantity=10,
                quantity_before=100,
                quantity_after=95,
                reason="damaged",
                adjusted_by="user",
                now=NOW,
            )
        assert exc_info.value.fields == ["quantity_after"]

    def test_reason_and_code_trimmed(self):
        adjustment = new_adjustment(
            tenant_id="t",
            product_id=uuid4(),
            adjustment_type=AdjustmentType.INCREASE,
            quantity=10,
            quantity_before=0,
            quantity_after=10,
            reason="  found in aisle 4 ",
            adjusted_by="user",
            now=NOW,
            authorization_code=" AUTH-1 ",
        )
        assert adjustment.reason == "found in aisle 4"
        assert adjustment.authorization_code == "AUTH-1"

    def test_request_validation_requires_reason(self):
        with pytest.raises(StockValidationError) as exc_info:
            validate_adjustment_request(
                tenant_id="t",
                product_id=uuid4(),
                adjustment_type=AdjustmentType.INCREASE,
                quantity=1,
                reason="   ",
                actor_id="user",
            )
        assert exc_info.value.fields == ["reason"]


class TestRestockFactories:

    def test_current_above_minimum_rejected(self):
        with pytest.raises(StockValidationError) as exc_info:
            validate_restock_levels(current_quantity=60, minimum_quantity=50, maximum_quantity=None)
        assert exc_info.value.fields == ["current_quantity"]

    def test_maximum_below_minimum_rejected(self):
        with pytest.raises(StockValidationError) as exc_info:
            validate_restock_levels(current_quantity=10, minimum_quantity=50, maximum_quantity=40)
        assert exc_info.value.fields == ["maximum_quantity"]

    def test_new_request_is_pending(self):
        request = new_restock_request(
            tenant_id="t",
            product_id=uuid4(),
            current_quantity=10,
            minimum_quantity=50,
            maximum_quantity=None,
            requested_quantity=90,
            priority=RestockPriority.HIGH,
            now=NOW,
        )
        assert request.status == RestockStatus.PENDING
        assert request.location_key == ANY_LOCATION_KEY

    def test_threshold_maximum_must_exceed_minimum(self):
        with pytest.raises(StockValidationError):
            new_threshold(
                tenant_id="t",
                product_id=uuid4(),
                minimum_quantity=50,
                maximum_quantity=50,
                now=NOW,
            )

"""
Validated construction of stock aggregates.

Every factory checks all of its fields first and raises one
StockValidationError listing every problem, before any model instance
exists.  Services build aggregates only through these functions.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from stock_kernel.domain.types import (
    AdjustmentType,
    AllocationStatus,
    AllocationType,
    Classification,
    RestockPriority,
    RestockStatus,
)
from stock_kernel.exceptions import StockValidationError
from stock_kernel.models.adjustment import StockAdjustmentModel
from stock_kernel.models.allocation import StockAllocationModel
from stock_kernel.models.restock_request import RestockRequestModel, location_key_for
from stock_kernel.models.stock_item import StockItemModel
from stock_kernel.models.stock_level_threshold import StockLevelThresholdModel


class FieldErrors:
    """Accumulates field errors for one entity."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        self.errors: list[dict] = []

    def add(self, field: str, message: str) -> None:
        self.errors.append({"field": field, "message": message})

    def require_text(self, field: str, value: str | None) -> None:
        if value is None or not str(value).strip():
            self.add(field, "must not be blank")

    def require(self, field: str, value: object) -> None:
        if value is None:
            self.add(field, "is required")

    def require_positive(self, field: str, value: int | None) -> None:
        if value is None or value <= 0:
            self.add(field, "must be greater than zero")

    def require_non_negative(self, field: str, value: int | None) -> None:
        if value is None or value < 0:
            self.add(field, "must not be negative")

    def raise_if_any(self) -> None:
        if self.errors:
            raise StockValidationError(self.entity_type, list(self.errors))


def new_stock_item(
    *,
    tenant_id: str,
    product_id: UUID,
    quantity: int,
    receipt_seq: int,
    now: datetime,
    location_id: UUID | None = None,
    expiration_date: date | None = None,
    consignment_id: UUID | None = None,
    classification: Classification = Classification.NORMAL,
    last_checked_date: date | None = None,
) -> StockItemModel:
    errors = FieldErrors("stock item")
    errors.require_text("tenant_id", tenant_id)
    errors.require("product_id", product_id)
    errors.require_non_negative("quantity", quantity)
    errors.require_positive("receipt_seq", receipt_seq)
    errors.raise_if_any()

    return StockItemModel(
        id=uuid4(),
        tenant_id=tenant_id,
        product_id=product_id,
        location_id=location_id,
        quantity=quantity,
        allocated_quantity=0,
        expiration_date=expiration_date,
        classification=classification,
        last_checked_date=last_checked_date,
        consignment_id=consignment_id,
        receipt_seq=receipt_seq,
        created_at=now,
        updated_at=now,
    )


def validate_allocation_request(
    *,
    tenant_id: str,
    product_id: UUID,
    quantity: int,
    allocation_type: AllocationType,
    actor_id: str,
    reference_id: str | None,
) -> None:
    """Request-level checks, run before any lot is read."""
    errors = FieldErrors("allocation request")
    errors.require_text("tenant_id", tenant_id)
    errors.require("product_id", product_id)
    errors.require_positive("quantity", quantity)
    errors.require_text("actor_id", actor_id)
    if not isinstance(allocation_type, AllocationType):
        errors.add("allocation_type", "must be an AllocationType")
    elif allocation_type.requires_reference and not (reference_id and reference_id.strip()):
        errors.add(
            "reference_id", f"is required for {allocation_type.value} allocations"
        )
    errors.raise_if_any()


def new_allocation(
    *,
    tenant_id: str,
    product_id: UUID,
    lot_id: UUID,
    quantity: int,
    allocation_type: AllocationType,
    allocated_by: str,
    now: datetime,
    location_id: UUID | None = None,
    reference_id: str | None = None,
    notes: str | None = None,
) -> StockAllocationModel:
    errors = FieldErrors("allocation")
    errors.require("lot_id", lot_id)
    errors.require_positive("quantity", quantity)
    errors.require_text("allocated_by", allocated_by)
    errors.raise_if_any()

    return StockAllocationModel(
        id=uuid4(),
        tenant_id=tenant_id,
        product_id=product_id,
        location_id=location_id,
        lot_id=lot_id,
        quantity=quantity,
        allocation_type=allocation_type,
        reference_id=reference_id,
        notes=notes,
        status=AllocationStatus.ALLOCATED,
        allocated_by=allocated_by,
        allocated_at=now,
        created_at=now,
        updated_at=now,
    )


def validate_adjustment_request(
    *,
    tenant_id: str,
    product_id: UUID,
    adjustment_type: AdjustmentType,
    quantity: int,
    reason: str,
    actor_id: str,
) -> None:
    errors = FieldErrors("adjustment request")
    errors.require_text("tenant_id", tenant_id)
    errors.require("product_id", product_id)
    if not isinstance(adjustment_type, AdjustmentType):
        errors.add("adjustment_type", "must be an AdjustmentType")
    errors.require_positive("quantity", quantity)
    errors.require_text("reason", reason)
    errors.require_text("actor_id", actor_id)
    errors.raise_if_any()


def new_adjustment(
    *,
    tenant_id: str,
    product_id: UUID,
    adjustment_type: AdjustmentType,
    quantity: int,
    quantity_before: int,
    quantity_after: int,
    reason: str,
    adjusted_by: str,
    now: datetime,
    location_id: UUID | None = None,
    lot_id: UUID | None = None,
    notes: str | None = None,
    authorization_code: str | None = None,
) -> StockAdjustmentModel:
    errors = FieldErrors("adjustment")
    errors.require_positive("quantity", quantity)
    errors.require_non_negative("quantity_before", quantity_before)
    errors.require_non_negative("quantity_after", quantity_after)
    sign = 1 if adjustment_type == AdjustmentType.INCREASE else -1
    if quantity_after != quantity_before + sign * quantity:
        errors.add("quantity_after", "does not match quantity_before and quantity")
    errors.raise_if_any()

    return StockAdjustmentModel(
        id=uuid4(),
        tenant_id=tenant_id,
        product_id=product_id,
        location_id=location_id,
        lot_id=lot_id,
        adjustment_type=adjustment_type,
        quantity=quantity,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        reason=reason.strip(),
        notes=notes,
        authorization_code=authorization_code.strip() if authorization_code else None,
        adjusted_by=adjusted_by,
        adjusted_at=now,
        created_at=now,
        updated_at=now,
    )


def validate_restock_levels(
    *,
    current_quantity: int,
    minimum_quantity: int,
    maximum_quantity: int | None,
) -> None:
    """Replenishment inputs: a trigger only applies to low stock."""
    errors = FieldErrors("restock request")
    errors.require_non_negative("current_quantity", current_quantity)
    errors.require_non_negative("minimum_quantity", minimum_quantity)
    if maximum_quantity is not None and minimum_quantity is not None:
        if maximum_quantity < minimum_quantity:
            errors.add("maximum_quantity", "must be >= minimum_quantity")
    if (
        current_quantity is not None
        and minimum_quantity is not None
        and current_quantity > minimum_quantity
    ):
        errors.add("current_quantity", "must be <= minimum_quantity")
    errors.raise_if_any()


def new_restock_request(
    *,
    tenant_id: str,
    product_id: UUID,
    current_quantity: int,
    minimum_quantity: int,
    maximum_quantity: int | None,
    requested_quantity: int,
    priority: RestockPriority,
    now: datetime,
    location_id: UUID | None = None,
) -> RestockRequestModel:
    errors = FieldErrors("restock request")
    errors.require_text("tenant_id", tenant_id)
    errors.require("product_id", product_id)
    errors.require_non_negative("requested_quantity", requested_quantity)
    errors.raise_if_any()
    validate_restock_levels(
        current_quantity=current_quantity,
        minimum_quantity=minimum_quantity,
        maximum_quantity=maximum_quantity,
    )

    return RestockRequestModel(
        id=uuid4(),
        tenant_id=tenant_id,
        product_id=product_id,
        location_id=location_id,
        location_key=location_key_for(location_id),
        current_quantity=current_quantity,
        minimum_quantity=minimum_quantity,
        maximum_quantity=maximum_quantity,
        requested_quantity=requested_quantity,
        priority=priority,
        status=RestockStatus.PENDING,
        created_at=now,
        updated_at=now,
    )


def new_threshold(
    *,
    tenant_id: str,
    product_id: UUID,
    minimum_quantity: int,
    now: datetime,
    maximum_quantity: int | None = None,
    location_id: UUID | None = None,
    enable_auto_restock: bool = False,
) -> StockLevelThresholdModel:
    errors = FieldErrors("stock level threshold")
    errors.require_text("tenant_id", tenant_id)
    errors.require("product_id", product_id)
    errors.require_non_negative("minimum_quantity", minimum_quantity)
    if (
        maximum_quantity is not None
        and minimum_quantity is not None
        and maximum_quantity <= minimum_quantity
    ):
        errors.add("maximum_quantity", "must be greater than minimum_quantity")
    errors.raise_if_any()

    return StockLevelThresholdModel(
        id=uuid4(),
        tenant_id=tenant_id,
        product_id=product_id,
        location_id=location_id,
        location_key=location_key_for(location_id),
        minimum_quantity=minimum_quantity,
        maximum_quantity=maximum_quantity,
        enable_auto_restock=enable_auto_restock,
        created_at=now,
        updated_at=now,
    )

"""
Read-side data transfer objects.

Selectors and service results return these frozen dataclasses rather than
ORM instances, so callers never hold a live session-bound object.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

from stock_kernel.domain.events import DomainEvent
from stock_kernel.domain.types import (
    AdjustmentType,
    AllocationStatus,
    AllocationType,
    Classification,
    RestockPriority,
    RestockStatus,
)


@dataclass(frozen=True)
class LotView:
    id: UUID
    tenant_id: str
    product_id: UUID
    location_id: UUID | None
    quantity: int
    allocated_quantity: int
    expiration_date: date | None
    classification: Classification
    last_checked_date: date | None
    consignment_id: UUID | None
    version: int
    created_at: datetime

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.allocated_quantity


@dataclass(frozen=True)
class AllocationView:
    id: UUID
    tenant_id: str
    product_id: UUID
    location_id: UUID | None
    lot_id: UUID
    quantity: int
    allocation_type: AllocationType
    reference_id: str | None
    status: AllocationStatus
    allocated_by: str
    allocated_at: datetime
    released_at: datetime | None


@dataclass(frozen=True)
class AdjustmentView:
    id: UUID
    product_id: UUID
    location_id: UUID | None
    lot_id: UUID | None
    adjustment_type: AdjustmentType
    quantity: int
    quantity_before: int
    quantity_after: int
    reason: str
    authorization_code: str | None
    adjusted_by: str
    adjusted_at: datetime


@dataclass(frozen=True)
class RestockRequestView:
    id: UUID
    tenant_id: str
    product_id: UUID
    location_id: UUID | None
    current_quantity: int
    minimum_quantity: int
    maximum_quantity: int | None
    requested_quantity: int
    priority: RestockPriority
    status: RestockStatus
    external_order_reference: str | None
    created_at: datetime


@dataclass(frozen=True)
class ThresholdView:
    id: UUID
    product_id: UUID
    location_id: UUID | None
    minimum_quantity: int
    maximum_quantity: int | None
    enable_auto_restock: bool


@dataclass(frozen=True)
class StockLevel:
    """Aggregate quantities for a product, optionally at one location."""

    product_id: UUID
    location_id: UUID | None
    quantity: int
    allocated_quantity: int
    lot_count: int

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.allocated_quantity


@dataclass(frozen=True)
class ConsignmentLine:
    """One product line of a confirmed inbound consignment."""

    product_code: str
    quantity: int
    expiration_date: date | None = None


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllocationResult:
    allocations: tuple[AllocationView, ...]
    total_quantity: int
    events: tuple[DomainEvent, ...] = ()

    @property
    def lot_ids(self) -> list[UUID]:
        return [a.lot_id for a in self.allocations]


@dataclass(frozen=True)
class ReleaseResult:
    allocation: AllocationView
    events: tuple[DomainEvent, ...] = ()


@dataclass(frozen=True)
class ClassificationResult:
    lot_id: UUID
    previous: Classification
    current: Classification
    days_until_expiration: int | None
    events: tuple[DomainEvent, ...] = ()

    @property
    def changed(self) -> bool:
        return self.previous != self.current


@dataclass(frozen=True)
class SweepFailure:
    lot_id: UUID
    error_code: str
    message: str


@dataclass(frozen=True)
class SweepResult:
    examined: int
    changed: int
    failures: tuple[SweepFailure, ...] = ()
    events: tuple[DomainEvent, ...] = ()


@dataclass(frozen=True)
class AdjustmentResult:
    adjustment: AdjustmentView
    lot_ids: tuple[UUID, ...]
    created_lot_id: UUID | None = None
    events: tuple[DomainEvent, ...] = ()

    @property
    def quantity_before(self) -> int:
        return self.adjustment.quantity_before

    @property
    def quantity_after(self) -> int:
        return self.adjustment.quantity_after


@dataclass(frozen=True)
class RestockResult:
    request: RestockRequestView
    events: tuple[DomainEvent, ...] = ()


@dataclass(frozen=True)
class ReceiptResult:
    lots: tuple[LotView, ...]
    events: tuple[DomainEvent, ...] = ()
    already_received: bool = False


@dataclass(frozen=True)
class StockLevelCheck:
    """Outcome of evaluating thresholds after a stock change."""

    below_minimum: tuple[ThresholdView, ...] = ()
    restock_requests: tuple[RestockRequestView, ...] = ()
    events: tuple[DomainEvent, ...] = field(default_factory=tuple)

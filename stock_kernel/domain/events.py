"""
Domain events emitted by the stock services.

Every mutating service operation returns the events it produced; nothing is
queued on entities.  Events are frozen and carry their own identity and the
Clock time at which the change happened.  ``to_dict()`` gives the flat,
JSON-safe payload handed to messaging sinks.
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID, uuid4

from stock_kernel.domain.types import (
    AdjustmentType,
    AllocationType,
    Classification,
    RestockPriority,
    RestockStatus,
)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Common envelope; aggregate_id is the lot, allocation or request id."""

    event_type: ClassVar[str] = "domain_event"

    tenant_id: str
    aggregate_id: UUID
    occurred_at: datetime
    event_id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> dict[str, Any]:
        payload = {"event_type": self.event_type}
        for f in fields(self):
            payload[f.name] = _jsonable(getattr(self, f.name))
        return payload


# Lot lifecycle


@dataclass(frozen=True, kw_only=True)
class LotCreated(DomainEvent):
    event_type: ClassVar[str] = "lot_created"

    product_id: UUID
    quantity: int
    location_id: UUID | None = None
    expiration_date: date | None = None
    consignment_id: UUID | None = None
    classification: Classification = Classification.NORMAL


@dataclass(frozen=True, kw_only=True)
class LotLocationAssigned(DomainEvent):
    event_type: ClassVar[str] = "lot_location_assigned"

    product_id: UUID
    location_id: UUID


@dataclass(frozen=True, kw_only=True)
class LotClassified(DomainEvent):
    event_type: ClassVar[str] = "lot_classified"

    product_id: UUID
    previous: Classification
    new: Classification


@dataclass(frozen=True, kw_only=True)
class LotExpiringAlert(DomainEvent):
    event_type: ClassVar[str] = "lot_expiring_alert"

    product_id: UUID
    days_remaining: int
    new_classification: Classification
    expiration_date: date | None = None


@dataclass(frozen=True, kw_only=True)
class LotExpired(DomainEvent):
    event_type: ClassVar[str] = "lot_expired"

    product_id: UUID
    expiration_date: date | None = None
    quantity: int = 0


# Allocation


@dataclass(frozen=True, kw_only=True)
class StockAllocated(DomainEvent):
    event_type: ClassVar[str] = "stock_allocated"

    product_id: UUID
    lot_id: UUID
    quantity: int
    allocation_type: AllocationType
    location_id: UUID | None = None
    reference_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class StockAllocationReleased(DomainEvent):
    event_type: ClassVar[str] = "stock_allocation_released"

    product_id: UUID
    lot_id: UUID
    quantity: int


# Adjustment


@dataclass(frozen=True, kw_only=True)
class StockAdjusted(DomainEvent):
    event_type: ClassVar[str] = "stock_adjusted"

    product_id: UUID
    adjustment_type: AdjustmentType
    quantity: int
    before: int
    after: int
    reason: str
    location_id: UUID | None = None


# Replenishment


@dataclass(frozen=True, kw_only=True)
class StockLevelBelowMinimum(DomainEvent):
    event_type: ClassVar[str] = "stock_level_below_minimum"

    product_id: UUID
    current_quantity: int
    minimum_quantity: int
    location_id: UUID | None = None


@dataclass(frozen=True, kw_only=True)
class RestockRequestGenerated(DomainEvent):
    event_type: ClassVar[str] = "restock_request_generated"

    product_id: UUID
    priority: RestockPriority
    requested_quantity: int
    location_id: UUID | None = None


@dataclass(frozen=True, kw_only=True)
class RestockRequestStatusChanged(DomainEvent):
    event_type: ClassVar[str] = "restock_request_status_changed"

    product_id: UUID
    previous: RestockStatus
    new: RestockStatus
    external_order_reference: str | None = None

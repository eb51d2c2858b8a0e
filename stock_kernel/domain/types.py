"""Enumerations shared by the stock domain, models and events."""

from enum import Enum


class Classification(str, Enum):
    """Expiry-urgency label stored on a lot.

    Ordered from least to most urgent; EXPIRED lots are never allocatable.
    """

    NORMAL = "normal"
    NEAR_EXPIRY = "near_expiry"
    CRITICAL = "critical"
    EXPIRED = "expired"


class AllocationType(str, Enum):
    """Kind of demand an allocation reserves stock for."""

    SALES_ORDER = "sales_order"
    PICKING_ORDER = "picking_order"
    RESERVATION = "reservation"

    @property
    def requires_reference(self) -> bool:
        """Order-type allocations must point at the order they serve."""
        return self in (AllocationType.SALES_ORDER, AllocationType.PICKING_ORDER)


class AllocationStatus(str, Enum):
    """ALLOCATED -> RELEASED, exactly once."""

    ALLOCATED = "allocated"
    RELEASED = "released"


class AdjustmentType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class RestockPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RestockStatus(str, Enum):
    """Restock request lifecycle.

    PENDING -> SENT -> FULFILLED, with CANCELLED reachable from PENDING or
    SENT.  A request is active while PENDING or SENT.
    """

    PENDING = "pending"
    SENT = "sent"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_RESTOCK_STATUSES


ACTIVE_RESTOCK_STATUSES = frozenset({RestockStatus.PENDING, RestockStatus.SENT})

"""Pure domain core: types, classification, FEFO planning, events, clock."""

from stock_kernel.domain.classification import ExpiryWindows, classify, is_expired
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.fefo import AllocationPlan, LotCandidate, plan_allocation, sort_fefo
from stock_kernel.domain.replenishment import requested_quantity, restock_priority
from stock_kernel.domain.types import (
    AdjustmentType,
    AllocationStatus,
    AllocationType,
    Classification,
    RestockPriority,
    RestockStatus,
)

__all__ = [
    "AdjustmentType",
    "AllocationPlan",
    "AllocationStatus",
    "AllocationType",
    "Classification",
    "Clock",
    "DeterministicClock",
    "ExpiryWindows",
    "LotCandidate",
    "RestockPriority",
    "RestockStatus",
    "SystemClock",
    "classify",
    "is_expired",
    "plan_allocation",
    "requested_quantity",
    "restock_priority",
    "sort_fefo",
]

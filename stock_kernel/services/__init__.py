"""Stock services: write side, unit of work and event coordination."""

from stock_kernel.services.adjustment_service import AdjustmentService
from stock_kernel.services.allocation_service import AllocationService
from stock_kernel.services.classification_service import ClassificationService
from stock_kernel.services.event_coordinator import EventCommitCoordinator
from stock_kernel.services.receiving_service import ReceivingService
from stock_kernel.services.replenishment_service import ReplenishmentService
from stock_kernel.services.stock_engine import StockEngine
from stock_kernel.services.stock_level_monitor import StockLevelMonitor
from stock_kernel.services.unit_of_work import UnitOfWork

__all__ = [
    "AdjustmentService",
    "AllocationService",
    "ClassificationService",
    "EventCommitCoordinator",
    "ReceivingService",
    "ReplenishmentService",
    "StockEngine",
    "StockLevelMonitor",
    "UnitOfWork",
]

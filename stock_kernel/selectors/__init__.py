"""Read-only selectors returning DTOs."""

from stock_kernel.selectors.allocation_selector import AdjustmentSelector, AllocationSelector
from stock_kernel.selectors.restock_selector import RestockSelector, ThresholdSelector
from stock_kernel.selectors.stock_item_selector import StockItemSelector

__all__ = [
    "AdjustmentSelector",
    "AllocationSelector",
    "RestockSelector",
    "StockItemSelector",
    "ThresholdSelector",
]

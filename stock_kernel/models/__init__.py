"""ORM models for the stock kernel."""

from stock_kernel.models.adjustment import StockAdjustmentModel
from stock_kernel.models.allocation import StockAllocationModel
from stock_kernel.models.restock_request import RestockRequestModel
from stock_kernel.models.sequence_counter import SequenceCounterModel
from stock_kernel.models.stock_item import StockItemModel
from stock_kernel.models.stock_level_threshold import StockLevelThresholdModel

__all__ = [
    "RestockRequestModel",
    "SequenceCounterModel",
    "StockAdjustmentModel",
    "StockAllocationModel",
    "StockItemModel",
    "StockLevelThresholdModel",
]

"""Read-only queries over allocations and adjustment history."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import AdjustmentView, AllocationView
from stock_kernel.domain.types import AllocationStatus
from stock_kernel.models.adjustment import StockAdjustmentModel
from stock_kernel.models.allocation import StockAllocationModel
from stock_kernel.selectors.base import BaseSelector


class AllocationSelector(BaseSelector[StockAllocationModel]):

    def get_allocation(self, tenant_id: str, allocation_id: UUID) -> AllocationView | None:
        row = self.session.execute(
            select(StockAllocationModel).where(
                StockAllocationModel.tenant_id == tenant_id,
                StockAllocationModel.id == allocation_id,
            )
        ).scalar_one_or_none()
        return row.to_view() if row is not None else None

    def for_reference(self, tenant_id: str, reference_id: str) -> list[AllocationView]:
        stmt = (
            select(StockAllocationModel)
            .where(
                StockAllocationModel.tenant_id == tenant_id,
                StockAllocationModel.reference_id == reference_id,
            )
            .order_by(StockAllocationModel.allocated_at, StockAllocationModel.id)
        )
        return [row.to_view() for row in self.session.execute(stmt).scalars()]

    def active_for_lot(self, tenant_id: str, lot_id: UUID) -> list[AllocationView]:
        stmt = select(StockAllocationModel).where(
            StockAllocationModel.tenant_id == tenant_id,
            StockAllocationModel.lot_id == lot_id,
            StockAllocationModel.status == AllocationStatus.ALLOCATED,
        )
        return [row.to_view() for row in self.session.execute(stmt).scalars()]


class AdjustmentSelector(BaseSelector[StockAdjustmentModel]):

    def history(self, tenant_id: str, product_id: UUID) -> list[AdjustmentView]:
        """Adjustments of a product, oldest first."""
        stmt = (
            select(StockAdjustmentModel)
            .where(
                StockAdjustmentModel.tenant_id == tenant_id,
                StockAdjustmentModel.product_id == product_id,
            )
            .order_by(StockAdjustmentModel.adjusted_at, StockAdjustmentModel.id)
        )
        return [row.to_view() for row in self.session.execute(stmt).scalars()]

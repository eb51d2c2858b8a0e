"""
Module: stock_kernel.models.allocation
Responsibility: ORM persistence for allocations -- reservations of a quantity
    from one specific lot against a demand (sales order, picking order or a
    plain reservation).
Architecture position: Kernel > Models.

Invariants enforced:
    - quantity > 0 (CHECK constraint).
    - status moves ALLOCATED -> RELEASED exactly once; release() refuses a
      second transition.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString, enum_column
from stock_kernel.domain.dtos import AllocationView
from stock_kernel.domain.types import AllocationStatus, AllocationType
from stock_kernel.exceptions import AllocationAlreadyReleasedError


class StockAllocationModel(TrackedBase):
    """
    One per-lot slice of an allocation request.

    A request spanning several lots produces one row per touched lot; the
    rows share allocated_by / reference_id but are released independently.
    """

    __tablename__ = "stock_allocations"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_allocation_quantity_positive"),
        Index("idx_allocation_lot", "lot_id"),
        Index("idx_allocation_reference", "tenant_id", "reference_id"),
        Index("idx_allocation_product_status", "tenant_id", "product_id", "status"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    allocation_type: Mapped[AllocationType] = mapped_column(
        enum_column(AllocationType),
        nullable=False,
    )

    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[AllocationStatus] = mapped_column(
        enum_column(AllocationStatus),
        nullable=False,
        default=AllocationStatus.ALLOCATED,
    )

    allocated_by: Mapped[str] = mapped_column(String(100), nullable=False)

    allocated_at: Mapped[datetime] = mapped_column(nullable=False)

    released_at: Mapped[datetime | None] = mapped_column(nullable=True)

    released_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StockAllocation {self.id}: lot={self.lot_id} "
            f"qty={self.quantity} {self.status.value}>"
        )

    def to_view(self) -> AllocationView:
        return AllocationView(
            id=self.id,
            tenant_id=self.tenant_id,
            product_id=self.product_id,
            location_id=self.location_id,
            lot_id=self.lot_id,
            quantity=self.quantity,
            allocation_type=self.allocation_type,
            reference_id=self.reference_id,
            status=self.status,
            allocated_by=self.allocated_by,
            allocated_at=self.allocated_at,
            released_at=self.released_at,
        )

    @property
    def is_released(self) -> bool:
        return self.status == AllocationStatus.RELEASED

    def release(self, released_at: datetime, released_by: str | None = None) -> None:
        """
        Mark the allocation released.

        Raises: AllocationAlreadyReleasedError on a second release.
        Note: the lot's allocated_quantity is decremented by the service.
        """
        if self.is_released:
            raise AllocationAlreadyReleasedError(str(self.id))
        self.status = AllocationStatus.RELEASED
        self.released_at = released_at
        self.released_by = released_by
        self.updated_at = released_at

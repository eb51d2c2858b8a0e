"""
Module: stock_kernel.models.adjustment
Responsibility: Immutable audit record of a manual stock adjustment.  One row
    is written for every successful adjustment, whether it changed existing
    lots or materialized a new one.
Architecture position: Kernel > Models.

Invariants enforced:
    - quantity > 0, quantity_before >= 0, quantity_after >= 0.
    - INCREASE: quantity_after == quantity_before + quantity.
    - DECREASE: quantity_after == quantity_before - quantity.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString, enum_column
from stock_kernel.domain.dtos import AdjustmentView
from stock_kernel.domain.types import AdjustmentType


class StockAdjustmentModel(TrackedBase):
    """Append-only adjustment audit row."""

    __tablename__ = "stock_adjustments"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_adjustment_quantity_positive"),
        CheckConstraint("quantity_before >= 0", name="ck_adjustment_before_non_negative"),
        CheckConstraint("quantity_after >= 0", name="ck_adjustment_after_non_negative"),
        Index("idx_adjustment_product", "tenant_id", "product_id", "adjusted_at"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Set when the caller targeted one lot explicitly
    lot_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        enum_column(AdjustmentType),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[str] = mapped_column(String(200), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    authorization_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    adjusted_by: Mapped[str] = mapped_column(String(100), nullable=False)

    adjusted_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StockAdjustment {self.id}: {self.adjustment_type.value} "
            f"{self.quantity} ({self.quantity_before} -> {self.quantity_after})>"
        )

    def to_view(self) -> AdjustmentView:
        return AdjustmentView(
            id=self.id,
            product_id=self.product_id,
            location_id=self.location_id,
            lot_id=self.lot_id,
            adjustment_type=self.adjustment_type,
            quantity=self.quantity,
            quantity_before=self.quantity_before,
            quantity_after=self.quantity_after,
            reason=self.reason,
            authorization_code=self.authorization_code,
            adjusted_by=self.adjusted_by,
            adjusted_at=self.adjusted_at,
        )

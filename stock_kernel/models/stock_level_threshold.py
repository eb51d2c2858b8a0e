"""
Module: stock_kernel.models.stock_level_threshold
Responsibility: Min/max stock levels per product, either at one location or
    warehouse wide (location_id NULL), and whether falling to the minimum
    should trigger replenishment automatically.
Architecture position: Kernel > Models.

Invariants enforced:
    - minimum_quantity >= 0.
    - maximum_quantity > minimum_quantity when set.
    - One threshold per tenant, product and location_key.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.dtos import ThresholdView


class StockLevelThresholdModel(TrackedBase):
    __tablename__ = "stock_level_thresholds"

    __table_args__ = (
        CheckConstraint("minimum_quantity >= 0", name="ck_threshold_minimum_non_negative"),
        UniqueConstraint(
            "tenant_id", "product_id", "location_key", name="uq_threshold_product_location"
        ),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    location_key: Mapped[str] = mapped_column(String(36), nullable=False)

    minimum_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    maximum_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    enable_auto_restock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<StockLevelThreshold product={self.product_id} "
            f"location={self.location_id} min={self.minimum_quantity} "
            f"max={self.maximum_quantity} auto={self.enable_auto_restock}>"
        )

    def to_view(self) -> ThresholdView:
        return ThresholdView(
            id=self.id,
            product_id=self.product_id,
            location_id=self.location_id,
            minimum_quantity=self.minimum_quantity,
            maximum_quantity=self.maximum_quantity,
            enable_auto_restock=self.enable_auto_restock,
        )

    def is_below_minimum(self, current_quantity: int) -> bool:
        """At or below the minimum counts as low stock."""
        return current_quantity <= self.minimum_quantity

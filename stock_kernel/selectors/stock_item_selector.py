"""
Module: stock_kernel.selectors.stock_item_selector
Responsibility: Read-only queries over lots: single-lot lookup, FEFO-ordered
    listings, expiring-stock reports and aggregate stock levels.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import func, or_, select

from stock_kernel.domain.dtos import LotView, StockLevel
from stock_kernel.domain.fefo import sort_fefo
from stock_kernel.domain.types import Classification
from stock_kernel.models.stock_item import StockItemModel
from stock_kernel.selectors.base import BaseSelector


class StockItemSelector(BaseSelector[StockItemModel]):
    """Read-side access to lots."""

    def get_lot(self, tenant_id: str, lot_id: UUID) -> LotView | None:
        lot = self.session.execute(
            select(StockItemModel).where(
                StockItemModel.tenant_id == tenant_id,
                StockItemModel.id == lot_id,
            )
        ).scalar_one_or_none()
        return lot.to_view() if lot is not None else None

    def lots_for_product(
        self,
        tenant_id: str,
        product_id: UUID,
        location_id: UUID | None = None,
        include_empty: bool = False,
    ) -> list[LotView]:
        """Lots of a product in FEFO order, optionally at one location."""
        stmt = select(StockItemModel).where(
            StockItemModel.tenant_id == tenant_id,
            StockItemModel.product_id == product_id,
        )
        if location_id is not None:
            stmt = stmt.where(StockItemModel.location_id == location_id)
        if not include_empty:
            stmt = stmt.where(StockItemModel.quantity > 0)
        stmt = stmt.order_by(StockItemModel.receipt_seq)
        lots = [lot.to_view() for lot in self.session.execute(stmt).scalars()]
        return sort_fefo(lots, lambda lot: lot.expiration_date)

    def allocatable_lots(
        self,
        tenant_id: str,
        product_id: UUID,
        today: date,
    ) -> list[LotView]:
        """Lots eligible for allocation today, in FEFO order."""
        return [
            lot
            for lot in self.lots_for_product(tenant_id, product_id)
            if lot.classification != Classification.EXPIRED
            and (lot.expiration_date is None or lot.expiration_date >= today)
            and lot.available_quantity > 0
        ]

    def expiring_lots(
        self,
        tenant_id: str,
        today: date,
        within_days: int,
    ) -> list[LotView]:
        """Non-empty lots expiring between today and today + within_days."""
        horizon = today + timedelta(days=within_days)
        stmt = (
            select(StockItemModel)
            .where(
                StockItemModel.tenant_id == tenant_id,
                StockItemModel.quantity > 0,
                StockItemModel.expiration_date.is_not(None),
                StockItemModel.expiration_date >= today,
                StockItemModel.expiration_date <= horizon,
            )
            .order_by(StockItemModel.expiration_date, StockItemModel.receipt_seq)
        )
        return [lot.to_view() for lot in self.session.execute(stmt).scalars()]

    def expired_lots(self, tenant_id: str, today: date) -> list[LotView]:
        """Non-empty lots labelled EXPIRED or already past their date."""
        stmt = (
            select(StockItemModel)
            .where(
                StockItemModel.tenant_id == tenant_id,
                StockItemModel.quantity > 0,
                or_(
                    StockItemModel.classification == Classification.EXPIRED,
                    StockItemModel.expiration_date < today,
                ),
            )
            .order_by(StockItemModel.expiration_date, StockItemModel.receipt_seq)
        )
        return [lot.to_view() for lot in self.session.execute(stmt).scalars()]

    def lot_ids_for_tenant(self, tenant_id: str) -> list[UUID]:
        """Every lot id of the tenant, in creation order."""
        stmt = (
            select(StockItemModel.id)
            .where(StockItemModel.tenant_id == tenant_id)
            .order_by(StockItemModel.receipt_seq)
        )
        return list(self.session.execute(stmt).scalars())

    def lots_for_consignment(self, tenant_id: str, consignment_id: UUID) -> list[LotView]:
        stmt = select(StockItemModel).where(
            StockItemModel.tenant_id == tenant_id,
            StockItemModel.consignment_id == consignment_id,
        ).order_by(StockItemModel.receipt_seq)
        return [lot.to_view() for lot in self.session.execute(stmt).scalars()]

    def locations_of(self, tenant_id: str, lot_ids: Iterable[UUID]) -> set[UUID | None]:
        """Distinct location_ids of the given lots; None for unassigned lots."""
        lot_ids = list(lot_ids)
        if not lot_ids:
            return set()
        stmt = select(StockItemModel.location_id).where(
            StockItemModel.tenant_id == tenant_id,
            StockItemModel.id.in_(lot_ids),
        )
        return set(self.session.execute(stmt).scalars())

    def stock_level(
        self,
        tenant_id: str,
        product_id: UUID,
        location_id: UUID | None = None,
    ) -> StockLevel:
        """
        Total, allocated and lot count for a product.

        With location_id, only lots bound to that location count; without,
        every lot of the product counts (warehouse wide).
        """
        stmt = select(
            func.coalesce(func.sum(StockItemModel.quantity), 0),
            func.coalesce(func.sum(StockItemModel.allocated_quantity), 0),
            func.count(StockItemModel.id),
        ).where(
            StockItemModel.tenant_id == tenant_id,
            StockItemModel.product_id == product_id,
        )
        if location_id is not None:
            stmt = stmt.where(StockItemModel.location_id == location_id)
        quantity, allocated, count = self.session.execute(stmt).one()
        return StockLevel(
            product_id=product_id,
            location_id=location_id,
            quantity=int(quantity),
            allocated_quantity=int(allocated),
            lot_count=int(count),
        )

"""
StockItemStore -- write-side loading of lots.

Services that mutate lots load them here rather than through the selectors:
rows come back as live ORM instances, locked with SELECT ... FOR UPDATE on
PostgreSQL (SQLite ignores the clause; the version column still catches
concurrent writers there).  Lots are returned in creation order so that
FEFO ties keep that order.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from stock_kernel.exceptions import LotNotFoundError
from stock_kernel.models.stock_item import StockItemModel


class StockItemStore:

    def __init__(self, session: Session, lock: bool = True):
        self.session = session
        self.lock = lock

    def _run(self, stmt: Select) -> list[StockItemModel]:
        if self.lock:
            stmt = stmt.with_for_update()
        return list(self.session.execute(stmt).scalars())

    def get(self, tenant_id: str, lot_id: UUID) -> StockItemModel:
        """
        Load one lot of the tenant.

        Raises: LotNotFoundError when the id is unknown or belongs to
        another tenant.
        """
        rows = self._run(
            select(StockItemModel).where(
                StockItemModel.tenant_id == tenant_id,
                StockItemModel.id == lot_id,
            )
        )
        if not rows:
            raise LotNotFoundError(str(lot_id))
        return rows[0]

    def for_product(self, tenant_id: str, product_id: UUID) -> list[StockItemModel]:
        return self._run(
            select(StockItemModel)
            .where(
                StockItemModel.tenant_id == tenant_id,
                StockItemModel.product_id == product_id,
            )
            .order_by(StockItemModel.receipt_seq)
        )

    def at_location(
        self, tenant_id: str, product_id: UUID, location_id: UUID
    ) -> list[StockItemModel]:
        return self._run(
            select(StockItemModel)
            .where(
                StockItemModel.tenant_id == tenant_id,
                StockItemModel.product_id == product_id,
                StockItemModel.location_id == location_id,
            )
            .order_by(StockItemModel.receipt_seq)
        )

    def unassigned(self, tenant_id: str, product_id: UUID) -> list[StockItemModel]:
        return self._run(
            select(StockItemModel)
            .where(
                StockItemModel.tenant_id == tenant_id,
                StockItemModel.product_id == product_id,
                StockItemModel.location_id.is_(None),
            )
            .order_by(StockItemModel.receipt_seq)
        )

    def for_consignment(self, tenant_id: str, consignment_id: UUID) -> list[StockItemModel]:
        return self._run(
            select(StockItemModel)
            .where(
                StockItemModel.tenant_id == tenant_id,
                StockItemModel.consignment_id == consignment_id,
            )
            .order_by(StockItemModel.receipt_seq)
        )

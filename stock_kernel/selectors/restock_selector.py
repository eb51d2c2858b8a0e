"""Read-only queries over restock requests and stock level thresholds."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select

from stock_kernel.domain.dtos import RestockRequestView, ThresholdView
from stock_kernel.domain.types import ACTIVE_RESTOCK_STATUSES, RestockStatus
from stock_kernel.models.restock_request import RestockRequestModel, location_key_for
from stock_kernel.models.stock_level_threshold import StockLevelThresholdModel
from stock_kernel.selectors.base import BaseSelector


class RestockSelector(BaseSelector[RestockRequestModel]):

    def get_request(self, tenant_id: str, request_id: UUID) -> RestockRequestView | None:
        row = self.session.execute(
            select(RestockRequestModel).where(
                RestockRequestModel.tenant_id == tenant_id,
                RestockRequestModel.id == request_id,
            )
        ).scalar_one_or_none()
        return row.to_view() if row is not None else None

    def active_request(
        self,
        tenant_id: str,
        product_id: UUID,
        location_id: UUID | None = None,
    ) -> RestockRequestView | None:
        """The active (PENDING or SENT) request for product and location."""
        row = self.session.execute(
            select(RestockRequestModel).where(
                RestockRequestModel.tenant_id == tenant_id,
                RestockRequestModel.product_id == product_id,
                RestockRequestModel.location_key == location_key_for(location_id),
                RestockRequestModel.status.in_(sorted(ACTIVE_RESTOCK_STATUSES)),
            )
        ).scalars().first()
        return row.to_view() if row is not None else None

    def by_status(self, tenant_id: str, status: RestockStatus) -> list[RestockRequestView]:
        stmt = (
            select(RestockRequestModel)
            .where(
                RestockRequestModel.tenant_id == tenant_id,
                RestockRequestModel.status == status,
            )
            .order_by(RestockRequestModel.created_at)
        )
        return [row.to_view() for row in self.session.execute(stmt).scalars()]


class ThresholdSelector(BaseSelector[StockLevelThresholdModel]):

    def matching(
        self,
        tenant_id: str,
        product_id: UUID,
        *location_ids: UUID | None,
    ) -> list[ThresholdView]:
        """
        Thresholds that apply to a change of product stock at location_ids.

        The warehouse-wide threshold (no location) always applies; a
        location threshold applies when the change touched that location.
        """
        keys = {location_key_for(None)}
        keys.update(location_key_for(loc) for loc in location_ids if loc is not None)
        stmt = (
            select(StockLevelThresholdModel)
            .where(
                StockLevelThresholdModel.tenant_id == tenant_id,
                StockLevelThresholdModel.product_id == product_id,
                or_(*(StockLevelThresholdModel.location_key == k for k in keys)),
            )
            .order_by(StockLevelThresholdModel.location_key)
        )
        return [row.to_view() for row in self.session.execute(stmt).scalars()]

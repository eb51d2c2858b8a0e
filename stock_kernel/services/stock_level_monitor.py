"""
StockLevelMonitor -- thresholds and low-stock signals.

Responsibility:
    Maintains per-product min/max thresholds (at one location or warehouse
    wide) and, after a stock change, reports every applicable threshold the
    product's available quantity has fallen to.  Thresholds with
    auto-restock enabled trigger replenishment.

Invariants:
    - A threshold applies to a change at location L when it is bound to L
      or is warehouse wide.  A change touches the caller's location and
      the location of every lot it drew from.  A threshold's current level
      is the available quantity (quantity - allocated) of the lots it
      covers.
    - At or below the minimum emits StockLevelBelowMinimum.
    - An already-active restock request is not an error here: repeated
      low-stock signals leave the existing request alone.
    - A duplicate detected by the unique index (a concurrent writer created
      the request first) is raised as OptimisticLockError so the whole
      operation is retried and the retry sees the committed request.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import StockLevelCheck, ThresholdView
from stock_kernel.domain.events import DomainEvent, StockLevelBelowMinimum
from stock_kernel.domain.policy import DEFAULT_POLICY, StockPolicy
from stock_kernel.exceptions import DuplicateRestockRequestError, OptimisticLockError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.factories import new_threshold
from stock_kernel.models.restock_request import location_key_for
from stock_kernel.models.stock_level_threshold import StockLevelThresholdModel
from stock_kernel.selectors.restock_selector import ThresholdSelector
from stock_kernel.selectors.stock_item_selector import StockItemSelector
from stock_kernel.services.base import BaseService
from stock_kernel.services.replenishment_service import ReplenishmentService

logger = get_logger("services.stock_level_monitor")


class StockLevelMonitor(BaseService[StockLevelThresholdModel]):

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_POLICY,
    ):
        super().__init__(session, clock)
        self.policy = policy
        self.thresholds = ThresholdSelector(session)
        self.levels = StockItemSelector(session)

    def set_threshold(
        self,
        *,
        tenant_id: str,
        product_id: UUID,
        minimum_quantity: int,
        maximum_quantity: int | None = None,
        location_id: UUID | None = None,
        enable_auto_restock: bool = False,
    ) -> ThresholdView:
        """Create or replace the threshold for product and location."""
        now = self.clock.now_utc()
        candidate = new_threshold(
            tenant_id=tenant_id,
            product_id=product_id,
            minimum_quantity=minimum_quantity,
            maximum_quantity=maximum_quantity,
            location_id=location_id,
            enable_auto_restock=enable_auto_restock,
            now=now,
        )
        existing = self.session.execute(
            select(StockLevelThresholdModel).where(
                StockLevelThresholdModel.tenant_id == tenant_id,
                StockLevelThresholdModel.product_id == product_id,
                StockLevelThresholdModel.location_key == location_key_for(location_id),
            )
        ).scalar_one_or_none()

        if existing is None:
            self.session.add(candidate)
            threshold = candidate
        else:
            existing.minimum_quantity = candidate.minimum_quantity
            existing.maximum_quantity = candidate.maximum_quantity
            existing.enable_auto_restock = candidate.enable_auto_restock
            existing.updated_at = now
            threshold = existing
        self.session.flush()

        logger.info(
            "stock_threshold_set",
            extra={
                "product_id": str(product_id),
                "location_id": str(location_id) if location_id else None,
                "minimum_quantity": minimum_quantity,
                "maximum_quantity": maximum_quantity,
                "enable_auto_restock": enable_auto_restock,
                "replaced": existing is not None,
            },
        )
        return threshold.to_view()

    def evaluate(
        self,
        *,
        tenant_id: str,
        product_id: UUID,
        location_id: UUID | None = None,
        touched_locations: Iterable[UUID | None] = (),
    ) -> StockLevelCheck:
        """
        Check every threshold that applies to a change at location_id or at
        any of touched_locations (the locations of the lots the change drew
        from).  Each threshold is evaluated once.
        """
        below: list[ThresholdView] = []
        requests = []
        events: list[DomainEvent] = []
        now = self.clock.now_utc()

        for threshold in self.thresholds.matching(
            tenant_id, product_id, location_id, *touched_locations
        ):
            level = self.levels.stock_level(tenant_id, product_id, threshold.location_id)
            current = level.available_quantity
            if current > threshold.minimum_quantity:
                continue

            below.append(threshold)
            events.append(
                StockLevelBelowMinimum(
                    tenant_id=tenant_id,
                    aggregate_id=threshold.id,
                    occurred_at=now,
                    product_id=product_id,
                    current_quantity=current,
                    minimum_quantity=threshold.minimum_quantity,
                    location_id=threshold.location_id,
                )
            )
            logger.info(
                "stock_below_minimum",
                extra={
                    "product_id": str(product_id),
                    "location_id": str(threshold.location_id) if threshold.location_id else None,
                    "current_quantity": current,
                    "minimum_quantity": threshold.minimum_quantity,
                },
            )

            if not threshold.enable_auto_restock:
                continue

            replenishment = ReplenishmentService(self.session, self.clock, self.policy)
            try:
                result = replenishment.trigger_replenishment(
                    tenant_id=tenant_id,
                    product_id=product_id,
                    current_quantity=current,
                    minimum_quantity=threshold.minimum_quantity,
                    maximum_quantity=threshold.maximum_quantity,
                    location_id=threshold.location_id,
                )
            except DuplicateRestockRequestError as exc:
                if isinstance(exc.__cause__, IntegrityError):
                    raise OptimisticLockError("restock_requests") from exc
                logger.debug(
                    "restock_request_already_active",
                    extra={
                        "product_id": str(product_id),
                        "existing_request_id": exc.existing_request_id,
                    },
                )
                continue
            requests.append(result.request)
            events.extend(result.events)

        return StockLevelCheck(
            below_minimum=tuple(below),
            restock_requests=tuple(requests),
            events=tuple(events),
        )

"""
ClassificationService -- persists expiry classification transitions.

Responsibility:
    Recomputes a lot's classification from its expiration date and the
    Clock's today, and stores it when it changed.  Also applies corrections
    to a lot's expiration date, reclassifying against the corrected date.

Invariants:
    - Unchanged classification: no write, no event.
    - Changed classification: classification and last_checked_date are
      stored, LotClassified is emitted, plus LotExpiringAlert when entering
      CRITICAL or NEAR_EXPIRY, or LotExpired when entering EXPIRED.
    - classify touches only classification and last_checked_date;
      update_expiration_date also stores the new date, and refuses a past
      date for a lot placed at a location.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from stock_kernel.domain.classification import (
    DEFAULT_WINDOWS,
    ExpiryWindows,
    classify,
    days_until_expiration,
    is_alerting,
)
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import ClassificationResult
from stock_kernel.domain.events import (
    DomainEvent,
    LotClassified,
    LotExpired,
    LotExpiringAlert,
)
from stock_kernel.domain.types import Classification
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_item import StockItemModel
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_item_store import StockItemStore

logger = get_logger("services.classification")


def urgency_event(
    lot: StockItemModel,
    days_remaining: int | None,
    now: datetime,
) -> DomainEvent | None:
    """LotExpired or LotExpiringAlert for the lot's current label, if any."""
    current = lot.classification
    if current == Classification.EXPIRED:
        return LotExpired(
            tenant_id=lot.tenant_id,
            aggregate_id=lot.id,
            occurred_at=now,
            product_id=lot.product_id,
            expiration_date=lot.expiration_date,
            quantity=lot.quantity,
        )
    if is_alerting(current) and days_remaining is not None:
        return LotExpiringAlert(
            tenant_id=lot.tenant_id,
            aggregate_id=lot.id,
            occurred_at=now,
            product_id=lot.product_id,
            days_remaining=days_remaining,
            new_classification=current,
            expiration_date=lot.expiration_date,
        )
    return None


def transition_events(
    lot: StockItemModel,
    previous: Classification,
    days_remaining: int | None,
    now: datetime,
) -> list[DomainEvent]:
    """Events for a lot that has just moved from ``previous`` to its label."""
    events: list[DomainEvent] = [
        LotClassified(
            tenant_id=lot.tenant_id,
            aggregate_id=lot.id,
            occurred_at=now,
            product_id=lot.product_id,
            previous=previous,
            new=lot.classification,
        )
    ]
    urgent = urgency_event(lot, days_remaining, now)
    if urgent is not None:
        events.append(urgent)
    return events


class ClassificationService(BaseService[StockItemModel]):

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        windows: ExpiryWindows = DEFAULT_WINDOWS,
    ):
        super().__init__(session, clock)
        self.windows = windows
        self.store = StockItemStore(session)

    def classify(self, *, tenant_id: str, lot_id: UUID) -> ClassificationResult:
        """Recompute one lot's label from its expiration date and today."""
        lot = self.store.get(tenant_id, lot_id)
        return self._reclassify(lot, self.clock.today())

    def update_expiration_date(
        self,
        *,
        tenant_id: str,
        lot_id: UUID,
        expiration_date: date | None,
    ) -> ClassificationResult:
        """
        Correct a lot's expiration date and reclassify it against the new date.

        The date is always stored.  The label and its events follow the same
        rules as ``classify``, so moving a CRITICAL lot out to a later date
        yields LotClassified back to NORMAL, and moving it into the past
        yields LotExpired and takes the lot out of allocation.

        Raises:
            LotNotFoundError: No such lot for the tenant.
            LotNotAssignableError: The lot is placed at a location and the
                new date has already passed.
        """
        lot = self.store.get(tenant_id, lot_id)
        today = self.clock.today()
        previous_date = lot.expiration_date
        lot.change_expiration_date(expiration_date, today, self.clock.now_utc())
        self.session.flush()

        logger.info(
            "lot_expiration_date_updated",
            extra={
                "lot_id": str(lot_id),
                "previous_date": previous_date,
                "expiration_date": expiration_date,
            },
        )
        return self._reclassify(lot, today)

    def _reclassify(self, lot: StockItemModel, today: date) -> ClassificationResult:
        lot_id = lot.id
        days = days_until_expiration(lot.expiration_date, today)
        new = classify(lot.expiration_date, today, self.windows)

        if new == lot.classification:
            logger.debug(
                "classification_unchanged",
                extra={"lot_id": str(lot_id), "classification": new.value},
            )
            return ClassificationResult(
                lot_id=lot.id,
                previous=new,
                current=new,
                days_until_expiration=days,
            )

        now = self.clock.now_utc()
        previous = lot.apply_classification(new, today, now)
        self.session.flush()

        logger.info(
            "lot_reclassified",
            extra={
                "lot_id": str(lot_id),
                "previous": previous.value,
                "new": new.value,
                "days_until_expiration": days,
            },
        )

        return ClassificationResult(
            lot_id=lot.id,
            previous=previous,
            current=new,
            days_until_expiration=days,
            events=tuple(transition_events(lot, previous, days, now)),
        )

"""
ReceivingService -- lot creation and location assignment.

Responsibility:
    Creates lots when stock arrives (a single receipt, or every line of a
    confirmed consignment) and binds unassigned lots to locations.

Invariants:
    - A new lot is classified against today at creation; a lot that
      arrives already CRITICAL, NEAR_EXPIRY or EXPIRED emits the matching
      alert or expired event next to LotCreated.
    - Consignment confirmation is idempotent: if lots already exist for the
      consignment, nothing is created and the existing lots are returned.
    - Consignment confirmation is all-or-nothing: every product code is
      resolved before the first lot is created.
    - Expired or empty lots cannot be placed at a location.

Failure Modes:
    - ProductNotFoundError: a consignment line's product code is unknown.
    - LotNotAssignableError: placing an expired or empty lot.
    - LocationUnavailableError: the location port refuses the placement.
    - StockValidationError: bad quantities or missing identifiers.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from stock_kernel.domain.classification import DEFAULT_WINDOWS, ExpiryWindows, classify
from stock_kernel.domain.classification import days_until_expiration
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import ConsignmentLine, LotView, ReceiptResult
from stock_kernel.domain.events import DomainEvent, LotCreated, LotLocationAssigned
from stock_kernel.domain.types import Classification
from stock_kernel.exceptions import (
    LocationUnavailableError,
    LotNotAssignableError,
    ProductNotFoundError,
    StockValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.factories import new_stock_item
from stock_kernel.models.stock_item import StockItemModel
from stock_kernel.ports import LocationAvailabilityChecker, ProductLookup
from stock_kernel.services.base import BaseService
from stock_kernel.services.classification_service import urgency_event
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_item_store import StockItemStore

logger = get_logger("services.receiving")


class ReceivingService(BaseService[StockItemModel]):

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        windows: ExpiryWindows = DEFAULT_WINDOWS,
        product_lookup: ProductLookup | None = None,
        location_checker: LocationAvailabilityChecker | None = None,
    ):
        super().__init__(session, clock)
        self.windows = windows
        self.product_lookup = product_lookup
        self.location_checker = location_checker
        self.store = StockItemStore(session)
        self.sequences = SequenceService(session)

    def _check_location(self, tenant_id: str, location_id: UUID, quantity: int) -> None:
        if self.location_checker is None:
            return
        availability = self.location_checker.check_availability(
            tenant_id, location_id, quantity
        )
        if not availability.can_accept:
            raise LocationUnavailableError(str(location_id), availability.describe())

    def _create_lot(
        self,
        *,
        tenant_id: str,
        product_id: UUID,
        quantity: int,
        expiration_date: date | None,
        location_id: UUID | None,
        consignment_id: UUID | None,
    ) -> tuple[StockItemModel, list[DomainEvent]]:
        today = self.clock.today()
        now = self.clock.now_utc()
        classification = classify(expiration_date, today, self.windows)
        if location_id is not None and classification == Classification.EXPIRED:
            raise LotNotAssignableError("new", "lot is expired")

        lot = new_stock_item(
            tenant_id=tenant_id,
            product_id=product_id,
            quantity=quantity,
            receipt_seq=self.sequences.next_value(SequenceService.STOCK_ITEM_RECEIPT),
            now=now,
            location_id=location_id,
            expiration_date=expiration_date,
            consignment_id=consignment_id,
            classification=classification,
            last_checked_date=today,
        )
        self.session.add(lot)

        events: list[DomainEvent] = [
            LotCreated(
                tenant_id=tenant_id,
                aggregate_id=lot.id,
                occurred_at=now,
                product_id=product_id,
                quantity=quantity,
                location_id=location_id,
                expiration_date=expiration_date,
                consignment_id=consignment_id,
                classification=classification,
            )
        ]
        urgent = urgency_event(lot, days_until_expiration(expiration_date, today), now)
        if urgent is not None:
            events.append(urgent)
        return lot, events

    def receive_lot(
        self,
        *,
        tenant_id: str,
        product_id: UUID,
        quantity: int,
        expiration_date: date | None = None,
        location_id: UUID | None = None,
        consignment_id: UUID | None = None,
    ) -> ReceiptResult:
        if quantity is None or quantity <= 0:
            raise StockValidationError(
                "stock receipt",
                [{"field": "quantity", "message": "must be greater than zero"}],
            )
        if location_id is not None:
            self._check_location(tenant_id, location_id, quantity)

        lot, events = self._create_lot(
            tenant_id=tenant_id,
            product_id=product_id,
            quantity=quantity,
            expiration_date=expiration_date,
            location_id=location_id,
            consignment_id=consignment_id,
        )
        self.session.flush()

        logger.info(
            "lot_received",
            extra={
                "lot_id": str(lot.id),
                "product_id": str(product_id),
                "quantity": quantity,
                "classification": lot.classification.value,
            },
        )
        return ReceiptResult(lots=(lot.to_view(),), events=tuple(events))

    def receive_consignment(
        self,
        *,
        tenant_id: str,
        consignment_id: UUID,
        lines: Sequence[ConsignmentLine],
    ) -> ReceiptResult:
        """Create one unassigned lot per consignment line, once."""
        existing = self.store.for_consignment(tenant_id, consignment_id)
        if existing:
            logger.info(
                "consignment_already_received",
                extra={"consignment_id": str(consignment_id), "lot_count": len(existing)},
            )
            return ReceiptResult(
                lots=tuple(lot.to_view() for lot in existing),
                already_received=True,
            )

        errors = []
        if not lines:
            errors.append({"field": "lines", "message": "must not be empty"})
        for index, line in enumerate(lines):
            if line.quantity is None or line.quantity <= 0:
                errors.append(
                    {"field": f"lines[{index}].quantity", "message": "must be greater than zero"}
                )
        if errors:
            raise StockValidationError("consignment", errors)
        if self.product_lookup is None:
            raise RuntimeError("Consignment confirmation requires a ProductLookup")

        resolved: list[tuple[ConsignmentLine, UUID]] = []
        for line in lines:
            product_id = self.product_lookup.resolve_product_id(tenant_id, line.product_code)
            if product_id is None:
                logger.warning(
                    "consignment_product_unknown",
                    extra={
                        "consignment_id": str(consignment_id),
                        "product_code": line.product_code,
                    },
                )
                raise ProductNotFoundError(line.product_code)
            resolved.append((line, product_id))

        lots: list[StockItemModel] = []
        events: list[DomainEvent] = []
        for line, product_id in resolved:
            lot, lot_events = self._create_lot(
                tenant_id=tenant_id,
                product_id=product_id,
                quantity=line.quantity,
                expiration_date=line.expiration_date,
                location_id=None,
                consignment_id=consignment_id,
            )
            lots.append(lot)
            events.extend(lot_events)
        self.session.flush()

        logger.info(
            "consignment_received",
            extra={"consignment_id": str(consignment_id), "lot_count": len(lots)},
        )
        return ReceiptResult(lots=tuple(lot.to_view() for lot in lots), events=tuple(events))

    def assign_location(
        self,
        *,
        tenant_id: str,
        lot_id: UUID,
        location_id: UUID,
    ) -> tuple[LotView, tuple[DomainEvent, ...]]:
        lot = self.store.get(tenant_id, lot_id)
        today = self.clock.today()
        if lot.is_expired(today):
            raise LotNotAssignableError(str(lot_id), "lot is expired")
        if lot.quantity <= 0:
            raise LotNotAssignableError(str(lot_id), "lot has no quantity")
        if lot.location_id == location_id:
            return lot.to_view(), ()

        self._check_location(tenant_id, location_id, lot.quantity)
        now = self.clock.now_utc()
        lot.bind_location(location_id, today, now)
        self.session.flush()

        logger.info(
            "lot_location_assigned",
            extra={"lot_id": str(lot_id), "location_id": str(location_id)},
        )
        event = LotLocationAssigned(
            tenant_id=tenant_id,
            aggregate_id=lot.id,
            occurred_at=now,
            product_id=lot.product_id,
            location_id=location_id,
        )
        return lot.to_view(), (event,)

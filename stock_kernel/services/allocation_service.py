"""
AllocationService -- FEFO multi-lot reservation and release.

Responsibility:
    Reserves a requested quantity of a product across one or more lots in
    First-Expired-First-Out order, and releases reservations.

Architecture:
    Kernel > Services.  Reads and locks lots through StockItemStore, plans
    with the pure ``domain.fefo`` functions, writes allocations through the
    validated factories, and returns the events it produced.

Invariants:
    - All-or-nothing: the complete FEFO plan is computed, and the location
      is checked, before the first write.  Either the allocations sum to
      exactly the requested quantity or nothing is written.
    - EXPIRED lots, and lots whose expiration date has passed, are never
      candidates.
    - A lot bound to another location is never drawn from for a request at
      a specific location; unassigned lots used for it get bound there.
    - Each touched lot's allocated_quantity grows by exactly its share and
      stays <= quantity.

Failure Modes:
    - StockValidationError: bad quantity, missing actor, missing reference
      for an order-type allocation.
    - InsufficientStockError: eligible lots cannot cover the quantity.
    - LocationUnavailableError: the location port refuses the placement.
    - AllocationNotFoundError / AllocationAlreadyReleasedError on release.
    - StaleDataError from flush when a concurrent writer won the race; the
      unit of work turns it into OptimisticLockError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import AllocationResult, ReleaseResult
from stock_kernel.domain.events import (
    DomainEvent,
    LotLocationAssigned,
    StockAllocated,
    StockAllocationReleased,
)
from stock_kernel.domain.fefo import plan_allocation
from stock_kernel.domain.types import AllocationType
from stock_kernel.exceptions import (
    AllocationAlreadyReleasedError,
    AllocationNotFoundError,
    InsufficientStockError,
    LocationUnavailableError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.allocation import StockAllocationModel
from stock_kernel.models.factories import new_allocation, validate_allocation_request
from stock_kernel.models.stock_item import StockItemModel
from stock_kernel.ports import LocationAvailabilityChecker
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_item_store import StockItemStore

logger = get_logger("services.allocation")


class AllocationService(BaseService[StockAllocationModel]):
    """
    Service for FEFO reservations against lots.

    Contract:
        ``allocate`` accepts a product, quantity and allocation type and
        returns an ``AllocationResult`` holding one frozen ``AllocationView``
        per lot drawn from, in FEFO order, plus the events produced.
        ``release`` returns a ``ReleaseResult``.  Both flush within the
        caller's transaction.

    Guarantees:
        - The allocations of one call sum to exactly the requested quantity.
        - Nothing is written when the request cannot be covered or the
          location refuses it.
        - Lots sharing an expiration date are drawn in receipt order.
        - A released allocation cannot be released again.

    Non-goals:
        - Does NOT call ``session.commit()``; the StockEngine owns the unit
          of work and delivers the returned events after commit.
        - Does NOT evaluate stock-level thresholds.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        location_checker: LocationAvailabilityChecker | None = None,
    ):
        super().__init__(session, clock)
        self.location_checker = location_checker
        self.store = StockItemStore(session)

    def _candidates(
        self,
        tenant_id: str,
        product_id: UUID,
        quantity: int,
        location_id: UUID | None,
    ) -> list[StockItemModel]:
        """Eligible lots, location-bound first with unassigned fallback."""
        today = self.clock.today()
        eligible = [
            lot
            for lot in self.store.for_product(tenant_id, product_id)
            if lot.can_be_allocated(today)
        ]
        if location_id is None:
            return eligible

        bound = [lot for lot in eligible if lot.location_id == location_id]
        if sum(lot.available_quantity for lot in bound) >= quantity:
            return bound
        return bound + [lot for lot in eligible if lot.location_id is None]

    def allocate(
        self,
        *,
        tenant_id: str,
        product_id: UUID,
        quantity: int,
        allocation_type: AllocationType,
        actor_id: str,
        location_id: UUID | None = None,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> AllocationResult:
        """
        Reserve ``quantity`` units of a product across lots, earliest expiry first.

        With ``location_id``, lots bound to that location are used first and
        unassigned lots fill the remainder; each unassigned lot drawn from is
        bound to the location (LotLocationAssigned).  Lots bound to another
        location are never used for a located request.

        Raises:
            StockValidationError: Bad quantity, missing actor, or an order
                type without a reference_id.
            InsufficientStockError: Eligible lots hold less than ``quantity``.
            LocationUnavailableError: The location port refused the placement.
        """
        validate_allocation_request(
            tenant_id=tenant_id,
            product_id=product_id,
            quantity=quantity,
            allocation_type=allocation_type,
            actor_id=actor_id,
            reference_id=reference_id,
        )

        candidates = self._candidates(tenant_id, product_id, quantity, location_id)
        available = sum(lot.available_quantity for lot in candidates)
        if available < quantity:
            logger.warning(
                "allocation_insufficient_stock",
                extra={
                    "product_id": str(product_id),
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(
                str(product_id), quantity, available,
                str(location_id) if location_id else None,
            )

        plan = plan_allocation(
            [lot.to_candidate() for lot in candidates], quantity, location_id
        )
        if not plan.is_complete:
            raise InsufficientStockError(
                str(product_id), quantity, plan.planned,
                str(location_id) if location_id else None,
            )

        if location_id is not None and self.location_checker is not None:
            availability = self.location_checker.check_availability(
                tenant_id, location_id, quantity
            )
            if not availability.can_accept:
                raise LocationUnavailableError(str(location_id), availability.describe())

        today = self.clock.today()
        now = self.clock.now_utc()
        lots = {lot.id: lot for lot in candidates}
        allocations: list[StockAllocationModel] = []
        events: list[DomainEvent] = []

        for piece in plan.slices:
            lot = lots[piece.lot_id]
            if piece.binds_location:
                lot.bind_location(location_id, today, now)
                events.append(
                    LotLocationAssigned(
                        tenant_id=tenant_id,
                        aggregate_id=lot.id,
                        occurred_at=now,
                        product_id=product_id,
                        location_id=location_id,
                    )
                )
            lot.reserve(piece.quantity, now)
            allocation = new_allocation(
                tenant_id=tenant_id,
                product_id=product_id,
                lot_id=lot.id,
                quantity=piece.quantity,
                allocation_type=allocation_type,
                allocated_by=actor_id,
                now=now,
                location_id=lot.location_id,
                reference_id=reference_id,
                notes=notes,
            )
            self.session.add(allocation)
            allocations.append(allocation)
            events.append(
                StockAllocated(
                    tenant_id=tenant_id,
                    aggregate_id=allocation.id,
                    occurred_at=now,
                    product_id=product_id,
                    lot_id=lot.id,
                    quantity=piece.quantity,
                    allocation_type=allocation_type,
                    location_id=lot.location_id,
                    reference_id=reference_id,
                )
            )

        self.session.flush()

        logger.info(
            "allocation_completed",
            extra={
                "product_id": str(product_id),
                "quantity": quantity,
                "lot_count": len(allocations),
                "allocation_type": allocation_type.value,
                "reference_id": reference_id,
            },
        )

        return AllocationResult(
            allocations=tuple(a.to_view() for a in allocations),
            total_quantity=quantity,
            events=tuple(events),
        )

    def release(
        self,
        *,
        tenant_id: str,
        allocation_id: UUID,
        actor_id: str | None = None,
    ) -> ReleaseResult:
        """Return an allocation's quantity to its lot.  Never a silent no-op."""
        stmt = select(StockAllocationModel).where(
            StockAllocationModel.tenant_id == tenant_id,
            StockAllocationModel.id == allocation_id,
        ).with_for_update()
        allocation = self.session.execute(stmt).scalar_one_or_none()
        if allocation is None:
            raise AllocationNotFoundError(str(allocation_id))
        if allocation.is_released:
            raise AllocationAlreadyReleasedError(str(allocation_id))

        now = self.clock.now_utc()
        lot = self.store.get(tenant_id, allocation.lot_id)
        lot.unreserve(allocation.quantity, now)
        allocation.release(now, actor_id)
        self.session.flush()

        logger.info(
            "allocation_released",
            extra={
                "allocation_id": str(allocation_id),
                "lot_id": str(lot.id),
                "quantity": allocation.quantity,
            },
        )

        event = StockAllocationReleased(
            tenant_id=tenant_id,
            aggregate_id=allocation.id,
            occurred_at=now,
            product_id=allocation.product_id,
            lot_id=lot.id,
            quantity=allocation.quantity,
        )
        return ReleaseResult(allocation=allocation.to_view(), events=(event,))

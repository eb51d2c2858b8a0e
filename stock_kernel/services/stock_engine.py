"""
StockEngine -- the caller-facing entry point of the stock kernel.

Responsibility:
    Runs every mutating operation in its own UnitOfWork, wires the services
    with the tenant's StockPolicy, hands the produced events to the
    EventCommitCoordinator (delivered after commit), and exposes the read
    queries callers need.

Architecture:
    Kernel > Services.  The only class that opens units of work.  Services
    below it flush; the engine commits.

Invariants:
    - One unit of work per operation; the classification sweep uses one per
      lot.
    - No event reaches the sink before the commit of the operation that
      produced it; a rolled-back operation delivers nothing.
    - OptimisticLockError is retried in a fresh unit of work up to the
      tenant's max_conflict_retries, then raised.
    - tenant_id, actor_id, operation and a fresh correlation_id are bound to
      the log context for the duration of each operation, and the attempt
      number for the duration of each unit of work.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Sequence
from datetime import date
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    AdjustmentResult,
    AdjustmentView,
    AllocationResult,
    AllocationView,
    ClassificationResult,
    ConsignmentLine,
    LotView,
    ReceiptResult,
    ReleaseResult,
    RestockRequestView,
    RestockResult,
    StockLevel,
    StockLevelCheck,
    SweepFailure,
    SweepResult,
    ThresholdView,
)
from stock_kernel.domain.events import DomainEvent
from stock_kernel.domain.policy import PolicyResolver, StockPolicy, default_policy_resolver
from stock_kernel.domain.types import AdjustmentType, AllocationType
from stock_kernel.exceptions import OptimisticLockError, StockKernelError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.ports import LocationAvailabilityChecker, MessagingSink, ProductLookup
from stock_kernel.selectors.allocation_selector import AdjustmentSelector, AllocationSelector
from stock_kernel.selectors.restock_selector import RestockSelector
from stock_kernel.selectors.stock_item_selector import StockItemSelector
from stock_kernel.services.adjustment_service import AdjustmentService
from stock_kernel.services.allocation_service import AllocationService
from stock_kernel.services.classification_service import ClassificationService
from stock_kernel.services.event_coordinator import EventCommitCoordinator
from stock_kernel.services.receiving_service import ReceivingService
from stock_kernel.services.replenishment_service import ReplenishmentService
from stock_kernel.services.stock_level_monitor import StockLevelMonitor
from stock_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.stock_engine")

T = TypeVar("T")


class StockEngine:
    """
    Caller-facing facade over the stock services.

    Contract:
        Each mutating method runs one operation in its own unit of work and
        returns the service's frozen result DTO, events included.  Query
        methods open a short read session and return frozen views.

    Guarantees:
        - Events are delivered to the sink after commit, in production
          order, and never for a rolled-back operation.
        - Allocations and adjustments evaluate stock-level thresholds for
          every location they touched, in the same unit of work.
        - An OptimisticLockError is retried in a fresh unit of work up to
          the tenant's ``max_conflict_retries``.
        - Tenant settings are resolved per call through ``policy_resolver``.

    Non-goals:
        - Does NOT own the database engine; callers pass a session factory.
        - Does NOT schedule the classification sweep.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        sink: MessagingSink,
        clock: Clock | None = None,
        policy_resolver: PolicyResolver = default_policy_resolver,
        product_lookup: ProductLookup | None = None,
        location_checker: LocationAvailabilityChecker | None = None,
    ):
        self.session_factory = session_factory
        self.coordinator = EventCommitCoordinator(sink)
        self.clock = clock or SystemClock()
        self.policy_resolver = policy_resolver
        self.product_lookup = product_lookup
        self.location_checker = location_checker

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        tenant_id: str,
        work: Callable[[UnitOfWork, StockPolicy], tuple[T, Sequence[DomainEvent]]],
        actor_id: str | None = None,
    ) -> T:
        policy = self.policy_resolver(tenant_id)
        attempts = policy.max_conflict_retries + 1

        with LogContext.operation(operation, tenant_id, actor_id):
            attempt = 0
            while True:
                attempt += 1
                try:
                    with LogContext.bind(attempt=attempt), UnitOfWork(self.session_factory) as uow:
                        result, events = work(uow, policy)
                        self.coordinator.dispatch(events, uow)
                    return result
                except OptimisticLockError as exc:
                    if attempt >= attempts:
                        logger.error(
                            "operation_conflict_retries_exhausted",
                            exc_info=True,
                            extra={"attempts": attempt, "entity_type": exc.entity_type},
                        )
                        raise
                    logger.warning(
                        "operation_conflict_retrying",
                        extra={"attempt": attempt, "entity_type": exc.entity_type},
                    )

    def _monitor(self, uow: UnitOfWork, policy: StockPolicy) -> StockLevelMonitor:
        return StockLevelMonitor(uow.session, self.clock, policy)

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

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
        Reserve stock FEFO across lots, then evaluate thresholds.

        The result's events hold the allocation events followed by any
        StockLevelBelowMinimum and RestockRequestGenerated events the
        threshold check produced.
        """

        def work(uow: UnitOfWork, policy: StockPolicy):
            service = AllocationService(uow.session, self.clock, self.location_checker)
            result = service.allocate(
                tenant_id=tenant_id,
                product_id=product_id,
                quantity=quantity,
                allocation_type=allocation_type,
                actor_id=actor_id,
                location_id=location_id,
                reference_id=reference_id,
                notes=notes,
            )
            check = self._monitor(uow, policy).evaluate(
                tenant_id=tenant_id,
                product_id=product_id,
                location_id=location_id,
                touched_locations=[a.location_id for a in result.allocations],
            )
            events = result.events + check.events
            return dataclasses.replace(result, events=events), events

        return self._run("allocate", tenant_id, work, actor_id)

    def release(
        self,
        *,
        tenant_id: str,
        allocation_id: UUID,
        actor_id: str | None = None,
    ) -> ReleaseResult:
        """Release one allocation back to its lot."""

        def work(uow: UnitOfWork, policy: StockPolicy):
            result = AllocationService(uow.session, self.clock).release(
                tenant_id=tenant_id, allocation_id=allocation_id, actor_id=actor_id
            )
            return result, result.events

        return self._run("release_allocation", tenant_id, work, actor_id)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, *, tenant_id: str, lot_id: UUID) -> ClassificationResult:
        """Recompute one lot's expiry label against today."""

        def work(uow: UnitOfWork, policy: StockPolicy):
            service = ClassificationService(uow.session, self.clock, policy.expiry_windows)
            result = service.classify(tenant_id=tenant_id, lot_id=lot_id)
            return result, result.events

        return self._run("classify", tenant_id, work)

    def update_expiration_date(
        self,
        *,
        tenant_id: str,
        lot_id: UUID,
        expiration_date: date | None,
        actor_id: str | None = None,
    ) -> ClassificationResult:
        """Store a corrected expiration date and reclassify the lot against it."""

        def work(uow: UnitOfWork, policy: StockPolicy):
            service = ClassificationService(uow.session, self.clock, policy.expiry_windows)
            result = service.update_expiration_date(
                tenant_id=tenant_id, lot_id=lot_id, expiration_date=expiration_date
            )
            return result, result.events

        return self._run("update_expiration_date", tenant_id, work, actor_id)

    def run_classification_sweep(self, *, tenant_id: str) -> SweepResult:
        """
        Reclassify every lot of the tenant, one unit of work per lot.

        A lot that fails is logged and reported in the result; the sweep
        carries on with the next lot.
        """
        with self.session_factory() as session:
            lot_ids = StockItemSelector(session).lot_ids_for_tenant(tenant_id)

        changed = 0
        failures: list[SweepFailure] = []
        events: list[DomainEvent] = []
        for lot_id in lot_ids:
            try:
                result = self.classify(tenant_id=tenant_id, lot_id=lot_id)
            except StockKernelError as exc:
                logger.error(
                    "classification_sweep_lot_failed",
                    exc_info=True,
                    extra={"lot_id": str(lot_id)},
                )
                failures.append(SweepFailure(lot_id=lot_id, error_code=exc.code, message=str(exc)))
                continue
            if result.changed:
                changed += 1
                events.extend(result.events)

        logger.info(
            "classification_sweep_completed",
            extra={
                "tenant_id": tenant_id,
                "examined": len(lot_ids),
                "changed": changed,
                "failed": len(failures),
            },
        )
        return SweepResult(
            examined=len(lot_ids),
            changed=changed,
            failures=tuple(failures),
            events=tuple(events),
        )

    # ------------------------------------------------------------------
    # Adjustment
    # ------------------------------------------------------------------

    def adjust(
        self,
        *,
        tenant_id: str,
        product_id: UUID,
        adjustment_type: AdjustmentType,
        quantity: int,
        reason: str,
        actor_id: str,
        location_id: UUID | None = None,
        lot_id: UUID | None = None,
        authorization_code: str | None = None,
        notes: str | None = None,
    ) -> AdjustmentResult:
        """
        Apply an audited adjustment, then evaluate thresholds at the caller's
        location and at the locations of every lot the adjustment changed.
        """

        def work(uow: UnitOfWork, policy: StockPolicy):
            service = AdjustmentService(uow.session, self.clock, policy)
            result = service.adjust(
                tenant_id=tenant_id,
                product_id=product_id,
                adjustment_type=adjustment_type,
                quantity=quantity,
                reason=reason,
                actor_id=actor_id,
                location_id=location_id,
                lot_id=lot_id,
                authorization_code=authorization_code,
                notes=notes,
            )
            check = self._monitor(uow, policy).evaluate(
                tenant_id=tenant_id,
                product_id=product_id,
                location_id=location_id,
                touched_locations=StockItemSelector(uow.session).locations_of(
                    tenant_id, result.lot_ids
                ),
            )
            events = result.events + check.events
            return dataclasses.replace(result, events=events), events

        return self._run("adjust", tenant_id, work, actor_id)

    # ------------------------------------------------------------------
    # Replenishment
    # ------------------------------------------------------------------

    def trigger_replenishment(
        self,
        *,
        tenant_id: str,
        product_id: UUID,
        current_quantity: int,
        minimum_quantity: int,
        maximum_quantity: int | None = None,
        location_id: UUID | None = None,
    ) -> RestockResult:
        """Open a restock request directly, bypassing thresholds."""

        def work(uow: UnitOfWork, policy: StockPolicy):
            result = ReplenishmentService(uow.session, self.clock, policy).trigger_replenishment(
                tenant_id=tenant_id,
                product_id=product_id,
                current_quantity=current_quantity,
                minimum_quantity=minimum_quantity,
                maximum_quantity=maximum_quantity,
                location_id=location_id,
            )
            return result, result.events

        return self._run("trigger_replenishment", tenant_id, work)

    def mark_restock_sent(
        self, *, tenant_id: str, request_id: UUID, external_order_reference: str
    ) -> RestockResult:
        def work(uow: UnitOfWork, policy: StockPolicy):
            result = ReplenishmentService(uow.session, self.clock, policy).mark_sent(
                tenant_id=tenant_id,
                request_id=request_id,
                external_order_reference=external_order_reference,
            )
            return result, result.events

        return self._run("mark_restock_sent", tenant_id, work)

    def mark_restock_fulfilled(self, *, tenant_id: str, request_id: UUID) -> RestockResult:
        def work(uow: UnitOfWork, policy: StockPolicy):
            result = ReplenishmentService(uow.session, self.clock, policy).mark_fulfilled(
                tenant_id=tenant_id, request_id=request_id
            )
            return result, result.events

        return self._run("mark_restock_fulfilled", tenant_id, work)

    def cancel_restock_request(self, *, tenant_id: str, request_id: UUID) -> RestockResult:
        def work(uow: UnitOfWork, policy: StockPolicy):
            result = ReplenishmentService(uow.session, self.clock, policy).cancel(
                tenant_id=tenant_id, request_id=request_id
            )
            return result, result.events

        return self._run("cancel_restock_request", tenant_id, work)

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
        def work(uow: UnitOfWork, policy: StockPolicy):
            view = self._monitor(uow, policy).set_threshold(
                tenant_id=tenant_id,
                product_id=product_id,
                minimum_quantity=minimum_quantity,
                maximum_quantity=maximum_quantity,
                location_id=location_id,
                enable_auto_restock=enable_auto_restock,
            )
            return view, ()

        return self._run("set_threshold", tenant_id, work)

    def check_stock_level(
        self, *, tenant_id: str, product_id: UUID, location_id: UUID | None = None
    ) -> StockLevelCheck:
        def work(uow: UnitOfWork, policy: StockPolicy):
            check = self._monitor(uow, policy).evaluate(
                tenant_id=tenant_id, product_id=product_id, location_id=location_id
            )
            return check, check.events

        return self._run("check_stock_level", tenant_id, work)

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    def _receiving(self, uow: UnitOfWork, policy: StockPolicy) -> ReceivingService:
        return ReceivingService(
            uow.session,
            self.clock,
            policy.expiry_windows,
            self.product_lookup,
            self.location_checker,
        )

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
        def work(uow: UnitOfWork, policy: StockPolicy):
            result = self._receiving(uow, policy).receive_lot(
                tenant_id=tenant_id,
                product_id=product_id,
                quantity=quantity,
                expiration_date=expiration_date,
                location_id=location_id,
                consignment_id=consignment_id,
            )
            return result, result.events

        return self._run("receive_lot", tenant_id, work)

    def receive_consignment(
        self,
        *,
        tenant_id: str,
        consignment_id: UUID,
        lines: Sequence[ConsignmentLine],
    ) -> ReceiptResult:
        """
        Create one unassigned lot per consignment line, in line order.

        Confirming the same consignment again returns the existing lots with
        ``already_received`` set and delivers no events.
        """

        def work(uow: UnitOfWork, policy: StockPolicy):
            result = self._receiving(uow, policy).receive_consignment(
                tenant_id=tenant_id, consignment_id=consignment_id, lines=lines
            )
            return result, result.events

        return self._run("receive_consignment", tenant_id, work)

    def assign_location(
        self, *, tenant_id: str, lot_id: UUID, location_id: UUID
    ) -> LotView:
        def work(uow: UnitOfWork, policy: StockPolicy):
            return self._receiving(uow, policy).assign_location(
                tenant_id=tenant_id, lot_id=lot_id, location_id=location_id
            )

        return self._run("assign_location", tenant_id, work)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_lot(self, tenant_id: str, lot_id: UUID) -> LotView | None:
        with self.session_factory() as session:
            return StockItemSelector(session).get_lot(tenant_id, lot_id)

    def lots_for_product(
        self, tenant_id: str, product_id: UUID, location_id: UUID | None = None
    ) -> list[LotView]:
        """Non-empty lots of a product in FEFO order."""
        with self.session_factory() as session:
            return StockItemSelector(session).lots_for_product(tenant_id, product_id, location_id)

    def expiring_lots(self, tenant_id: str, within_days: int) -> list[LotView]:
        with self.session_factory() as session:
            return StockItemSelector(session).expiring_lots(
                tenant_id, self.clock.today(), within_days
            )

    def stock_level(
        self, tenant_id: str, product_id: UUID, location_id: UUID | None = None
    ) -> StockLevel:
        with self.session_factory() as session:
            return StockItemSelector(session).stock_level(tenant_id, product_id, location_id)

    def get_allocation(self, tenant_id: str, allocation_id: UUID) -> AllocationView | None:
        with self.session_factory() as session:
            return AllocationSelector(session).get_allocation(tenant_id, allocation_id)

    def adjustment_history(self, tenant_id: str, product_id: UUID) -> list[AdjustmentView]:
        with self.session_factory() as session:
            return AdjustmentSelector(session).history(tenant_id, product_id)

    def active_restock_request(
        self, tenant_id: str, product_id: UUID, location_id: UUID | None = None
    ) -> RestockRequestView | None:
        with self.session_factory() as session:
            return RestockSelector(session).active_request(tenant_id, product_id, location_id)

"""
ReplenishmentService -- deduplicated restock requests and their lifecycle.

Responsibility:
    Creates a PENDING restock request when stock for a product (optionally
    at one location) is at or below its minimum, and moves requests through
    SENT / FULFILLED / CANCELLED.

Invariants:
    - At most one active (PENDING or SENT) request per tenant, product and
      location.  Checked through the selector first; the partial unique
      index on restock_requests rejects a concurrent insert that got past
      the check, which surfaces here as DuplicateRestockRequestError with
      the IntegrityError as its cause.
    - Priority bands: HIGH below high_ratio x minimum, MEDIUM below
      medium_ratio x minimum, LOW otherwise (exact Decimal arithmetic).
    - requested_quantity = max(0, maximum - current), or 2 x minimum when
      no maximum is configured.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import RestockResult
from stock_kernel.domain.events import RestockRequestGenerated, RestockRequestStatusChanged
from stock_kernel.domain.policy import DEFAULT_POLICY, StockPolicy
from stock_kernel.domain.replenishment import requested_quantity, restock_priority
from stock_kernel.domain.types import RestockStatus
from stock_kernel.exceptions import DuplicateRestockRequestError, RestockRequestNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.factories import new_restock_request, validate_restock_levels
from stock_kernel.models.restock_request import RestockRequestModel
from stock_kernel.selectors.restock_selector import RestockSelector
from stock_kernel.services.base import BaseService

logger = get_logger("services.replenishment")


class ReplenishmentService(BaseService[RestockRequestModel]):
    """
    Service for restock requests.

    Contract:
        Every public method returns a ``RestockResult``: the frozen request
        view and the events to deliver after commit.  Levels are supplied by
        the caller; this service never reads lot quantities.

    Guarantees:
        - A second trigger for a product and location with an active
          request raises DuplicateRestockRequestError and writes nothing.
        - Status moves PENDING -> SENT, and from PENDING or SENT to
          FULFILLED or CANCELLED.  Each move emits
          RestockRequestStatusChanged.
        - Priority ratios come from the tenant's ``StockPolicy``.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT place purchase orders; ``mark_sent`` only records the
          external reference of one placed elsewhere.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_POLICY,
    ):
        super().__init__(session, clock)
        self.policy = policy
        self.selector = RestockSelector(session)

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
        """
        Open a PENDING restock request for low stock.

        Requires ``current_quantity <= minimum_quantity``.  Priority and
        requested quantity are derived from the levels; the request and a
        RestockRequestGenerated event are returned.

        Raises:
            StockValidationError: Negative levels, maximum below minimum, or
                stock above the minimum.
            DuplicateRestockRequestError: An active request already exists,
                or a concurrent insert won the unique index.
        """
        validate_restock_levels(
            current_quantity=current_quantity,
            minimum_quantity=minimum_quantity,
            maximum_quantity=maximum_quantity,
        )

        existing = self.selector.active_request(tenant_id, product_id, location_id)
        if existing is not None:
            logger.info(
                "restock_request_duplicate",
                extra={
                    "product_id": str(product_id),
                    "location_id": str(location_id) if location_id else None,
                    "existing_request_id": str(existing.id),
                },
            )
            raise DuplicateRestockRequestError(
                str(product_id),
                str(location_id) if location_id else None,
                str(existing.id),
            )

        priority = restock_priority(
            current_quantity,
            minimum_quantity,
            self.policy.high_priority_ratio,
            self.policy.medium_priority_ratio,
        )
        quantity = requested_quantity(current_quantity, minimum_quantity, maximum_quantity)
        now = self.clock.now_utc()

        request = new_restock_request(
            tenant_id=tenant_id,
            product_id=product_id,
            current_quantity=current_quantity,
            minimum_quantity=minimum_quantity,
            maximum_quantity=maximum_quantity,
            requested_quantity=quantity,
            priority=priority,
            now=now,
            location_id=location_id,
        )
        self.session.add(request)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicateRestockRequestError(
                str(product_id), str(location_id) if location_id else None
            ) from exc

        logger.info(
            "restock_request_generated",
            extra={
                "request_id": str(request.id),
                "product_id": str(product_id),
                "priority": priority.value,
                "requested_quantity": quantity,
            },
        )

        event = RestockRequestGenerated(
            tenant_id=tenant_id,
            aggregate_id=request.id,
            occurred_at=now,
            product_id=product_id,
            priority=priority,
            requested_quantity=quantity,
            location_id=location_id,
        )
        return RestockResult(request=request.to_view(), events=(event,))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _load(self, tenant_id: str, request_id: UUID) -> RestockRequestModel:
        request = self.session.execute(
            select(RestockRequestModel)
            .where(
                RestockRequestModel.tenant_id == tenant_id,
                RestockRequestModel.id == request_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if request is None:
            raise RestockRequestNotFoundError(str(request_id))
        return request

    def _changed(
        self, request: RestockRequestModel, previous: RestockStatus | None
    ) -> RestockResult:
        if previous is None:
            return RestockResult(request=request.to_view())
        self.session.flush()
        logger.info(
            "restock_request_status_changed",
            extra={
                "request_id": str(request.id),
                "previous": previous.value,
                "new": request.status.value,
            },
        )
        event = RestockRequestStatusChanged(
            tenant_id=request.tenant_id,
            aggregate_id=request.id,
            occurred_at=request.updated_at,
            product_id=request.product_id,
            previous=previous,
            new=request.status,
            external_order_reference=request.external_order_reference,
        )
        return RestockResult(request=request.to_view(), events=(event,))

    def mark_sent(
        self, *, tenant_id: str, request_id: UUID, external_order_reference: str
    ) -> RestockResult:
        """PENDING -> SENT, recording the supplier order reference."""
        request = self._load(tenant_id, request_id)
        previous = request.mark_sent(external_order_reference, self.clock.now_utc())
        return self._changed(request, previous)

    def mark_fulfilled(self, *, tenant_id: str, request_id: UUID) -> RestockResult:
        """Idempotent: fulfilling a fulfilled request returns it unchanged."""
        request = self._load(tenant_id, request_id)
        previous = request.fulfil(self.clock.now_utc())
        return self._changed(request, previous)

    def cancel(self, *, tenant_id: str, request_id: UUID) -> RestockResult:
        request = self._load(tenant_id, request_id)
        previous = request.cancel(self.clock.now_utc())
        return self._changed(request, previous)

"""
AdjustmentService -- manual, audited quantity changes.

Responsibility:
    Increases or decreases the stock of a product within a resolved scope
    and writes an immutable adjustment record for every success.

Scope resolution (first match wins):
    1. lot_id given          -> that lot (must belong to tenant and product)
    2. location_id given     -> lots bound to the location, or the product's
                                unassigned lots when none are bound there
    3. otherwise             -> every lot of the product

Invariants:
    - Authorization: quantity >= the tenant's authorization threshold needs
      a non-blank authorization code.  Checked before any lot is read.
    - DECREASE never removes allocated units and never drives a lot
      negative; it is drawn across the scope in FEFO order.
    - INCREASE with an empty scope materializes a lot (no expiration, no
      consignment, bound to location_id when given).
    - quantity_before / quantity_after are scope totals, recorded in the
      audit row and the StockAdjusted event.

Failure Modes:
    - StockValidationError, MissingAuthorizationError, LotNotFoundError,
      NoStockToAdjustError, InsufficientStockForAdjustmentError.  Nothing
      is written on any of them.
"""

from __future__ import annotations

from uuid import UUID

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import AdjustmentResult
from stock_kernel.domain.events import DomainEvent, LotCreated, StockAdjusted
from stock_kernel.domain.fefo import sort_fefo
from stock_kernel.domain.policy import DEFAULT_POLICY, StockPolicy
from stock_kernel.domain.types import AdjustmentType
from stock_kernel.exceptions import (
    InsufficientStockForAdjustmentError,
    LotNotFoundError,
    MissingAuthorizationError,
    NoStockToAdjustError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.adjustment import StockAdjustmentModel
from stock_kernel.models.factories import (
    new_adjustment,
    new_stock_item,
    validate_adjustment_request,
)
from stock_kernel.models.stock_item import StockItemModel
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_item_store import StockItemStore

logger = get_logger("services.adjustment")


class AdjustmentService(BaseService[StockAdjustmentModel]):
    """
    Service for audited manual stock corrections.

    Contract:
        ``adjust`` returns an ``AdjustmentResult`` with the frozen audit
        record, the ids of every lot it changed or created, and the events
        to deliver after commit.

    Guarantees:
        - Every successful call writes exactly one adjustment record.
        - Allocated units are never removed.
        - Authorization is decided by the tenant's ``StockPolicy``.

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_POLICY,
    ):
        super().__init__(session, clock)
        self.policy = policy
        self.store = StockItemStore(session)
        self.sequences = SequenceService(session)

    def _resolve_scope(
        self,
        tenant_id: str,
        product_id: UUID,
        location_id: UUID | None,
        lot_id: UUID | None,
    ) -> list[StockItemModel]:
        if lot_id is not None:
            lot = self.store.get(tenant_id, lot_id)
            if lot.product_id != product_id:
                raise LotNotFoundError(str(lot_id))
            return [lot]
        if location_id is not None:
            bound = self.store.at_location(tenant_id, product_id, location_id)
            return bound or self.store.unassigned(tenant_id, product_id)
        return self.store.for_product(tenant_id, product_id)

    def _check_authorization(self, quantity: int, authorization_code: str | None) -> None:
        if not self.policy.requires_authorization(quantity):
            return
        if authorization_code is None or not authorization_code.strip():
            logger.warning(
                "adjustment_authorization_missing",
                extra={
                    "quantity": quantity,
                    "threshold": self.policy.authorization_threshold,
                },
            )
            raise MissingAuthorizationError(quantity, self.policy.authorization_threshold)

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
        """Apply an INCREASE or DECREASE to the resolved scope and record it."""
        validate_adjustment_request(
            tenant_id=tenant_id,
            product_id=product_id,
            adjustment_type=adjustment_type,
            quantity=quantity,
            reason=reason,
            actor_id=actor_id,
        )
        self._check_authorization(quantity, authorization_code)

        scope = self._resolve_scope(tenant_id, product_id, location_id, lot_id)
        before = sum(lot.quantity for lot in scope)
        now = self.clock.now_utc()
        events: list[DomainEvent] = []
        touched: list[StockItemModel] = []
        created: StockItemModel | None = None

        if adjustment_type == AdjustmentType.DECREASE:
            if before == 0:
                raise NoStockToAdjustError(
                    str(product_id), str(location_id) if location_id else None
                )
            if quantity > before:
                raise InsufficientStockForAdjustmentError(str(product_id), quantity, before)
            free = sum(lot.available_quantity for lot in scope)
            if quantity > free:
                raise InsufficientStockForAdjustmentError(str(product_id), quantity, free)

            remaining = quantity
            for lot in sort_fefo(scope, lambda item: item.expiration_date):
                if remaining == 0:
                    break
                take = min(remaining, lot.available_quantity)
                if take <= 0:
                    continue
                lot.decrease(take, now)
                touched.append(lot)
                remaining -= take
            after = before - quantity
        elif scope:
            target = scope[0]
            target.increase(quantity, now)
            touched.append(target)
            after = before + quantity
        else:
            created = new_stock_item(
                tenant_id=tenant_id,
                product_id=product_id,
                quantity=quantity,
                receipt_seq=self.sequences.next_value(SequenceService.STOCK_ITEM_RECEIPT),
                now=now,
                location_id=location_id,
                last_checked_date=self.clock.today(),
            )
            self.session.add(created)
            touched.append(created)
            events.append(
                LotCreated(
                    tenant_id=tenant_id,
                    aggregate_id=created.id,
                    occurred_at=now,
                    product_id=product_id,
                    quantity=quantity,
                    location_id=location_id,
                )
            )
            after = quantity

        adjustment = new_adjustment(
            tenant_id=tenant_id,
            product_id=product_id,
            adjustment_type=adjustment_type,
            quantity=quantity,
            quantity_before=before,
            quantity_after=after,
            reason=reason,
            adjusted_by=actor_id,
            now=now,
            location_id=location_id,
            lot_id=lot_id,
            notes=notes,
            authorization_code=authorization_code,
        )
        self.session.add(adjustment)
        self.session.flush()

        events.append(
            StockAdjusted(
                tenant_id=tenant_id,
                aggregate_id=adjustment.id,
                occurred_at=now,
                product_id=product_id,
                adjustment_type=adjustment_type,
                quantity=quantity,
                before=before,
                after=after,
                reason=adjustment.reason,
                location_id=location_id,
            )
        )

        logger.info(
            "stock_adjusted",
            extra={
                "product_id": str(product_id),
                "adjustment_type": adjustment_type.value,
                "quantity": quantity,
                "quantity_before": before,
                "quantity_after": after,
                "lot_count": len(touched),
                "materialized_lot": created is not None,
            },
        )

        return AdjustmentResult(
            adjustment=adjustment.to_view(),
            lot_ids=tuple(lot.id for lot in touched),
            created_lot_id=created.id if created is not None else None,
            events=tuple(events),
        )

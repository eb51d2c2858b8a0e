"""
Module: stock_kernel.models.restock_request
Responsibility: ORM persistence for restock requests -- replenishment demand
    generated when stock for a product (optionally at one location) falls to
    or below its minimum.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one ACTIVE (PENDING or SENT) request per tenant, product and
      location.  The service checks first; a partial unique index over
      (tenant_id, product_id, location_key) WHERE status is active rejects
      concurrent inserts that slip past the check.  location_key mirrors
      location_id with a sentinel for "no location", so warehouse-wide
      requests deduplicate too (NULLs never collide in a unique index).
    - Status transitions: PENDING -> SENT -> FULFILLED; CANCELLED from
      PENDING or SENT.  fulfil() on a FULFILLED request is a no-op.

Failure modes:
    - InvalidRestockTransitionError on an illegal transition.
    - IntegrityError on a duplicate active request (translated by the
      service to DuplicateRestockRequestError).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString, enum_column
from stock_kernel.domain.dtos import RestockRequestView
from stock_kernel.domain.types import RestockPriority, RestockStatus
from stock_kernel.exceptions import InvalidRestockTransitionError

ANY_LOCATION_KEY = "*"

_ACTIVE_PREDICATE = text("status IN ('pending', 'sent')")


def location_key_for(location_id: UUID | None) -> str:
    return str(location_id) if location_id is not None else ANY_LOCATION_KEY


class RestockRequestModel(TrackedBase):
    """Persistent restock request."""

    __tablename__ = "restock_requests"

    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="ck_restock_current_non_negative"),
        CheckConstraint("minimum_quantity >= 0", name="ck_restock_minimum_non_negative"),
        CheckConstraint("requested_quantity >= 0", name="ck_restock_requested_non_negative"),
        Index(
            "uq_restock_active_per_location",
            "tenant_id",
            "product_id",
            "location_key",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        Index("idx_restock_status", "tenant_id", "status"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    location_key: Mapped[str] = mapped_column(String(36), nullable=False)

    current_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    minimum_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    maximum_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    priority: Mapped[RestockPriority] = mapped_column(
        enum_column(RestockPriority),
        nullable=False,
    )

    status: Mapped[RestockStatus] = mapped_column(
        enum_column(RestockStatus),
        nullable=False,
        default=RestockStatus.PENDING,
    )

    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    external_order_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<RestockRequest {self.id}: product={self.product_id} "
            f"{self.priority.value} {self.status.value}>"
        )

    def to_view(self) -> RestockRequestView:
        return RestockRequestView(
            id=self.id,
            tenant_id=self.tenant_id,
            product_id=self.product_id,
            location_id=self.location_id,
            current_quantity=self.current_quantity,
            minimum_quantity=self.minimum_quantity,
            maximum_quantity=self.maximum_quantity,
            requested_quantity=self.requested_quantity,
            priority=self.priority,
            status=self.status,
            external_order_reference=self.external_order_reference,
            created_at=self.created_at,
        )

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def _refuse(self, target: RestockStatus) -> None:
        raise InvalidRestockTransitionError(
            str(self.id), self.status.value, target.value
        )

    def mark_sent(self, external_order_reference: str, now: datetime) -> RestockStatus:
        """PENDING -> SENT.  Returns the previous status."""
        if self.status != RestockStatus.PENDING:
            self._refuse(RestockStatus.SENT)
        previous = self.status
        self.status = RestockStatus.SENT
        self.external_order_reference = external_order_reference
        self.sent_at = now
        self.updated_at = now
        return previous

    def fulfil(self, now: datetime) -> RestockStatus | None:
        """PENDING/SENT -> FULFILLED.  Returns None when already fulfilled."""
        if self.status == RestockStatus.FULFILLED:
            return None
        if not self.is_active:
            self._refuse(RestockStatus.FULFILLED)
        previous = self.status
        self.status = RestockStatus.FULFILLED
        self.updated_at = now
        return previous

    def cancel(self, now: datetime) -> RestockStatus:
        """PENDING/SENT -> CANCELLED."""
        if not self.is_active:
            self._refuse(RestockStatus.CANCELLED)
        previous = self.status
        self.status = RestockStatus.CANCELLED
        self.updated_at = now
        return previous

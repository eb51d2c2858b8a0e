"""
Module: stock_kernel.models.stock_item
Responsibility: ORM persistence for lots (stock items).  A lot is a quantity
    of one product received together, optionally bound to one location and
    one expiration date.  Lots are never deleted; quantity may reach zero.
Architecture position: Kernel > Models.  May import from db/, domain/ and
    exceptions only.

Invariants enforced:
    - 0 <= allocated_quantity <= quantity, in every mutator below and as
      CHECK constraints in the database.
    - Optimistic versioning: ``version`` is the mapper's version_id_col, so
      every UPDATE is issued as ``... WHERE id = :id AND version = :seen``.
      A concurrent writer makes the flush fail with StaleDataError, which
      the unit of work translates to OptimisticLockError.
    - EXPIRED lots (or lots whose expiration date has passed) are never
      allocatable.
    - receipt_seq is strictly increasing in creation order, including for
      lots created in the same clock instant.

Failure modes:
    - QuantityInvariantError from reserve/unreserve/decrease when the
      mutation would break the quantity invariant.
    - LotNotAssignableError from bind_location for expired or empty lots.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString, enum_column
from stock_kernel.domain.classification import is_expired
from stock_kernel.domain.dtos import LotView
from stock_kernel.domain.fefo import LotCandidate
from stock_kernel.domain.types import Classification
from stock_kernel.exceptions import LotNotAssignableError, QuantityInvariantError


class StockItemModel(TrackedBase):
    """
    Persistent lot.

    Contract:
        Services mutate quantities only through reserve / unreserve /
        increase / decrease so the invariant is checked before the flush.

    Guarantees:
        - available_quantity == quantity - allocated_quantity >= 0.
        - version increments on every UPDATE.
    """

    __tablename__ = "stock_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_item_quantity_non_negative"),
        CheckConstraint(
            "allocated_quantity >= 0", name="ck_stock_item_allocated_non_negative"
        ),
        CheckConstraint(
            "allocated_quantity <= quantity", name="ck_stock_item_allocated_le_quantity"
        ),
        # Query: FEFO candidates for a product
        Index("idx_stock_item_product_expiry", "tenant_id", "product_id", "expiration_date"),
        # Query: creation order (FEFO tie-break)
        Index("idx_stock_item_receipt_seq", "tenant_id", "product_id", "receipt_seq"),
        # Query: lots at a location
        Index("idx_stock_item_product_location", "tenant_id", "product_id", "location_id"),
        # Query: idempotent consignment confirmation
        Index("idx_stock_item_consignment", "tenant_id", "consignment_id"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    allocated_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    expiration_date: Mapped[date | None] = mapped_column(nullable=True)

    classification: Mapped[Classification] = mapped_column(
        enum_column(Classification),
        nullable=False,
        default=Classification.NORMAL,
    )

    last_checked_date: Mapped[date | None] = mapped_column(nullable=True)

    consignment_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Creation order, from the stock_item_receipt sequence
    receipt_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<StockItem {self.id}: product={self.product_id} "
            f"qty={self.quantity} allocated={self.allocated_quantity} "
            f"{self.classification.value}>"
        )

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.allocated_quantity

    @property
    def is_unassigned(self) -> bool:
        return self.location_id is None

    def is_expired(self, today: date) -> bool:
        return is_expired(self.expiration_date, self.classification, today)

    def can_be_allocated(self, today: date) -> bool:
        """Non-expired and holding free quantity."""
        return not self.is_expired(today) and self.available_quantity > 0

    def to_view(self) -> LotView:
        return LotView(
            id=self.id,
            tenant_id=self.tenant_id,
            product_id=self.product_id,
            location_id=self.location_id,
            quantity=self.quantity,
            allocated_quantity=self.allocated_quantity,
            expiration_date=self.expiration_date,
            classification=self.classification,
            last_checked_date=self.last_checked_date,
            consignment_id=self.consignment_id,
            version=self.version,
            created_at=self.created_at,
        )

    def to_candidate(self) -> LotCandidate:
        return LotCandidate(
            lot_id=self.id,
            available=self.available_quantity,
            expiration_date=self.expiration_date,
            location_id=self.location_id,
        )

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def _check(self, quantity: int, allocated: int) -> None:
        if quantity < 0 or allocated < 0 or allocated > quantity:
            raise QuantityInvariantError(str(self.id), quantity, allocated)

    def reserve(self, quantity: int, now: datetime) -> None:
        """Increase allocated_quantity by ``quantity``."""
        self._check(self.quantity, self.allocated_quantity + quantity)
        self.allocated_quantity += quantity
        self.updated_at = now

    def unreserve(self, quantity: int, now: datetime) -> None:
        """Decrease allocated_quantity by ``quantity``."""
        self._check(self.quantity, self.allocated_quantity - quantity)
        self.allocated_quantity -= quantity
        self.updated_at = now

    def increase(self, quantity: int, now: datetime) -> None:
        self._check(self.quantity + quantity, self.allocated_quantity)
        self.quantity += quantity
        self.updated_at = now

    def decrease(self, quantity: int, now: datetime) -> None:
        """Remove unallocated units; allocated units are never removed."""
        self._check(self.quantity - quantity, self.allocated_quantity)
        self.quantity -= quantity
        self.updated_at = now

    def bind_location(self, location_id: UUID, today: date, now: datetime) -> None:
        if self.is_expired(today):
            raise LotNotAssignableError(str(self.id), "lot is expired")
        if self.quantity <= 0:
            raise LotNotAssignableError(str(self.id), "lot has no quantity")
        self.location_id = location_id
        self.updated_at = now

    def change_expiration_date(
        self, expiration_date: date | None, today: date, now: datetime
    ) -> None:
        """Replace the expiration date.  A placed lot cannot be given a past date."""
        if (
            self.location_id is not None
            and expiration_date is not None
            and expiration_date < today
        ):
            raise LotNotAssignableError(str(self.id), "lot is expired")
        self.expiration_date = expiration_date
        self.updated_at = now

    def apply_classification(
        self, classification: Classification, today: date, now: datetime
    ) -> Classification:
        """Store a new label; returns the previous one."""
        previous = self.classification
        self.classification = classification
        self.last_checked_date = today
        self.updated_at = now
        return previous

"""
FEFO (First-Expired, First-Out) ordering and allocation planning.

Responsibility:
    Pure planning for multi-lot allocation and decrease adjustments.  Given a
    candidate list of lot snapshots, produce the ordered list of per-lot
    slices that covers a requested quantity, or report the shortfall.  The
    plan is computed in full before the service writes anything, so a plan
    that cannot cover the request leaves no partial state behind.

Ordering:
    Ascending expiration date; lots without an expiration date sort last;
    ties keep input order (Python's sort is stable, and callers pass lots in
    creation order).
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import TypeVar
from uuid import UUID

T = TypeVar("T")


@dataclass(frozen=True)
class LotCandidate:
    """The planning view of a lot."""

    lot_id: UUID
    available: int
    expiration_date: date | None = None
    location_id: UUID | None = None


@dataclass(frozen=True)
class AllocationSlice:
    """Quantity to take from one lot."""

    lot_id: UUID
    quantity: int
    binds_location: bool = False


@dataclass(frozen=True)
class AllocationPlan:
    slices: tuple[AllocationSlice, ...]
    requested: int

    @property
    def planned(self) -> int:
        return sum(s.quantity for s in self.slices)

    @property
    def shortfall(self) -> int:
        return self.requested - self.planned

    @property
    def is_complete(self) -> bool:
        return self.shortfall == 0


def fefo_key(expiration_date: date | None) -> tuple[int, date]:
    """Sort key placing dated lots first by date, undated lots last."""
    if expiration_date is None:
        return (1, date.max)
    return (0, expiration_date)


def sort_fefo(items: Sequence[T], expiration: Callable[[T], date | None]) -> list[T]:
    """Stable FEFO sort of arbitrary items given an expiration accessor."""
    return sorted(items, key=lambda item: fefo_key(expiration(item)))


def plan_allocation(
    candidates: Sequence[LotCandidate],
    quantity: int,
    location_id: UUID | None = None,
) -> AllocationPlan:
    """
    Walk FEFO-sorted candidates taking min(remaining, available) from each.

    When location_id is given, lots bound to a different location are
    skipped and unassigned lots are marked to be bound to location_id.
    Lots with nothing available are skipped.

    Returns a plan whose shortfall is non-zero when the candidates cannot
    cover the quantity; the caller must treat that as a failure.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    remaining = quantity
    slices: list[AllocationSlice] = []
    for lot in sort_fefo(candidates, lambda c: c.expiration_date):
        if remaining == 0:
            break
        if lot.available <= 0:
            continue
        if (
            location_id is not None
            and lot.location_id is not None
            and lot.location_id != location_id
        ):
            continue
        take = min(remaining, lot.available)
        slices.append(
            AllocationSlice(
                lot_id=lot.lot_id,
                quantity=take,
                binds_location=location_id is not None and lot.location_id is None,
            )
        )
        remaining -= take

    return AllocationPlan(slices=tuple(slices), requested=quantity)

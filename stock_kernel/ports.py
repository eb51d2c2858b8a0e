"""
Ports to collaborators outside the stock kernel.

The kernel never talks to the product catalogue, the location service or a
message broker directly.  Callers plug implementations of these protocols
into the StockEngine.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID

from stock_kernel.domain.events import DomainEvent


@dataclass(frozen=True)
class LocationAvailability:
    """Answer from the location service for a prospective placement."""

    available: bool
    has_capacity: bool
    reason: str | None = None

    @property
    def can_accept(self) -> bool:
        return self.available and self.has_capacity

    def describe(self) -> str:
        if self.reason:
            return self.reason
        if not self.available:
            return "location is not available"
        if not self.has_capacity:
            return "location has insufficient capacity"
        return "ok"


@runtime_checkable
class ProductLookup(Protocol):
    """Resolves external product codes to product ids."""

    def resolve_product_id(self, tenant_id: str, product_code: str) -> UUID | None:
        ...


@runtime_checkable
class LocationAvailabilityChecker(Protocol):
    """Reports whether a location can take a quantity of stock."""

    def check_availability(
        self, tenant_id: str, location_id: UUID, quantity: int
    ) -> LocationAvailability:
        ...


@runtime_checkable
class MessagingSink(Protocol):
    """Receives batches of committed domain events."""

    def publish(self, events: Sequence[DomainEvent]) -> None:
        ...

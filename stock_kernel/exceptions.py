"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the kernel can produce is a distinct class with:
  1. A CODE class attribute (machine-readable, API-safe)
  2. A CATEGORY class attribute (validation / not found / business rule /
     conflict) so an outer layer can map errors to transport status codes
     without knowing the individual classes
  3. Structured attributes carrying the data needed to act on the error

Example:
    try:
        engine.allocate(...)
    except InsufficientStockError as e:
        api_response(code=e.code, requested=e.requested, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- StockValidationError
    |
    +-- NotFoundError
    |   +-- LotNotFoundError
    |   +-- AllocationNotFoundError
    |   +-- RestockRequestNotFoundError
    |   +-- ProductNotFoundError
    |
    +-- BusinessRuleError
    |   +-- InsufficientStockError
    |   +-- LocationUnavailableError
    |   +-- AllocationAlreadyReleasedError
    |   +-- MissingAuthorizationError
    |   +-- NoStockToAdjustError
    |   +-- InsufficientStockForAdjustmentError
    |   +-- LotNotAssignableError
    |   +-- QuantityInvariantError
    |   +-- DuplicateRestockRequestError
    |   +-- InvalidRestockTransitionError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                              | When Raised
----------------|-----------------------------------|-------------------------------------
Validation      | VALIDATION_FAILED                 | One or more input fields invalid
----------------|-----------------------------------|-------------------------------------
Not found       | LOT_NOT_FOUND                     | Lot id unknown for tenant
                | ALLOCATION_NOT_FOUND              | Allocation id unknown for tenant
                | RESTOCK_REQUEST_NOT_FOUND         | Restock request id unknown
                | PRODUCT_NOT_FOUND                 | Product code not resolvable
----------------|-----------------------------------|-------------------------------------
Business rule   | INSUFFICIENT_STOCK                | FEFO plan cannot cover the request
                | LOCATION_UNAVAILABLE              | Location closed or over capacity
                | ALLOCATION_ALREADY_RELEASED       | Release of a released allocation
                | MISSING_AUTHORIZATION             | Large adjustment without a code
                | NO_STOCK_TO_ADJUST                | Decrease against an empty scope
                | INSUFFICIENT_STOCK_FOR_ADJUSTMENT | Decrease exceeds free quantity
                | LOT_NOT_ASSIGNABLE                | Expired or empty lot placement
                | QUANTITY_INVARIANT_VIOLATION      | 0 <= allocated <= quantity broken
                | DUPLICATE_RESTOCK_REQUEST         | Active request already exists
                | INVALID_RESTOCK_TRANSITION        | Illegal restock status change
----------------|-----------------------------------|-------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT          | Concurrent modification detected

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS, FALL BACK TO CATEGORIES:

    try:
        engine.adjust(...)
    except MissingAuthorizationError as e:
        ask_for_supervisor(e.threshold)
    except BusinessRuleError as e:
        reject(e.code)

2. CONFLICTS ARE RETRYABLE:

    The StockEngine facade retries OptimisticLockError in a fresh unit of
    work before surfacing it.  Callers below the facade must do the same.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Coarse error classes used by outer layers for status mapping."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BUSINESS_RULE = "business_rule"
    CONFLICT = "conflict"


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and a `category` for coarse handling.
    """

    code: str = "STOCK_KERNEL_ERROR"
    category: ErrorCategory = ErrorCategory.BUSINESS_RULE


# Validation


class StockValidationError(StockKernelError):
    """
    One or more input fields failed validation.

    field_errors is a list of {"field": ..., "message": ...} dicts collected
    before anything was constructed or written.
    """

    code: str = "VALIDATION_FAILED"
    category: ErrorCategory = ErrorCategory.VALIDATION

    def __init__(self, entity_type: str, field_errors: list[dict]):
        self.entity_type = entity_type
        self.field_errors = field_errors
        details = "; ".join(f"{e['field']}: {e['message']}" for e in field_errors)
        super().__init__(f"Invalid {entity_type}: {details}")

    @property
    def fields(self) -> list[str]:
        return [e["field"] for e in self.field_errors]


# Not found


class NotFoundError(StockKernelError):
    """Base exception for lookups that resolved to nothing."""

    code: str = "NOT_FOUND"
    category: ErrorCategory = ErrorCategory.NOT_FOUND


class LotNotFoundError(NotFoundError):
    """Lot with given ID does not exist for the tenant."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, lot_id: str):
        self.lot_id = lot_id
        super().__init__(f"Lot not found: {lot_id}")


class AllocationNotFoundError(NotFoundError):
    """Allocation with given ID does not exist for the tenant."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, allocation_id: str):
        self.allocation_id = allocation_id
        super().__init__(f"Allocation not found: {allocation_id}")


class RestockRequestNotFoundError(NotFoundError):
    """Restock request with given ID does not exist for the tenant."""

    code: str = "RESTOCK_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Restock request not found: {request_id}")


class ProductNotFoundError(NotFoundError):
    """Product code could not be resolved through the product lookup."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_code: str):
        self.product_code = product_code
        super().__init__(f"Product not found: {product_code}")


# Business rules


class BusinessRuleError(StockKernelError):
    """Base exception for requests that are well-formed but not allowed."""

    code: str = "BUSINESS_RULE_VIOLATION"
    category: ErrorCategory = ErrorCategory.BUSINESS_RULE


class InsufficientStockError(BusinessRuleError):
    """Eligible lots cannot cover the requested allocation quantity."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int,
        location_id: str | None = None,
    ):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.location_id = location_id
        where = f" at location {location_id}" if location_id else ""
        super().__init__(
            f"Insufficient stock for product {product_id}{where}: "
            f"requested={requested}, available={available}"
        )


class LocationUnavailableError(BusinessRuleError):
    """Target location is unavailable or lacks capacity."""

    code: str = "LOCATION_UNAVAILABLE"

    def __init__(self, location_id: str, reason: str):
        self.location_id = location_id
        self.reason = reason
        super().__init__(f"Location {location_id} unavailable: {reason}")


class AllocationAlreadyReleasedError(BusinessRuleError):
    """Allocation has already been released."""

    code: str = "ALLOCATION_ALREADY_RELEASED"

    def __init__(self, allocation_id: str):
        self.allocation_id = allocation_id
        super().__init__(f"Allocation {allocation_id} is already released")


class MissingAuthorizationError(BusinessRuleError):
    """Adjustment at or above the threshold lacks an authorization code."""

    code: str = "MISSING_AUTHORIZATION"

    def __init__(self, quantity: int, threshold: int):
        self.quantity = quantity
        self.threshold = threshold
        super().__init__(
            f"Adjustment of {quantity} requires an authorization code "
            f"(threshold {threshold})"
        )


class NoStockToAdjustError(BusinessRuleError):
    """Decrease requested against a scope holding no stock."""

    code: str = "NO_STOCK_TO_ADJUST"

    def __init__(self, product_id: str, location_id: str | None = None):
        self.product_id = product_id
        self.location_id = location_id
        super().__init__(f"No stock to adjust for product {product_id}")


class InsufficientStockForAdjustmentError(BusinessRuleError):
    """Decrease exceeds the quantity (or unallocated quantity) in scope."""

    code: str = "INSUFFICIENT_STOCK_FOR_ADJUSTMENT"

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot decrease product {product_id} by {requested}: "
            f"only {available} adjustable"
        )


class LotNotAssignableError(BusinessRuleError):
    """Lot cannot be placed at a location (expired or empty)."""

    code: str = "LOT_NOT_ASSIGNABLE"

    def __init__(self, lot_id: str, reason: str):
        self.lot_id = lot_id
        self.reason = reason
        super().__init__(f"Lot {lot_id} cannot be assigned: {reason}")


class QuantityInvariantError(BusinessRuleError):
    """A mutation would break 0 <= allocated_quantity <= quantity."""

    code: str = "QUANTITY_INVARIANT_VIOLATION"

    def __init__(self, lot_id: str, quantity: int, allocated_quantity: int):
        self.lot_id = lot_id
        self.quantity = quantity
        self.allocated_quantity = allocated_quantity
        super().__init__(
            f"Lot {lot_id} would hold quantity={quantity}, "
            f"allocated={allocated_quantity}"
        )


class DuplicateRestockRequestError(BusinessRuleError):
    """An active restock request already exists for product and location."""

    code: str = "DUPLICATE_RESTOCK_REQUEST"

    def __init__(
        self,
        product_id: str,
        location_id: str | None = None,
        existing_request_id: str | None = None,
    ):
        self.product_id = product_id
        self.location_id = location_id
        self.existing_request_id = existing_request_id
        super().__init__(
            f"Active restock request already exists for product {product_id}"
            f" at location {location_id or 'any'}"
        )


class InvalidRestockTransitionError(BusinessRuleError):
    """Restock request cannot move from its current status to the target."""

    code: str = "INVALID_RESTOCK_TRANSITION"

    def __init__(self, request_id: str, from_status: str, to_status: str):
        self.request_id = request_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Restock request {request_id} cannot move from "
            f"{from_status} to {to_status}"
        )


# Concurrency


class ConcurrencyError(StockKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    category: ErrorCategory = ErrorCategory.CONFLICT


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id or ''}".rstrip()
            + ": entity was modified by another transaction"
        )

"""
Replenishment arithmetic -- priority and requested quantity.

Priority bands use exact Decimal arithmetic; lower bounds are inclusive and
upper bounds exclusive:

    current <  high_ratio * minimum                  -> HIGH
    high_ratio * minimum <= current < medium_ratio * minimum -> MEDIUM
    otherwise                                        -> LOW
"""

from decimal import Decimal

from stock_kernel.domain.types import RestockPriority

DEFAULT_HIGH_RATIO = Decimal("0.5")
DEFAULT_MEDIUM_RATIO = Decimal("0.8")


def restock_priority(
    current: int,
    minimum: int,
    high_ratio: Decimal = DEFAULT_HIGH_RATIO,
    medium_ratio: Decimal = DEFAULT_MEDIUM_RATIO,
) -> RestockPriority:
    current_d = Decimal(current)
    if current_d < high_ratio * minimum:
        return RestockPriority.HIGH
    if current_d < medium_ratio * minimum:
        return RestockPriority.MEDIUM
    return RestockPriority.LOW


def requested_quantity(current: int, minimum: int, maximum: int | None) -> int:
    """Quantity to order to bring stock back up.

    Targets maximum when set, otherwise twice the minimum.  Never negative.
    """
    target = maximum if maximum is not None else 2 * minimum
    return max(0, target - current)

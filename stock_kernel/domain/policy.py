"""
StockPolicy -- tenant-tunable business parameters in kernel form.

The kernel never reads configuration itself.  stock_config compiles YAML
settings into StockPolicy instances (see stock_config.bridges) and the
StockEngine asks a PolicyResolver for the policy of each tenant.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal

from stock_kernel.domain.classification import ExpiryWindows
from stock_kernel.domain.replenishment import DEFAULT_HIGH_RATIO, DEFAULT_MEDIUM_RATIO

DEFAULT_AUTHORIZATION_THRESHOLD = 100
DEFAULT_MAX_CONFLICT_RETRIES = 3


@dataclass(frozen=True)
class StockPolicy:
    """
    Parameters governing one tenant's stock operations.

    authorization_threshold: adjustments of this quantity or more need an
        authorization code.
    expiry_windows: critical / near-expiry day bounds for classification.
    high_priority_ratio / medium_priority_ratio: fractions of the minimum
        separating HIGH, MEDIUM and LOW restock priority.
    max_conflict_retries: extra attempts after an optimistic-lock conflict.
    """

    authorization_threshold: int = DEFAULT_AUTHORIZATION_THRESHOLD
    expiry_windows: ExpiryWindows = field(default_factory=ExpiryWindows)
    high_priority_ratio: Decimal = DEFAULT_HIGH_RATIO
    medium_priority_ratio: Decimal = DEFAULT_MEDIUM_RATIO
    max_conflict_retries: int = DEFAULT_MAX_CONFLICT_RETRIES

    def __post_init__(self) -> None:
        if self.authorization_threshold <= 0:
            raise ValueError("authorization_threshold must be positive")
        if not (Decimal("0") < self.high_priority_ratio < self.medium_priority_ratio):
            raise ValueError("priority ratios must satisfy 0 < high < medium")
        if self.max_conflict_retries < 0:
            raise ValueError("max_conflict_retries cannot be negative")

    def requires_authorization(self, quantity: int) -> bool:
        return quantity >= self.authorization_threshold


PolicyResolver = Callable[[str], StockPolicy]

DEFAULT_POLICY = StockPolicy()


def default_policy_resolver(tenant_id: str) -> StockPolicy:
    return DEFAULT_POLICY

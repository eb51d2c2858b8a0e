"""
Stock configuration schema.

StockSettings is the human-authored, per-tenant parameter set parsed from
YAML.  StockConfiguration holds the defaults plus tenant overrides of one
configuration set.  Kernel-facing StockPolicy objects are produced from
these by ``stock_config.bridges``.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger("stock_kernel.config")


@dataclass(frozen=True)
class StockSettings:
    """
    Tunable stock parameters for one tenant.

    authorization_threshold: adjustments of at least this many units need an
        authorization code.
    critical_days / near_expiry_days: inclusive day bounds for CRITICAL and
        NEAR_EXPIRY classification.
    high_priority_ratio / medium_priority_ratio: fractions of the minimum
        separating HIGH / MEDIUM / LOW restock priority.
    max_conflict_retries: extra attempts after an optimistic-lock conflict.
    """

    authorization_threshold: int = 100
    critical_days: int = 7
    near_expiry_days: int = 30
    high_priority_ratio: Decimal = Decimal("0.5")
    medium_priority_ratio: Decimal = Decimal("0.8")
    max_conflict_retries: int = 3

    def __post_init__(self):
        if self.authorization_threshold <= 0:
            raise ValueError("authorization_threshold must be positive")
        if self.critical_days < 0:
            raise ValueError("critical_days cannot be negative")
        if self.near_expiry_days < self.critical_days:
            raise ValueError("near_expiry_days must be >= critical_days")
        if not (Decimal("0") < self.high_priority_ratio < self.medium_priority_ratio):
            raise ValueError("priority ratios must satisfy 0 < high < medium")
        if self.medium_priority_ratio > Decimal("1"):
            raise ValueError("medium_priority_ratio cannot exceed 1")
        if self.max_conflict_retries < 0:
            raise ValueError("max_conflict_retries cannot be negative")

        logger.info(
            "stock_settings_initialized",
            extra={
                "authorization_threshold": self.authorization_threshold,
                "critical_days": self.critical_days,
                "near_expiry_days": self.near_expiry_days,
            },
        )

    @classmethod
    def with_defaults(cls) -> StockSettings:
        """Create settings with standard defaults."""
        return cls()

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], base: StockSettings | None = None
    ) -> StockSettings:
        """Build settings from a YAML mapping, layered over ``base``."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown stock settings: {sorted(unknown)}")

        values = asdict(base) if base is not None else {}
        for key, raw in data.items():
            values[key] = _coerce(key, raw)
        return cls(**values)


_DECIMAL_FIELDS = {"high_priority_ratio", "medium_priority_ratio"}


def _coerce(key: str, raw: Any) -> Any:
    if key in _DECIMAL_FIELDS:
        if isinstance(raw, float):
            raw = repr(raw)
        try:
            return Decimal(str(raw))
        except InvalidOperation as exc:
            raise ValueError(f"{key} must be a decimal, got {raw!r}") from exc
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{key} must be an integer, got {raw!r}")
    return raw


@dataclass(frozen=True)
class StockConfiguration:
    """Defaults plus per-tenant overrides of one configuration set."""

    name: str
    defaults: StockSettings = field(default_factory=StockSettings.with_defaults)
    tenants: dict[str, StockSettings] = field(default_factory=dict)

    def for_tenant(self, tenant_id: str) -> StockSettings:
        return self.tenants.get(tenant_id, self.defaults)

"""
Config -> Kernel bridges.

Converts StockSettings into kernel StockPolicy objects.  These live in
stock_config (the producer) because the kernel never imports stock_config.

Usage:
    from stock_config import get_active_config
    from stock_config.bridges import build_policy_resolver

    engine = StockEngine(
        session_factory,
        sink,
        policy_resolver=build_policy_resolver(get_active_config()),
    )
"""

from __future__ import annotations

from stock_config.schema import StockConfiguration, StockSettings
from stock_kernel.domain.classification import ExpiryWindows
from stock_kernel.domain.policy import PolicyResolver, StockPolicy


def to_policy(settings: StockSettings) -> StockPolicy:
    return StockPolicy(
        authorization_threshold=settings.authorization_threshold,
        expiry_windows=ExpiryWindows(
            critical_days=settings.critical_days,
            near_expiry_days=settings.near_expiry_days,
        ),
        high_priority_ratio=settings.high_priority_ratio,
        medium_priority_ratio=settings.medium_priority_ratio,
        max_conflict_retries=settings.max_conflict_retries,
    )


def build_policy_resolver(config: StockConfiguration) -> PolicyResolver:
    """Resolver returning each tenant's policy, compiled once per tenant."""
    default_policy = to_policy(config.defaults)
    tenant_policies = {
        tenant_id: to_policy(settings) for tenant_id, settings in config.tenants.items()
    }

    def resolve(tenant_id: str) -> StockPolicy:
        return tenant_policies.get(tenant_id, default_policy)

    return resolve

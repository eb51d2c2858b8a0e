"""
Configuration loading and the config -> kernel policy bridge.
"""

from decimal import Decimal
from textwrap import dedent

import pytest
import yaml

from stock_config import get_active_config
from stock_config.bridges import build_policy_resolver, to_policy
from stock_config.loader import load_configuration, parse_configuration
from stock_config.schema import StockSettings
from stock_kernel.domain.types import AdjustmentType
from stock_kernel.exceptions import MissingAuthorizationError
from stock_kernel.services.stock_engine import StockEngine


def _write(tmp_path, text):
    path = tmp_path / "stock.yaml"
    path.write_text(dedent(text))
    return path


class TestDefaultSet:

    def test_packaged_defaults(self):
        config = get_active_config()

        assert config.name == "default"
        assert config.tenants == {}
        assert config.defaults == StockSettings.with_defaults()
        assert config.defaults.high_priority_ratio == Decimal("0.5")

    def test_default_policy_matches_kernel_defaults(self):
        policy = to_policy(get_active_config().defaults)

        assert policy.authorization_threshold == 100
        assert policy.expiry_windows.critical_days == 7
        assert policy.expiry_windows.near_expiry_days == 30
        assert policy.max_conflict_retries == 3


class TestTenantOverrides:

    def test_override_merges_over_defaults(self, tmp_path):
        path = _write(
            tmp_path,
            """
            name: regional
            defaults:
              authorization_threshold: 200
              near_expiry_days: 45
            tenants:
              tenant-pharma:
                critical_days: 14
            """,
        )

        config = load_configuration(path)
        pharma = config.for_tenant("tenant-pharma")

        assert config.name == "regional"
        assert pharma.critical_days == 14
        assert pharma.near_expiry_days == 45
        assert pharma.authorization_threshold == 200
        assert config.for_tenant("tenant-unknown") == config.defaults

    def test_resolver_returns_tenant_policy(self, tmp_path):
        path = _write(
            tmp_path,
            """
            tenants:
              tenant-bulk:
                authorization_threshold: 1000
            """,
        )

        resolve = build_policy_resolver(load_configuration(path))

        assert resolve("tenant-bulk").authorization_threshold == 1000
        assert resolve("tenant-main").authorization_threshold == 100
        assert resolve("tenant-bulk") is resolve("tenant-bulk")

    def test_engine_applies_tenant_threshold(self, tmp_path, session_factory, sink, clock, actor_id, product_id):
        path = _write(
            tmp_path,
            """
            tenants:
              tenant-bulk:
                authorization_threshold: 1000
            """,
        )
        engine = StockEngine(
            session_factory,
            sink,
            clock=clock,
            policy_resolver=build_policy_resolver(load_configuration(path)),
        )

        bulk = engine.adjust(
            tenant_id="tenant-bulk",
            product_id=product_id,
            adjustment_type=AdjustmentType.INCREASE,
            quantity=500,
            reason="pallet received without ASN",
            actor_id=actor_id,
        )
        assert bulk.quantity_after == 500

        with pytest.raises(MissingAuthorizationError):
            engine.adjust(
                tenant_id="tenant-main",
                product_id=product_id,
                adjustment_type=AdjustmentType.INCREASE,
                quantity=500,
                reason="pallet received without ASN",
                actor_id=actor_id,
            )


class TestValidation:

    def test_unknown_setting_rejected(self):
        with pytest.raises(ValueError, match="Unknown stock settings"):
            parse_configuration({"defaults": {"authorisation_threshold": 5}})

    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            parse_configuration({"default": {}})

    def test_inverted_windows_rejected(self):
        with pytest.raises(ValueError, match="near_expiry_days"):
            parse_configuration({"defaults": {"critical_days": 40}})

    def test_non_integer_rejected(self):
        with pytest.raises(ValueError, match="must be an integer"):
            parse_configuration({"defaults": {"authorization_threshold": "lots"}})

    def test_float_ratio_parsed_exactly(self):
        config = parse_configuration({"defaults": {"high_priority_ratio": 0.3}})
        assert config.defaults.high_priority_ratio == Decimal("0.3")

    def test_tenant_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="must be a mapping"):
            parse_configuration({"tenants": {"tenant-main": 5}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = _write(tmp_path, "defaults: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_configuration(path)

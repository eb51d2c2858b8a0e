"""
Configuration Loader (``stock_config.loader``).

Loads a YAML configuration set and parses it into ``StockConfiguration``.

Expected shape::

    name: default
    defaults:
      authorization_threshold: 100
    tenants:
      tenant-a:
        authorization_threshold: 250

Tenant sections override individual keys; anything they omit comes from
``defaults``, which in turn falls back to the StockSettings defaults.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown or invalid keys  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import StockConfiguration, StockSettings

_TOP_LEVEL_KEYS = {"name", "defaults", "tenants"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_configuration(data: dict[str, Any], default_name: str = "default") -> StockConfiguration:
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    defaults = StockSettings.from_dict(data.get("defaults") or {})
    tenants: dict[str, StockSettings] = {}
    for tenant_id, overrides in (data.get("tenants") or {}).items():
        if not isinstance(overrides, dict):
            raise ValueError(f"Tenant section {tenant_id!r} must be a mapping")
        tenants[str(tenant_id)] = StockSettings.from_dict(overrides, base=defaults)

    return StockConfiguration(
        name=str(data.get("name", default_name)),
        defaults=defaults,
        tenants=tenants,
    )


def load_configuration(path: Path) -> StockConfiguration:
    return parse_configuration(load_yaml_file(path), default_name=Path(path).stem)

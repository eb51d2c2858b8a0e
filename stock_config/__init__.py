"""
stock_config -- single public entrypoint for stock configuration.

Responsibility:
    ``get_active_config()`` is the way to obtain configuration at runtime.
    It loads a YAML configuration set (the packaged ``sets/default.yaml``
    unless a path is given) and returns a validated StockConfiguration.

Architecture position:
    Sits above ``stock_kernel``.  The kernel never imports from
    ``stock_config``; ``stock_config.bridges`` turns settings into kernel
    StockPolicy objects.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set is missing.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stock_config.loader import load_configuration
from stock_config.schema import StockConfiguration, StockSettings

_logger = logging.getLogger("stock_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | None = None) -> StockConfiguration:
    """Load and validate a configuration set."""
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config = load_configuration(config_path)
    _logger.info(
        "stock_config_loaded",
        extra={
            "config_name": config.name,
            "path": str(config_path),
            "tenant_overrides": sorted(config.tenants),
        },
    )
    return config


__all__ = ["StockConfiguration", "StockSettings", "get_active_config"]

"""
inventory_config -- single public entrypoint for inventory configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration: the branch network, the central store, category lists,
    the fiscal-year policy, display labels and the database URL.

Architecture position:
    Configuration -- YAML-driven, loaded once per process by the caller.
    The kernel receives the returned ``InventoryConfig`` by injection and
    never reads files or environment variables itself.

Invariants enforced:
    - ``INVENTORY_DATABASE_URL`` (when set) overrides ``database.url``.
    - The same YAML always yields the same ``checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the config path does not exist.
    - ``ValueError`` / ``KeyError`` -- structural problems in the YAML.

Audit relevance:
    Every call emits an ``INVENTORY_CONFIG_TRACE`` log record carrying the
    config checksum, so a run can be tied to the exact file that governed it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from inventory_config.fiscal import (
    available_fiscal_years,
    fiscal_year_bounds,
    fiscal_year_label,
)
from inventory_config.loader import branch_id_from_name, load_config
from inventory_config.schema import (
    BranchDef,
    DatabaseConfig,
    FiscalYearPolicy,
    InventoryConfig,
    LabelConfig,
)

_logger = logging.getLogger("inventory_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "inventory.yaml"

DATABASE_URL_ENV = "INVENTORY_DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> InventoryConfig:
    """
    Load and return the active configuration.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``defaults/inventory.yaml``.

    Returns:
        Frozen ``InventoryConfig``.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path)

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        config = replace(config, database=replace(config.database, url=env_url))

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": config.checksum,
            "branch_count": len(config.branches),
            "central_store_id": config.central_store_id,
            "database_url_from_env": bool(env_url),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "DEFAULT_CONFIG_PATH",
    "DATABASE_URL_ENV",
    "BranchDef",
    "DatabaseConfig",
    "FiscalYearPolicy",
    "InventoryConfig",
    "LabelConfig",
    "available_fiscal_years",
    "branch_id_from_name",
    "fiscal_year_bounds",
    "fiscal_year_label",
]

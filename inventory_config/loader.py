"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Load the inventory YAML file and parse it into the frozen dataclasses of
``inventory_config.schema``.  Callers go through
``inventory_config.get_active_config()``; this module is its tooling.

Invariants enforced
-------------------
* Branch ids are derived from branch names: non-alphanumerics removed,
  lower-cased.  An explicit ``id`` in the YAML wins.
* Duplicate branch ids, or a branch id equal to the central store id,
  raise ``ValueError``.
* ``compute_checksum`` is a deterministic SHA-256 of the canonical JSON
  form of the raw YAML.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import re
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    BranchDef,
    DatabaseConfig,
    FiscalYearPolicy,
    InventoryConfig,
    LabelConfig,
)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def branch_id_from_name(name: str) -> str:
    """``"CALI, COLOMBIA"`` -> ``"calicolombia"``."""
    return _NON_ALNUM.sub("", name).lower()


def parse_branch(data: Any, is_central_store: bool = False) -> BranchDef:
    if isinstance(data, str):
        data = {"name": data}
    name = data["name"]
    return BranchDef(
        id=data.get("id") or branch_id_from_name(name),
        name=name,
        is_central_store=is_central_store,
        categories=tuple(data.get("categories", ())),
    )


def parse_fiscal_year(data: dict[str, Any]) -> FiscalYearPolicy:
    policy = FiscalYearPolicy(
        start_month=int(data.get("start_month", 4)),
        start_day=int(data.get("start_day", 1)),
        first_year=int(data.get("first_year", 2020)),
        last_year=int(data.get("last_year", 2030)),
    )
    if not 1 <= policy.start_month <= 12:
        raise ValueError(f"fiscal_year.start_month out of range: {policy.start_month}")
    if policy.last_year < policy.first_year:
        raise ValueError("fiscal_year.last_year precedes first_year")
    return policy


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=data.get("url", DatabaseConfig.url),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
    )


def parse_labels(data: dict[str, Any]) -> LabelConfig:
    defaults = LabelConfig()
    return LabelConfig(
        damage_issued_to=data.get("damage_issued_to", defaults.damage_issued_to),
        return_issued_to_prefix=data.get(
            "return_issued_to_prefix", defaults.return_issued_to_prefix,
        ),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> InventoryConfig:
    """
    Build an ``InventoryConfig`` from the raw YAML mapping.

    Raises:
        KeyError: ``branches`` or ``central_store`` missing.
        ValueError: duplicate branch ids or a bad fiscal-year policy.
    """
    branches = tuple(parse_branch(item) for item in data["branches"])
    central_store = parse_branch(data["central_store"], is_central_store=True)

    seen: set[str] = set()
    for branch in (*branches, central_store):
        if branch.id in seen:
            raise ValueError(f"Duplicate branch id: {branch.id}")
        seen.add(branch.id)

    return InventoryConfig(
        branches=branches,
        central_store=central_store,
        default_categories=tuple(data.get("default_categories", ())),
        fiscal_year=parse_fiscal_year(data.get("fiscal_year", {})),
        database=parse_database(data.get("database", {})),
        labels=parse_labels(data.get("labels", {})),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> InventoryConfig:
    return parse_config(load_yaml_file(path))

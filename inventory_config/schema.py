"""
Configuration schema (``inventory_config.schema``).

Responsibility
--------------
Frozen dataclasses describing a loaded inventory configuration.  These are
plain value objects; parsing lives in ``inventory_config.loader``.

Architecture position
---------------------
**Config layer** -- pure data definitions.  No I/O, no kernel imports.

Invariants enforced
-------------------
* All dataclasses are ``frozen=True``.
* Branch ids are unique and the central store id never collides with a
  branch id (checked by the loader).
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BranchDef:
    """One physical location that holds stock."""

    id: str
    name: str
    is_central_store: bool = False
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class FiscalYearPolicy:
    """Fiscal year boundaries: starts on ``start_month``/``start_day``."""

    start_month: int = 4
    start_day: int = 1
    first_year: int = 2020
    last_year: int = 2030


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class LabelConfig:
    """Display labels written into ledger rows by the workflows."""

    damage_issued_to: str = "Damaged / Written off"
    return_issued_to_prefix: str = "Returned by"


@dataclass(frozen=True)
class InventoryConfig:
    """
    Root configuration object.

    Contract:
        Produced only by ``inventory_config.get_active_config()``.
    Guarantees:
        - ``branches`` holds the school branches; ``central_store`` is
          separate and also reachable via ``branch()``.
    """

    branches: tuple[BranchDef, ...]
    central_store: BranchDef
    default_categories: tuple[str, ...] = ()
    fiscal_year: FiscalYearPolicy = field(default_factory=FiscalYearPolicy)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    labels: LabelConfig = field(default_factory=LabelConfig)
    checksum: str = ""

    @property
    def central_store_id(self) -> str:
        return self.central_store.id

    def all_branches(self) -> tuple[BranchDef, ...]:
        return (*self.branches, self.central_store)

    def branch(self, branch_id: str) -> BranchDef | None:
        for candidate in self.all_branches():
            if candidate.id == branch_id:
                return candidate
        return None

    def is_known_branch(self, branch_id: str) -> bool:
        return self.branch(branch_id) is not None

    def categories_for(self, branch_id: str) -> tuple[str, ...]:
        """Central store has its own category list; branches use the defaults."""
        found = self.branch(branch_id)
        if found is not None and found.categories:
            return found.categories
        return self.default_categories

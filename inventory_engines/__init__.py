"""
Module: inventory_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: stock
    valuation, issue lifecycle tracking and reporting aggregates.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel/domain (and sibling engine modules).

Invariants enforced:
    - Purity: engines never read the clock or the database; dates are
      passed in as zero-padded ``YYYY-MM-DD`` strings.
    - Decimal-only arithmetic for quantities and money.
    - Determinism: identical inputs always produce identical outputs.
"""

from inventory_engines.issue_lifecycle import (
    IssueStatus,
    UnresolvedLinks,
    active_issues,
    issue_status,
    suggest_return_quantity,
    unresolved_links,
)
from inventory_engines.reporting import (
    CategoryRollup,
    ConsumptionAnalytics,
    MonthlyFlow,
    PeriodSummary,
    category_rollup,
    consumption_analytics,
    period_summary,
)
from inventory_engines.valuation import StockLine, compute_stock, on_hand

__all__ = [
    "StockLine",
    "compute_stock",
    "on_hand",
    "IssueStatus",
    "UnresolvedLinks",
    "active_issues",
    "issue_status",
    "suggest_return_quantity",
    "unresolved_links",
    "CategoryRollup",
    "ConsumptionAnalytics",
    "MonthlyFlow",
    "PeriodSummary",
    "category_rollup",
    "consumption_analytics",
    "period_summary",
]

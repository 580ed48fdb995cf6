"""Read-only query selectors."""

from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["BaseSelector", "LedgerSelector"]

"""Read-only, ownership-scoped query selectors."""

from tea_kernel.selectors.item_selector import ItemSelector
from tea_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["ItemSelector", "LedgerSelector"]

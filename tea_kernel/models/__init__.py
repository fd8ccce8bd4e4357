"""Domain models for the tea kernel."""

from tea_kernel.models.account import Account, AccountRole
from tea_kernel.models.item import Item, ItemKind
from tea_kernel.models.ledger import LedgerEntry, StockReason

__all__ = [
    "Account",
    "AccountRole",
    "Item",
    "ItemKind",
    "LedgerEntry",
    "StockReason",
]

"""Write-side kernel services.  Each flushes within the caller's transaction."""

from tea_kernel.services.account_service import AccountPolicy, AccountService
from tea_kernel.services.item_service import ItemService
from tea_kernel.services.ledger_service import InventoryLedgerService
from tea_kernel.services.token_service import TokenService

__all__ = [
    "AccountPolicy",
    "AccountService",
    "InventoryLedgerService",
    "ItemService",
    "TokenService",
]

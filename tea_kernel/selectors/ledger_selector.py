"""
Module: tea_kernel.selectors.ledger_selector
Responsibility: Read-only queries over the stock ledger, joined through the
    owning item so ownership is enforced in SQL.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - list_logs() for an item the caller does not own (or that does not
      exist) returns an empty list, not an error.
    - reconcile() replays entries in sequence order and reports every
      entry whose balance does not follow from its predecessor.
"""

from uuid import UUID

from sqlalchemy import select

from tea_kernel.domain.dtos import (
    Identity,
    LedgerEntryInfo,
    LedgerReconciliation,
    parse_uuid,
)
from tea_kernel.exceptions import ItemNotFoundError
from tea_kernel.models.item import Item
from tea_kernel.models.ledger import LedgerEntry, StockReason
from tea_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[LedgerEntry]):
    """Queries over ledger entries of the caller's items."""

    def list_logs(self, identity: Identity, item_id: UUID | str) -> list[LedgerEntryInfo]:
        """Entries for one owned item, newest first."""
        parsed = parse_uuid(item_id)
        if parsed is None:
            return []

        entries = self.session.execute(
            select(LedgerEntry)
            .join(Item, LedgerEntry.item_id == Item.id)
            .where(
                LedgerEntry.item_id == parsed,
                Item.owner_id == identity.account_id,
            )
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.sequence.desc())
        ).scalars().all()
        return [LedgerEntryInfo.from_model(e) for e in entries]

    def reconcile(self, identity: Identity, item_id: UUID | str) -> LedgerReconciliation:
        """
        Replay an owned item's ledger against its stored quantity.

        Raises:
            ItemNotFoundError: Absent, malformed id, or not owned by caller.
        """
        parsed = parse_uuid(item_id)
        if parsed is None:
            raise ItemNotFoundError(str(item_id))

        item = self.session.execute(
            select(Item).where(Item.id == parsed, Item.owner_id == identity.account_id)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))

        entries = self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.item_id == item.id)
            .order_by(LedgerEntry.sequence.asc())
        ).scalars().all()

        broken: list[int] = []
        running = 0
        total = 0
        for position, entry in enumerate(entries, start=1):
            if position == 1:
                valid = (
                    StockReason(entry.reason) is StockReason.INITIAL
                    and entry.current_balance == entry.change_amount
                )
            else:
                valid = entry.current_balance == running + entry.change_amount
            if entry.sequence != position or not valid:
                broken.append(entry.sequence)
            running = entry.current_balance
            total += entry.change_amount

        return LedgerReconciliation(
            item_id=item.id,
            entry_count=len(entries),
            total_change=total,
            last_balance=entries[-1].current_balance if entries else None,
            item_quantity=item.quantity,
            broken_sequences=tuple(broken),
        )

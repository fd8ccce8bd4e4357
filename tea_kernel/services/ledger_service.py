"""
InventoryLedgerService -- append-only stock movements.

Responsibility:
    The only multi-table, multi-invariant write path.  Records a stock
    movement as a new ledger entry and moves the owning item's quantity,
    price and unit_price in the same transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Arithmetic lives in
    ``domain/valuation.py``; this module owns locking, sequencing and
    persistence.  Flushes within the caller's transaction; never commits.

Protocol (``adjust_stock``):
    1. SELECT the item by id AND owner ... FOR UPDATE.  No row means
       ItemNotFoundError, whether the item is absent or someone else's.
    2. Load the latest ledger entry and check its balance equals the
       item's quantity (LedgerDivergenceError otherwise).
    3. plan_movement(): effective unit price, new quantity, new total.
    4. INSERT the entry with sequence = last + 1.
    5. UPDATE the item.
    6. flush.  The caller's session_scope commits 4 and 5 together or
       rolls both back.

Invariants enforced:
    - Item quantity equals the latest entry's current_balance.
    - Each entry's current_balance == previous balance + change_amount.
    - (item_id, sequence) unique: a writer that somehow read a stale
      sequence fails at flush instead of forking the ledger.

Failure modes:
    - ItemNotFoundError: no such item in the caller's scope.
    - InvalidFieldError: unknown reason, INITIAL reason, non-integer delta.
    - EmptyMovementError / InsufficientStockError: from plan_movement().
    - LedgerDivergenceError: stored quantity disagrees with the ledger.
"""

from uuid import UUID

from sqlalchemy import select

from tea_kernel.domain.dtos import Identity, ItemInfo, parse_uuid
from tea_kernel.domain.valuation import plan_movement
from tea_kernel.exceptions import (
    InvalidFieldError,
    ItemNotFoundError,
    LedgerDivergenceError,
)
from tea_kernel.logging_config import get_logger
from tea_kernel.models.item import Item
from tea_kernel.models.ledger import LedgerEntry, StockReason
from tea_kernel.services.base import BaseService

logger = get_logger("services.ledger")


def parse_reason(reason: StockReason | str) -> StockReason:
    """Resolve a caller-supplied reason; INITIAL is not accepted."""
    try:
        parsed = StockReason(str(getattr(reason, "value", reason)).strip().upper())
    except ValueError:
        raise InvalidFieldError(
            "reason", f"must be one of {[r.value for r in StockReason]}"
        ) from None
    if parsed is StockReason.INITIAL:
        raise InvalidFieldError("reason", "INITIAL is reserved for the first entry")
    return parsed


class InventoryLedgerService(BaseService[LedgerEntry]):
    """
    Service for stock movements.

    Contract:
        Every public method takes the caller's Identity and only ever
        touches items owned by it.
    """

    def lock_item(self, identity: Identity, item_id: UUID | str) -> Item:
        """
        Load an owned item with a row lock for the rest of the transaction.

        Raises:
            ItemNotFoundError: Absent, malformed id, or not owned by caller.
        """
        parsed = parse_uuid(item_id)
        if parsed is None:
            raise ItemNotFoundError(str(item_id))

        item = self.session.execute(
            select(Item)
            .where(Item.id == parsed, Item.owner_id == identity.account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def last_entry(self, item: Item) -> LedgerEntry | None:
        """Most recent entry for an item, by sequence."""
        return self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.item_id == item.id)
            .order_by(LedgerEntry.sequence.desc())
            .limit(1)
        ).scalar_one_or_none()

    def check_consistent(self, item: Item, last: LedgerEntry | None) -> None:
        """
        Raise if the item's quantity disagrees with its ledger.

        An item with no entries must be empty.
        """
        balance = last.current_balance if last is not None else None
        if (balance if balance is not None else 0) != item.quantity:
            logger.error(
                "ledger_divergence_detected",
                extra={
                    "item_id": str(item.id),
                    "quantity": item.quantity,
                    "ledger_balance": balance,
                },
            )
            raise LedgerDivergenceError(str(item.id), item.quantity, balance)

    def append_entry(
        self,
        item: Item,
        last: LedgerEntry | None,
        change_amount: int,
        reason: StockReason,
        note: str | None = None,
    ) -> LedgerEntry:
        """
        Add the next entry after ``last``.

        The caller holds the item lock and has already checked consistency.
        """
        previous = last.current_balance if last is not None else 0
        entry = LedgerEntry(
            item_id=item.id,
            sequence=(last.sequence + 1) if last is not None else 1,
            change_amount=change_amount,
            current_balance=previous + change_amount,
            reason=reason,
            note=note,
            created_at=self._clock.now(),
        )
        self.session.add(entry)
        return entry

    def adjust_stock(
        self,
        identity: Identity,
        item_id: UUID | str,
        delta: int,
        reason: StockReason | str,
        note: str | None = None,
    ) -> ItemInfo:
        """
        Record a stock movement and apply it to the item.

        Args:
            identity: Resolved caller.
            item_id: Item to move.
            delta: Signed change; negative for consumption or loss.
            reason: One of PURCHASE, CONSUME, GIFT, DAMAGE, ADJUST.
            note: Optional free text.

        Returns:
            The item as it stands after the movement.
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidFieldError("delta", "must be a whole number")
        stock_reason = parse_reason(reason)

        item = self.lock_item(identity, item_id)
        last = self.last_entry(item)
        self.check_consistent(item, last)

        plan = plan_movement(
            str(item.id), item.quantity, item.price, item.unit_price, delta
        )

        entry = self.append_entry(
            item, last, plan.delta, stock_reason, (note or "").strip() or None
        )
        item.quantity = plan.new_quantity
        item.price = plan.new_price
        item.unit_price = plan.new_unit_price
        self.session.flush()

        logger.info(
            "stock_adjusted",
            extra={
                "item_id": str(item.id),
                "sequence": entry.sequence,
                "delta": plan.delta,
                "balance": plan.new_quantity,
                "reason": stock_reason.value,
            },
        )
        return ItemInfo.from_model(item)

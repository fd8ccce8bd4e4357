"""
ItemService -- ownership-scoped create, update and delete of items.

Responsibility:
    Writes collection items on behalf of the resolved caller.  Ownership
    always comes from the Identity; nothing in ItemFields can name an
    owner.

Architecture position:
    Kernel > Services -- imperative shell.  Reads live in
    ``selectors/item_selector.py``.  Ledger entries are appended through
    InventoryLedgerService so sequencing and consistency checks exist in
    one place.

Invariants enforced:
    - unit_price == price / quantity when quantity > 0, else 0.
    - create() with quantity > 0 writes the item and its INITIAL entry in
      the caller's transaction; with quantity 0 it writes no entry.
    - update() that changes quantity appends an ADJUST entry for the
      difference (INITIAL if the item has no ledger yet), so quantity and
      ledger never drift apart through edits.
    - update() and delete() match on id AND owner.  Zero matches is
      ItemNotFoundError whether the item is absent or someone else's.

Failure modes:
    - ItemNotFoundError: no such item in the caller's scope.
    - LedgerDivergenceError: update() found quantity and ledger disagreeing.
"""

from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.orm import Session

from tea_kernel.domain.clock import Clock
from tea_kernel.domain.dtos import Identity, ItemFields, ItemInfo, parse_uuid
from tea_kernel.domain.valuation import derive_unit_price
from tea_kernel.exceptions import ItemNotFoundError
from tea_kernel.logging_config import get_logger
from tea_kernel.models.item import Item
from tea_kernel.models.ledger import StockReason
from tea_kernel.services.base import BaseService
from tea_kernel.services.ledger_service import InventoryLedgerService

logger = get_logger("services.item")

INITIAL_STOCK_NOTE = "initial stock"
QUANTITY_EDIT_NOTE = "quantity edited"


class ItemService(BaseService[Item]):
    """Service for item writes."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._ledger = InventoryLedgerService(session, self._clock)

    @staticmethod
    def _apply_fields(item: Item, fields: ItemFields) -> None:
        item.name = fields.name
        item.kind = fields.kind
        item.category = fields.category
        item.year = fields.year
        item.origin = fields.origin
        item.description = fields.description
        item.image_url = fields.image_url
        item.unit = fields.unit
        item.quantity = fields.quantity
        item.price = fields.price
        item.unit_price = derive_unit_price(fields.price, fields.quantity)

    def create(self, identity: Identity, fields: ItemFields) -> ItemInfo:
        """
        Create an item owned by the caller.

        Args:
            identity: Resolved caller; becomes the owner.
            fields: Validated item attributes.

        Returns:
            The created item.
        """
        item = Item(owner_id=identity.account_id, created_at=self._clock.now())
        self._apply_fields(item, fields)
        self.session.add(item)
        self.session.flush()

        if item.quantity > 0:
            self._ledger.append_entry(
                item, None, item.quantity, StockReason.INITIAL, INITIAL_STOCK_NOTE
            )
            self.session.flush()

        logger.info(
            "item_created",
            extra={
                "item_id": str(item.id),
                "kind": fields.kind.value,
                "quantity": item.quantity,
            },
        )
        return ItemInfo.from_model(item)

    def update(
        self,
        identity: Identity,
        item_id: UUID | str,
        fields: ItemFields,
    ) -> ItemInfo:
        """
        Replace an owned item's attributes.

        Raises:
            ItemNotFoundError: Absent or not owned by the caller.
            LedgerDivergenceError: Quantity change on an item whose
                quantity already disagrees with its ledger.
        """
        item = self._ledger.lock_item(identity, item_id)
        old_quantity = item.quantity

        if fields.quantity != old_quantity:
            last = self._ledger.last_entry(item)
            self._ledger.check_consistent(item, last)
            reason = StockReason.ADJUST if last is not None else StockReason.INITIAL
            note = QUANTITY_EDIT_NOTE if last is not None else INITIAL_STOCK_NOTE
            self._ledger.append_entry(
                item, last, fields.quantity - old_quantity, reason, note
            )

        self._apply_fields(item, fields)
        self.session.flush()

        logger.info(
            "item_updated",
            extra={
                "item_id": str(item.id),
                "old_quantity": old_quantity,
                "quantity": item.quantity,
            },
        )
        return ItemInfo.from_model(item)

    def delete(self, identity: Identity, item_id: UUID | str) -> None:
        """
        Delete an owned item and, through the database cascade, its ledger.

        Raises:
            ItemNotFoundError: Absent or not owned by the caller.
        """
        parsed = parse_uuid(item_id)
        if parsed is None:
            raise ItemNotFoundError(str(item_id))

        result = self.session.execute(
            delete(Item).where(
                Item.id == parsed, Item.owner_id == identity.account_id
            )
        )
        if result.rowcount == 0:
            raise ItemNotFoundError(str(item_id))

        logger.info("item_deleted", extra={"item_id": str(parsed)})

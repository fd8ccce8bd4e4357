"""
Module: tea_kernel.models.item
Responsibility: ORM persistence for collection items (tea and teaware).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - owner_id is set on creation and never changes; items are never
      transferred between accounts.
    - quantity >= 0, price >= 0, unit_price >= 0 (ck_item_* constraints).
    - unit_price == price / quantity when quantity > 0, else 0
      (maintained by ItemService and InventoryLedgerService).
    - quantity equals the current_balance of the item's latest ledger entry
      (maintained by InventoryLedgerService).
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tea_kernel.db.base import Base, CreatedAtMixin, UUIDString

if TYPE_CHECKING:
    from tea_kernel.models.account import Account
    from tea_kernel.models.ledger import LedgerEntry


class ItemKind(str, Enum):
    """What kind of collectible an item is."""

    TEA = "TEA"
    TEAWARE = "TEAWARE"


class Item(CreatedAtMixin, Base):
    """A tea or teaware holding owned by exactly one account."""

    __tablename__ = "items"

    __table_args__ = (
        Index("idx_item_owner_created", "owner_id", "created_at"),
        CheckConstraint("quantity >= 0", name="ck_item_quantity_non_negative"),
        CheckConstraint("price >= 0", name="ck_item_price_non_negative"),
        CheckConstraint("unit_price >= 0", name="ck_item_unit_price_non_negative"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    kind: Mapped[ItemKind] = mapped_column(String(20), nullable=False)

    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    year: Mapped[str | None] = mapped_column(String(50), nullable=True)

    origin: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="piece")

    quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    # Total value of current holdings
    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    owner: Mapped["Account"] = relationship(back_populates="items")

    ledger_entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="item",
        passive_deletes=True,
        order_by="LedgerEntry.sequence",
    )

    def __repr__(self) -> str:
        return f"<Item {self.name} kind={self.kind} qty={self.quantity}>"

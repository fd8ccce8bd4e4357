"""
Module: tea_kernel.models.ledger
Responsibility: ORM persistence for the append-only stock movement ledger.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Entries are immutable once flushed (db/immutability.py rejects UPDATE
      and individual DELETE).  They are removed only by the database cascade
      when their item is deleted.
    - (item_id, sequence) is unique.  sequence runs 1..N per item and is
      assigned while the item row is locked, so two writers racing on the
      same item cannot both append entry N.
    - current_balance of entry N == current_balance of entry N-1
      + change_amount of entry N; entry 1 is INITIAL with
      current_balance == change_amount.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tea_kernel.db.base import Base, CreatedAtMixin, UUIDString

if TYPE_CHECKING:
    from tea_kernel.models.item import Item


class StockReason(str, Enum):
    """Why a stock movement happened."""

    PURCHASE = "PURCHASE"
    CONSUME = "CONSUME"
    GIFT = "GIFT"
    DAMAGE = "DAMAGE"
    ADJUST = "ADJUST"
    INITIAL = "INITIAL"


class LedgerEntry(CreatedAtMixin, Base):
    """One immutable stock movement and the balance it produced."""

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint("item_id", "sequence", name="uq_ledger_item_sequence"),
        Index("idx_ledger_item_created", "item_id", "created_at"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(nullable=False)

    change_amount: Mapped[int] = mapped_column(nullable=False)

    current_balance: Mapped[int] = mapped_column(nullable=False)

    reason: Mapped[StockReason] = mapped_column(String(20), nullable=False)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    item: Mapped["Item"] = relationship(back_populates="ledger_entries")

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry item={self.item_id} seq={self.sequence} "
            f"change={self.change_amount} balance={self.current_balance} "
            f"reason={self.reason}>"
        )

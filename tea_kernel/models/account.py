"""
Module: tea_kernel.models.account
Responsibility: ORM persistence for login accounts -- the owners of every
    item in the collection.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - name is globally unique (uq_account_name), so exactly one row may hold
      the reserved administrator name.
    - role is set at creation and never changed by any kernel operation.
    - Deleting an account cascades, at the database level, to its items and
      through them to their ledger entries.

Failure modes:
    - IntegrityError on a duplicate name (surfaced as
      AccountAlreadyExistsError by AccountService).
"""

from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tea_kernel.db.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from tea_kernel.models.item import Item


class AccountRole(str, Enum):
    """Roles an account can hold."""

    ADMIN = "admin"
    USER = "user"


class Account(CreatedAtMixin, Base):
    """
    A login identity and the ownership scope for items.

    Guarantees:
        - name is unique and non-null.
        - password_hash is a bcrypt digest (60 characters) except for rows
          damaged outside the application; see AccountService for the
          administrator repair path.
        - is_initial is True while the account still uses an
          auto-provisioned credential.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("name", name="uq_account_name"),
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Wider than a bcrypt digest so damaged values survive until repaired
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[AccountRole] = mapped_column(
        String(20),
        nullable=False,
        default=AccountRole.USER,
    )

    is_initial: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    items: Mapped[list["Item"]] = relationship(
        back_populates="owner",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Account {self.name} role={self.role}>"

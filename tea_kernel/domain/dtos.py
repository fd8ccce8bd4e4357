"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    the resolved caller ``Identity``, account summaries, item input fields
    and item/ledger snapshots.  Services and selectors accept and return
    these, never ORM entities.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_model()`` class methods are boundary converters, invoked only
    from the service and selector layers.

Invariants enforced:
    - AccountSummary never carries a credential hash.
    - ItemFields validates its own shape (non-empty name, known kind,
      non-negative quantity and price) on construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from tea_kernel.db.types import (
    MAX_QUANTITY,
    ZERO,
    is_storable_money,
    round_money,
    to_decimal,
)
from tea_kernel.exceptions import InvalidFieldError, MissingFieldError
from tea_kernel.models.account import AccountRole
from tea_kernel.models.item import ItemKind
from tea_kernel.models.ledger import StockReason

if TYPE_CHECKING:
    from tea_kernel.models.account import Account as AccountModel
    from tea_kernel.models.item import Item as ItemModel
    from tea_kernel.models.ledger import LedgerEntry as LedgerEntryModel


def parse_uuid(value: UUID | str | None) -> UUID | None:
    """Coerce a caller-supplied id; None if it is not a UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Identity:
    """
    The resolved caller, decoded from a verified identity assertion.

    Every ownership-scoped query is parameterized by ``account_id``.
    """

    account_id: UUID
    name: str
    role: AccountRole
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN


@dataclass(frozen=True)
class AccountSummary:
    """Public view of an account (no credential hash)."""

    id: UUID
    name: str
    role: AccountRole
    is_initial: bool
    created_at: datetime

    @classmethod
    def from_model(cls, account: AccountModel) -> AccountSummary:
        return cls(
            id=account.id,
            name=account.name,
            role=AccountRole(account.role),
            is_initial=account.is_initial,
            created_at=_as_utc(account.created_at),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "role": self.role.value,
            "is_initial": self.is_initial,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class LoginResult:
    """Token plus the account it was issued for."""

    token: str
    account: AccountSummary

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token, "account": self.account.to_dict()}


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class ItemFields:
    """
    Caller-supplied item attributes for create and update.

    There is no owner field: ownership always comes from the
    resolved Identity.

    Raises:
        MissingFieldError: name or kind empty.
        InvalidFieldError: unknown kind, negative, non-integer or oversized
            quantity, negative, non-numeric or oversized price.
    """

    name: str
    kind: ItemKind | str
    category: str = ""
    year: str | None = None
    origin: str | None = None
    description: str | None = None
    image_url: str | None = None
    unit: str = "piece"
    quantity: int = 0
    price: Decimal = ZERO

    def __post_init__(self) -> None:
        name = (self.name or "").strip()
        if not name:
            raise MissingFieldError("name")
        object.__setattr__(self, "name", name)

        if not self.kind:
            raise MissingFieldError("kind")
        try:
            kind = ItemKind(str(getattr(self.kind, "value", self.kind)).upper())
        except ValueError:
            raise InvalidFieldError(
                "kind", f"must be one of {[k.value for k in ItemKind]}"
            ) from None
        object.__setattr__(self, "kind", kind)

        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidFieldError("quantity", "must be a whole number")
        if self.quantity < 0:
            raise InvalidFieldError("quantity", "must not be negative")
        if self.quantity > MAX_QUANTITY:
            raise InvalidFieldError("quantity", "is too large")

        try:
            price = to_decimal(self.price)
        except ValueError:
            raise InvalidFieldError("price", "must be a number") from None
        if not price.is_finite() or price < 0:
            raise InvalidFieldError("price", "must not be negative")
        if not is_storable_money(price):
            raise InvalidFieldError("price", "is too large")
        # Rounding can carry 99...9.9999999999 over the limit
        price = round_money(price)
        if not is_storable_money(price):
            raise InvalidFieldError("price", "is too large")
        object.__setattr__(self, "price", price)

        object.__setattr__(self, "category", (self.category or "").strip())
        object.__setattr__(self, "unit", (self.unit or "").strip() or "piece")
        for attr in ("year", "origin", "description", "image_url"):
            object.__setattr__(self, attr, _optional_text(getattr(self, attr)))

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ItemFields:
        """
        Build from a transport payload.

        Accepts ``type`` as an alias for ``kind`` (the original wire name).
        Unknown keys, including any owner field, are ignored.
        """
        quantity = data.get("quantity", 0)
        if isinstance(quantity, str):
            try:
                quantity = int(quantity)
            except ValueError:
                raise InvalidFieldError("quantity", "must be a whole number") from None
        price = data.get("price")
        return cls(
            name=data.get("name", ""),
            kind=data.get("kind") or data.get("type") or "",
            category=data.get("category") or "",
            year=data.get("year"),
            origin=data.get("origin"),
            description=data.get("description"),
            image_url=data.get("image_url"),
            unit=data.get("unit") or "piece",
            quantity=quantity if quantity is not None else 0,
            price=ZERO if price is None else price,
        )


@dataclass(frozen=True)
class ItemInfo:
    """Immutable snapshot of an item."""

    id: UUID
    owner_id: UUID
    name: str
    kind: ItemKind
    category: str
    year: str | None
    origin: str | None
    description: str | None
    image_url: str | None
    unit: str
    quantity: int
    price: Decimal
    unit_price: Decimal
    created_at: datetime

    @classmethod
    def from_model(cls, item: ItemModel) -> ItemInfo:
        return cls(
            id=item.id,
            owner_id=item.owner_id,
            name=item.name,
            kind=ItemKind(item.kind),
            category=item.category,
            year=item.year,
            origin=item.origin,
            description=item.description,
            image_url=item.image_url,
            unit=item.unit,
            quantity=item.quantity,
            price=item.price,
            unit_price=item.unit_price,
            created_at=_as_utc(item.created_at),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "kind": self.kind.value,
            "category": self.category,
            "year": self.year,
            "origin": self.origin,
            "description": self.description,
            "image_url": self.image_url,
            "unit": self.unit,
            "quantity": self.quantity,
            "price": str(self.price),
            "unit_price": str(self.unit_price),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class LedgerEntryInfo:
    """Immutable snapshot of one stock movement."""

    id: UUID
    item_id: UUID
    sequence: int
    change_amount: int
    current_balance: int
    reason: StockReason
    note: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, entry: LedgerEntryModel) -> LedgerEntryInfo:
        return cls(
            id=entry.id,
            item_id=entry.item_id,
            sequence=entry.sequence,
            change_amount=entry.change_amount,
            current_balance=entry.current_balance,
            reason=StockReason(entry.reason),
            note=entry.note,
            created_at=_as_utc(entry.created_at),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "item_id": str(self.item_id),
            "sequence": self.sequence,
            "change_amount": self.change_amount,
            "current_balance": self.current_balance,
            "reason": self.reason.value,
            "note": self.note,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class LedgerReconciliation:
    """
    Result of replaying an item's ledger against its stored quantity.

    ``broken_sequences`` lists the sequence numbers whose balance does not
    follow from the previous entry (or, for entry 1, is not INITIAL with
    balance == change).
    """

    item_id: UUID
    entry_count: int
    total_change: int
    last_balance: int | None
    item_quantity: int
    broken_sequences: tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        expected = self.last_balance if self.last_balance is not None else 0
        return (
            not self.broken_sequences
            and expected == self.item_quantity
            and expected == self.total_change
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": str(self.item_id),
            "entry_count": self.entry_count,
            "total_change": self.total_change,
            "last_balance": self.last_balance,
            "item_quantity": self.item_quantity,
            "broken_sequences": list(self.broken_sequences),
            "is_consistent": self.is_consistent,
        }

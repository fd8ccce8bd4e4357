"""
Valuation -- unit price derivation and stock movement planning.

Responsibility:
    Pure arithmetic behind the item/ledger write paths: deriving
    ``unit_price`` from a holding's total value, choosing the unit price a
    stock movement should carry forward, and computing the resulting
    quantity and total value.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - unit_price == price / quantity when quantity > 0, else 0, rounded
      by ``round_money``.
    - A movement plan never yields a negative quantity; callers receive
      InsufficientStockError instead.
    - A movement plan never yields a quantity or total value the item
      columns cannot store (InvalidFieldError on delta).
"""

from dataclasses import dataclass
from decimal import Decimal

from tea_kernel.db.types import (
    MAX_QUANTITY,
    ZERO,
    is_storable_money,
    money_context,
    round_money,
)
from tea_kernel.exceptions import (
    EmptyMovementError,
    InsufficientStockError,
    InvalidFieldError,
)


def derive_unit_price(price: Decimal, quantity: int) -> Decimal:
    """Per-unit value of a holding; zero for an empty holding."""
    if quantity > 0:
        with money_context():
            return round_money(price / Decimal(quantity))
    return ZERO


def effective_unit_price(
    stored_unit_price: Decimal | None,
    price: Decimal | None,
    quantity: int,
) -> Decimal:
    """
    The unit price a stock movement carries forward.

    Prefers the stored unit price.  Rows written before unit prices were
    maintained have zero there, so fall back to price / quantity, and to
    zero when nothing is held.
    """
    if stored_unit_price:
        return stored_unit_price
    if price and quantity > 0:
        with money_context():
            return round_money(price / Decimal(quantity))
    return ZERO


@dataclass(frozen=True)
class MovementPlan:
    """New item state after applying one ledger delta."""

    delta: int
    new_quantity: int
    new_price: Decimal
    new_unit_price: Decimal


def plan_movement(
    item_id: str,
    quantity: int,
    price: Decimal,
    stored_unit_price: Decimal,
    delta: int,
) -> MovementPlan:
    """
    Compute the item's quantity and value after a movement of ``delta``.

    A movement that empties the holding leaves both price and unit_price
    at zero.

    Raises:
        EmptyMovementError: delta is zero.
        InsufficientStockError: quantity + delta would be negative.
        InvalidFieldError: the result would not fit the item columns.
    """
    if delta == 0:
        raise EmptyMovementError(item_id)

    new_quantity = quantity + delta
    if new_quantity < 0:
        raise InsufficientStockError(item_id, quantity, delta)
    if new_quantity > MAX_QUANTITY:
        raise InvalidFieldError("delta", "resulting quantity is too large")

    unit = effective_unit_price(stored_unit_price, price, quantity)
    with money_context():
        new_price = round_money(unit * Decimal(new_quantity))
    if not is_storable_money(new_price):
        raise InvalidFieldError("delta", "resulting value is too large")

    return MovementPlan(
        delta=delta,
        new_quantity=new_quantity,
        new_price=new_price,
        new_unit_price=unit if new_quantity > 0 else ZERO,
    )

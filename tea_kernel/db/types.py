"""
Module: tea_kernel.db.types
Responsibility: Precision constants, coercion and rounding for monetary
    values.  Centralizes precision so that every model and service rounds
    prices identically.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the kernel.  All monetary amounts use Decimal
      with explicit precision.
    - round_money() is the ONLY sanctioned rounding function for prices.
    - Money arithmetic runs in money_context(), wide enough for every value
      the Numeric(38, 9) columns can hold.
"""

from decimal import ROUND_HALF_UP, Decimal, localcontext

MONEY_PRECISION = 38
MONEY_DECIMAL_PLACES = 9

# Exclusive upper bound of a storable amount (29 integer digits)
MONEY_LIMIT = Decimal(10) ** (MONEY_PRECISION - MONEY_DECIMAL_PLACES)

# Largest value of a BigInteger column
MAX_QUANTITY = 2**63 - 1
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the stored precision.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    with money_context():
        return value.quantize(Decimal(quantize_str), rounding=rounding)


def money_context():
    """Decimal context for price arithmetic; exact for any product of two storable values."""
    return localcontext(prec=2 * MONEY_PRECISION)


def is_storable_money(value: Decimal) -> bool:
    """True if value fits a Numeric(38, 9) column without overflow."""
    return value.is_finite() and abs(value) < MONEY_LIMIT


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an incoming price to Decimal.

    Floats are converted through ``str`` so that ``0.1`` becomes
    ``Decimal("0.1")`` rather than its binary expansion.

    Raises:
        ValueError: If the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (ArithmeticError, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc

# Overview: Fixed-point money and quantity helpers built on decimal.Decimal.

"""
Money Invariants (authoritative)

- Monetary values are decimal.Decimal, never float.
- Item line totals are exact: quantity (4 places) x price (2 places) keeps
  at most 6 places and is stored at that scale.
- Other frozen figures (discount amounts, tax amounts, subtotal, total_tax,
  grand_total, payment amounts) are rounded half-up to cents exactly once,
  at the moment they are frozen.
- Every derived figure is computed from already-frozen figures, so sums
  and identities hold exactly at currency precision.
- Quantities carry up to 4 decimal places.
- Values leave the API as strings ("94.50"), never as JSON floats.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable


MONEY_PLACES = 2
QUANTITY_PLACES = 4

MONEY_QUANT = Decimal("0.01")
QUANTITY_QUANT = Decimal("0.0001")

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

# Maximum single amount: 9,999,999,999,999.99
MAX_MONEY = Decimal("9999999999999.99")

# Largest exact line total that fits a 6-place scaled BIGINT column
MAX_LINE_TOTAL = Decimal("999999999999.999999")


def to_decimal(value) -> Decimal:
    """
    Coerce an input value to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than its
    binary expansion. Booleans are rejected even though they are ints.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError("not a number")
    else:
        raise ValueError("not a number")
    if not result.is_finite():
        raise ValueError("not a finite number")
    return result


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def round_quantity(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP)


def percent_of(percentage: Decimal, base: Decimal) -> Decimal:
    """percentage/100 x base, rounded to cents."""
    return round_money(percentage * base / HUNDRED)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def money_str(value: Decimal | None) -> str | None:
    """Serialize money as a fixed 2-dp string."""
    if value is None:
        return None
    return str(round_money(Decimal(value)))


def quantity_str(value: Decimal | None) -> str | None:
    """Serialize a quantity without trailing zeros or exponent ("10", "2.5")."""
    if value is None:
        return None
    normalized = Decimal(value).normalize()
    if normalized == 0:
        return "0"
    return format(normalized, "f")

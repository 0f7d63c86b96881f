from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

"""
Fixed-point conventions (authoritative)

- Money columns are Numeric(10, 2); quantities are Numeric(10, 3).
- All arithmetic happens on decimal.Decimal, never float.
- Rounding is half-up at the column scale.
- API payloads carry amounts as decimal strings.
"""

MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Quantize to two fraction digits (half-up)."""
    if value is None:
        return ZERO
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_quantity(value) -> Decimal:
    """Quantize to three fraction digits (half-up)."""
    if value is None:
        return Decimal("0.000")
    return Decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return to_money(to_quantity(quantity) * to_money(unit_price))


def money_str(value) -> Optional[str]:
    if value is None:
        return None
    return str(to_money(value))


def quantity_str(value) -> Optional[str]:
    if value is None:
        return None
    return str(to_quantity(value))

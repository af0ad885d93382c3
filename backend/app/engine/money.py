"""
engine/money.py — Decimal helpers shared by the split calculator and the
balance aggregator.

All monetary arithmetic in the engine goes through Decimal. Floats are
accepted at the boundary only via their shortest repr (str(float)), so
100.1 becomes Decimal("100.1") and not Decimal(100.1).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Iterable

from backend.app.errors import InvalidInput

ZERO        = Decimal("0.00")
MINOR_UNIT  = Decimal("0.01")
TOLERANCE   = Decimal("0.01")


def to_decimal(value, field: str = "amount") -> Decimal:
    """
    Coerces int, str, float or Decimal to a finite Decimal.

    Raises InvalidInput for None, booleans, non-numeric strings, NaN and
    infinities.
    """
    if value is None or isinstance(value, bool):
        raise InvalidInput(f"{field} is required and must be a number.", field=field)

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidInput(f"{field} must be a number, got {value!r}.", field=field)
    else:
        raise InvalidInput(f"{field} must be a number, got {type(value).__name__}.", field=field)

    if not result.is_finite():
        raise InvalidInput(f"{field} must be a finite number.", field=field)
    return result


def to_positive_amount(value, field: str = "amount") -> Decimal:
    """Like to_decimal() but also rejects zero and negative amounts."""
    amount = to_decimal(value, field)
    if amount <= 0:
        raise InvalidInput(f"{field} must be greater than zero, got {amount}.", field=field)
    return amount


def to_money_amount(value, field: str = "amount") -> Decimal:
    """
    Like to_positive_amount() but also requires a whole number of cents, so
    every share derived from it stays on the minor unit.
    """
    amount = to_positive_amount(value, field)
    if not is_minor_unit(amount):
        raise InvalidInput(
            f"{field} must have at most 2 decimal places, got {amount}.",
            field=field,
        )
    return amount


def is_minor_unit(value: Decimal) -> bool:
    """True when value is a whole number of cents (10.5, 10.50 and 10.500 all are)."""
    return value.as_tuple().exponent >= -2 or value == value.quantize(MINOR_UNIT)


def floor_to_minor_unit(value: Decimal) -> Decimal:
    """Rounds toward zero at two decimal places: 33.333… → 33.33."""
    return value.quantize(MINOR_UNIT, rounding=ROUND_DOWN)


def round_to_minor_unit(value: Decimal) -> Decimal:
    """Half-up rounding at two decimal places: 50.005 → 50.01."""
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Decimal]) -> Decimal:
    """Decimal sum that starts from 0.00 so an empty input keeps the 2dp scale."""
    return sum(values, ZERO)


def within_tolerance(a: Decimal, b: Decimal, tolerance: Decimal = TOLERANCE) -> bool:
    return abs(a - b) <= tolerance

"""Unit tests for engine/money.py."""

from __future__ import annotations

from decimal import Decimal

import pytest

from backend.app.engine.money import (
    ZERO,
    floor_to_minor_unit,
    is_minor_unit,
    money_sum,
    round_to_minor_unit,
    to_decimal,
    to_money_amount,
    to_positive_amount,
    within_tolerance,
)
from backend.app.errors import InvalidInput


@pytest.mark.parametrize("raw, expected", [
    ("12.34", Decimal("12.34")),
    (" 5 ", Decimal("5")),
    (7, Decimal("7")),
    (0.1, Decimal("0.1")),
    (Decimal("3.50"), Decimal("3.50")),
])
def test_to_decimal_accepts_numbers(raw, expected):
    assert to_decimal(raw) == expected


@pytest.mark.parametrize("raw", [None, False, "x", "nan", "-inf", [], object()])
def test_to_decimal_rejects_non_numbers(raw):
    with pytest.raises(InvalidInput) as exc_info:
        to_decimal(raw, field="limit")
    assert exc_info.value.field == "limit"


def test_to_positive_amount_rejects_zero():
    with pytest.raises(InvalidInput):
        to_positive_amount("0.00")


def test_floor_never_rounds_up():
    assert floor_to_minor_unit(Decimal("33.3399")) == Decimal("33.33")
    assert floor_to_minor_unit(Decimal("0.009")) == Decimal("0.00")


def test_money_sum_of_nothing_keeps_scale():
    assert str(money_sum([])) == "0.00"
    assert money_sum([]) == ZERO


def test_within_tolerance_is_inclusive():
    assert within_tolerance(Decimal("100.01"), Decimal("100.00"))
    assert within_tolerance(Decimal("99.995"), Decimal("100.00"))
    assert not within_tolerance(Decimal("100.02"), Decimal("100.00"))


@pytest.mark.parametrize("raw, expected", [
    ("12.34", True),
    ("12.5", True),
    ("12.500", True),
    ("1E+3", True),
    ("12.345", False),
    ("0.001", False),
])
def test_is_minor_unit(raw, expected):
    assert is_minor_unit(Decimal(raw)) is expected


def test_to_money_amount_rejects_sub_cent():
    with pytest.raises(InvalidInput) as exc_info:
        to_money_amount("10.005", field="budget")
    assert exc_info.value.field == "budget"
    assert to_money_amount("10.50") == Decimal("10.50")


def test_round_to_minor_unit_is_half_up():
    assert round_to_minor_unit(Decimal("50.005")) == Decimal("50.01")
    assert round_to_minor_unit(Decimal("50.0049")) == Decimal("50.00")

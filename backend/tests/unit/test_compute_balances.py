"""
tests/unit/test_compute_balances.py — Unit tests for the balance aggregator
(engine.compute_balances, is_unsettled, balance_sum).

What this file proves:
  - Conservation: balances always sum to exactly 0.00
  - Payer is credited the full amount, each participant debited their share
  - Settlements move value from recipient to sender and sum to zero
  - Every current member appears even at 0.00; former members still count
  - Recomputing on identical inputs gives identical output
  - Any corrupt record aborts the whole computation with InvalidRecord

No database, no Flask. Records are built by hand.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest

from backend.app.engine import (
    ExpenseRecord,
    SettlementRecord,
    Share,
    SplitStrategy,
    balance_sum,
    compute_balances,
    compute_splits,
    is_unsettled,
)
from backend.app.errors import ErrorCode, InvalidRecord

D = Decimal


def _equal_expense(amount: str, payer, members: list) -> ExpenseRecord:
    shares = compute_splits(D(amount), SplitStrategy.EQUAL, members)
    return ExpenseRecord(amount=D(amount), payer=payer, splits=tuple(shares))


# ── Worked scenario ────────────────────────────────────────────────────────

class TestThreeMemberScenario:
    """A pays 100 split equally across [A, B, C], then B settles 33.33 to A."""

    members = ["A", "B", "C"]

    def test_splits_give_remainder_to_first_member(self):
        expense = _equal_expense("100", "A", self.members)
        assert expense.splits == (
            Share("A", D("33.34")),
            Share("B", D("33.33")),
            Share("C", D("33.33")),
        )

    def test_balances_before_settlement(self):
        expense = _equal_expense("100", "A", self.members)

        balances = compute_balances(self.members, [expense], [])

        assert balances == {"A": D("66.66"), "B": D("-33.33"), "C": D("-33.33")}
        assert is_unsettled(balances) is True

    def test_balances_after_settlement(self):
        expense = _equal_expense("100", "A", self.members)
        settlement = SettlementRecord(from_member="B", to_member="A", amount=D("33.33"))

        balances = compute_balances(self.members, [expense], [settlement])

        assert balances == {"A": D("33.33"), "B": D("0"), "C": D("-33.33")}
        assert balance_sum(balances) == D("0.00")
        assert is_unsettled(balances) is True


# ── Settlements ────────────────────────────────────────────────────────────

def test_settlement_clears_matching_debt():
    expense = ExpenseRecord(
        amount=D("60.00"),
        payer="B",
        splits=(Share("A", D("30.00")), Share("B", D("30.00"))),
    )
    before = compute_balances(["A", "B"], [expense], [])
    assert before == {"A": D("-30.00"), "B": D("30.00")}

    after = compute_balances(
        ["A", "B"],
        [expense],
        [SettlementRecord("A", "B", D("30.00"))],
    )
    assert after == {"A": D("0.00"), "B": D("0.00")}
    assert is_unsettled(after) is False


def test_settlement_alone_is_zero_sum():
    balances = compute_balances(["A", "B"], [], [SettlementRecord("A", "B", D("12.50"))])
    assert balances == {"A": D("12.50"), "B": D("-12.50")}
    assert balance_sum(balances) == D("0.00")


def test_overpayment_flips_the_balance():
    expense = ExpenseRecord(D("10.00"), "B", (Share("A", D("10.00")),))
    balances = compute_balances(["A", "B"], [expense], [SettlementRecord("A", "B", D("15.00"))])
    assert balances == {"A": D("5.00"), "B": D("-5.00")}


# ── Membership and ordering ────────────────────────────────────────────────

def test_every_member_appears_even_with_no_activity():
    balances = compute_balances([3, 1, 2], [], [])

    assert list(balances) == [3, 1, 2]
    assert all(v == D("0.00") for v in balances.values())
    assert is_unsettled(balances) is False


def test_former_member_still_counts_and_is_appended_last():
    """User 9 left the group but their expense still affects balances."""
    expense = ExpenseRecord(D("20.00"), 9, (Share(1, D("10.00")), Share(9, D("10.00"))))

    balances = compute_balances([1, 2], [expense], [])

    assert list(balances) == [1, 2, 9]
    assert balances == {1: D("-10.00"), 2: D("0.00"), 9: D("10.00")}


def test_payer_not_in_splits_is_credited_in_full():
    expense = ExpenseRecord(D("30.00"), "A", (Share("B", D("15.00")), Share("C", D("15.00"))))
    balances = compute_balances(["A", "B", "C"], [expense], [])
    assert balances["A"] == D("30.00")


def test_accepts_mappings_and_plain_objects():
    """Anything with the right fields is accepted, e.g. rows from a query."""
    expense = {
        "amount": "40.00",
        "payer": 1,
        "splits": [{"user_id": 1, "amount": "20.00"}, {"user_id": 2, "amount": "20.00"}],
    }
    settlement = SimpleNamespace(from_member=2, to_member=1, amount=D("5.00"))

    balances = compute_balances([1, 2], [expense], [settlement])

    assert balances == {1: D("15.00"), 2: D("-15.00")}


# ── Properties ─────────────────────────────────────────────────────────────

def _history():
    members = [1, 2, 3, 4]
    expenses = [
        _equal_expense("100.00", 1, members),
        _equal_expense("0.05", 2, members),
        _equal_expense("77.77", 3, [1, 3]),
        ExpenseRecord(D("50.00"), 4, (Share(1, D("12.50")), Share(2, D("37.50")))),
    ]
    settlements = [
        SettlementRecord(2, 1, D("10.00")),
        SettlementRecord(4, 3, D("0.01")),
    ]
    return members, expenses, settlements


def test_conservation_over_mixed_history():
    members, expenses, settlements = _history()
    balances = compute_balances(members, expenses, settlements)
    assert balance_sum(balances) == D("0.00")


@pytest.mark.parametrize("count", range(1, 6))
def test_conservation_for_each_prefix(count):
    members, expenses, settlements = _history()
    balances = compute_balances(members, expenses[:count], settlements[: count // 2])
    assert balance_sum(balances) == 0


def test_recomputation_is_identical():
    members, expenses, settlements = _history()
    assert compute_balances(members, expenses, settlements) == compute_balances(
        members, expenses, settlements
    )


def test_record_order_does_not_change_values():
    members, expenses, settlements = _history()
    forward = compute_balances(members, expenses, settlements)
    backward = compute_balances(members, list(reversed(expenses)), list(reversed(settlements)))
    assert forward == backward


def test_inputs_are_not_mutated():
    members, expenses, settlements = _history()
    snapshot = (list(members), list(expenses), list(settlements))
    compute_balances(members, expenses, settlements)
    assert (members, expenses, settlements) == snapshot


# ── Invalid records ────────────────────────────────────────────────────────

@pytest.mark.parametrize("expense, reason", [
    (ExpenseRecord(D("10.00"), "A", (Share("A", D("9.00")),)), "add up"),
    (ExpenseRecord(D("0.00"), "A", ()), "positive"),
    (ExpenseRecord(D("-5.00"), "A", (Share("A", D("-5.00")),)), "positive"),
    (ExpenseRecord(D("10.00"), None, (Share("A", D("10.00")),)), "payer"),
    (ExpenseRecord(D("10.00"), "A", (Share("A", D("5.00")), Share("A", D("5.00")))), "twice"),
    (ExpenseRecord(D("10.00"), "A", (Share("A", D("15.00")), Share("B", D("-5.00")))), "negative"),
    (ExpenseRecord(D("10.00"), "A", (Share(None, D("10.00")),)), "no member"),
    (ExpenseRecord("ten", "A", ()), "number"),
])
def test_corrupt_expense_raises_invalid_record(expense, reason):
    with pytest.raises(InvalidRecord) as exc_info:
        compute_balances(["A", "B"], [expense], [])

    err = exc_info.value
    assert err.code == ErrorCode.INVALID_RECORD
    assert err.http_status == 500
    assert err.kind == "expense"
    assert err.index == 0
    assert reason in err.message


@pytest.mark.parametrize("settlement", [
    SettlementRecord("A", "A", D("5.00")),
    SettlementRecord("A", "B", D("0.00")),
    SettlementRecord("A", "B", D("-1.00")),
    SettlementRecord(None, "B", D("1.00")),
    SettlementRecord("A", "B", None),
])
def test_corrupt_settlement_raises_invalid_record(settlement):
    with pytest.raises(InvalidRecord) as exc_info:
        compute_balances(["A", "B"], [], [SettlementRecord("A", "B", D("1.00")), settlement])

    assert exc_info.value.kind == "settlement"
    assert exc_info.value.index == 1


def test_one_bad_record_aborts_everything():
    """Valid records before the bad one are never returned as a partial result."""
    good = ExpenseRecord(D("10.00"), "A", (Share("B", D("10.00")),))
    bad = ExpenseRecord(D("10.00"), "A", (Share("B", D("10.02")),))

    with pytest.raises(InvalidRecord) as exc_info:
        compute_balances(["A", "B"], [good, good, bad], [])

    assert exc_info.value.index == 2
    assert exc_info.value.details["kind"] == "expense"

"""
engine/balances.py — Balance aggregation, unsettled status and settle-up
suggestions.

This module is the single source of truth for how net balances are derived.
Services fetch rows, convert them to engine records and call in here; the
formula is not reimplemented anywhere else.

Formula, for every member m:
    net[m] = paid as expense payer
           - owed as split participant
           + paid as settlement sender
           - received as settlement recipient

Conservation: sum(net.values()) == 0 for every valid input, because each
expense contributes +amount and -sum(splits) == -amount, and each settlement
contributes +x and -x.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Hashable, Iterable, Sequence

from backend.app.engine.money import ZERO, money_sum, to_decimal
from backend.app.errors import AppError, InvalidInput, InvalidRecord


# ── Aggregation ────────────────────────────────────────────────────────────

def compute_balances(
        members: Sequence[Hashable],
        expenses: Iterable,
        settlements: Iterable,
) -> dict[Hashable, Decimal]:
    """
    Returns {member: net} for every current member plus every historical
    member that appears in an expense or settlement.

    Key order: `members` as given, then historical members in order of first
    appearance. Input record order does not affect the values.

    Expenses need `amount`, `payer` and `splits` (each split a Share, a mapping
    with member/user_id + amount, or an object with `member` and `amount`).
    Settlements need `from_member`, `to_member` and `amount`.

    Raises:
        InvalidRecord — any record breaks a structural invariant. Validation
                        runs over ALL records before any arithmetic, so a
                        partial balance map is never produced.
    """
    checked_expenses = [_check_expense(e, i) for i, e in enumerate(expenses)]
    checked_settlements = [_check_settlement(s, i) for i, s in enumerate(settlements)]

    net: dict[Hashable, Decimal] = {}
    for member in members:
        net.setdefault(member, ZERO)

    for amount, payer, shares in checked_expenses:
        net[payer] = net.get(payer, ZERO) + amount
        for member, owed in shares:
            net[member] = net.get(member, ZERO) - owed

    for sender, recipient, amount in checked_settlements:
        net[sender] = net.get(sender, ZERO) + amount
        net[recipient] = net.get(recipient, ZERO) - amount

    return net


def is_unsettled(balances: Mapping[Hashable, Decimal]) -> bool:
    """True if any member's net balance is non-zero."""
    return any(net != 0 for net in balances.values())


def balance_sum(balances: Mapping[Hashable, Decimal]) -> Decimal:
    return money_sum(balances.values())


# ── Settle-up suggestions ──────────────────────────────────────────────────

def suggest_settlements(balances: Mapping[Hashable, Decimal]) -> list[dict]:
    """
    Greedy minimum cash flow debt simplification.

    Repeatedly matches the largest debtor with the largest creditor until
    all balances reach zero. For N members, produces at most N-1 payments.
    Equal amounts keep their input order, so the output is deterministic.

    Args:
        balances: {member: net} from compute_balances(). Must sum to zero.

    Returns:
        [{"from": debtor, "to": creditor, "amount": Decimal}, ...]
        An empty list means everyone is settled.
    """
    total = balance_sum(balances)
    if total != 0:
        raise InvalidInput(
            f"Balances must sum to zero before suggesting settlements (sum was {total}).",
            field="balances",
        )

    creditors = sorted(
        [[member, amount] for member, amount in balances.items() if amount > 0],
        key=lambda x: x[1],
        reverse=True,
    )
    debtors = sorted(
        [[member, -amount] for member, amount in balances.items() if amount < 0],
        key=lambda x: x[1],
        reverse=True,
    )

    payments: list[dict] = []
    i = j = 0

    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        transfer = min(creditor[1], debtor[1])
        payments.append({
            "from": debtor[0],
            "to": creditor[0],
            "amount": transfer,
        })

        creditor[1] -= transfer
        debtor[1] -= transfer

        if creditor[1] == 0:
            i += 1
        if debtor[1] == 0:
            j += 1

    return payments


# ── Record validation ──────────────────────────────────────────────────────

def _field(record, name: str):
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _record_amount(value, kind: str, index: int, label: str = "amount") -> Decimal:
    try:
        return to_decimal(value, field=label)
    except AppError as exc:
        raise InvalidRecord(kind, index, exc.message)


def _check_expense(expense, index: int) -> tuple[Decimal, Hashable, list[tuple[Hashable, Decimal]]]:
    payer = _field(expense, "payer")
    if payer is None:
        raise InvalidRecord("expense", index, "payer is missing.")

    amount = _record_amount(_field(expense, "amount"), "expense", index)
    if amount <= 0:
        raise InvalidRecord("expense", index, f"amount must be positive, got {amount}.")

    shares: list[tuple[Hashable, Decimal]] = []
    seen: set = set()
    for split in _field(expense, "splits") or ():
        member = _field(split, "member")
        if member is None:
            member = _field(split, "user_id")
        if member is None:
            raise InvalidRecord("expense", index, "a split has no member.")
        if member in seen:
            raise InvalidRecord("expense", index, f"member {member!r} appears twice in splits.")
        seen.add(member)

        owed = _record_amount(_field(split, "amount"), "expense", index, label="split amount")
        if owed < 0:
            raise InvalidRecord("expense", index, f"split for {member!r} is negative ({owed}).")
        shares.append((member, owed))

    split_total = money_sum(owed for _, owed in shares)
    if split_total != amount:
        raise InvalidRecord(
            "expense",
            index,
            f"splits add up to {split_total} but the amount is {amount}.",
        )

    return amount, payer, shares


def _check_settlement(settlement, index: int) -> tuple[Hashable, Hashable, Decimal]:
    sender = _field(settlement, "from_member")
    recipient = _field(settlement, "to_member")
    if sender is None or recipient is None:
        raise InvalidRecord("settlement", index, "sender or recipient is missing.")
    if sender == recipient:
        raise InvalidRecord("settlement", index, f"{sender!r} cannot settle with themselves.")

    amount = _record_amount(_field(settlement, "amount"), "settlement", index)
    if amount <= 0:
        raise InvalidRecord("settlement", index, f"amount must be positive, got {amount}.")

    return sender, recipient, amount

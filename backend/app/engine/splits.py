"""
engine/splits.py — Split calculator.

Turns one expense into the ordered list of (member, owed) shares that is
stored with it.

Equal strategy:
  - share = amount / n, rounded DOWN to the cent.
  - remainder = amount - share * n is always in [0, n cents) and is added in
    full to the FIRST member of the stored group order.
  - Guarantees: sum(shares) == amount exactly, and the same member order always
    puts the remainder on the same member.

Percentage / custom strategies:
  - The caller supplies absolute amounts (percentages are resolved client-side).
  - |sum(provided) - amount| must be <= tolerance (0.01), else SplitMismatch.
    The check runs on the shares exactly as given, so 100.005 against 100.00
    passes.
  - Each share is then rounded half-up to the cent and the remaining residual
    is folded into the first share that can absorb it, so the stored shares
    are whole cents and add up to the amount exactly.

Amounts must be whole cents (InvalidInput otherwise); every share returned by
either strategy is therefore a whole number of cents.

Pure functions: no I/O, no logging, no shared state.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from decimal import Decimal
from typing import Hashable, Iterable, Sequence

from backend.app.engine.money import (
    TOLERANCE,
    ZERO,
    floor_to_minor_unit,
    money_sum,
    round_to_minor_unit,
    to_decimal,
    to_money_amount,
    within_tolerance,
)
from backend.app.engine.records import Share
from backend.app.errors import InvalidGroupState, InvalidInput, SplitMismatch


class SplitStrategy(str, enum.Enum):
    EQUAL      = "equal"
    PERCENTAGE = "percentage"
    CUSTOM     = "custom"

    @classmethod
    def parse(cls, value: "SplitStrategy | str") -> "SplitStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInput(
                f"Unknown split strategy {value!r}. "
                f"Valid values: {', '.join(s.value for s in cls)}.",
                field="split_strategy",
            )


# ── Public API ─────────────────────────────────────────────────────────────

def compute_splits(
        amount,
        strategy: SplitStrategy | str,
        group_members: Sequence[Hashable],
        provided_splits: Iterable | None = None,
        tolerance: Decimal = TOLERANCE,
) -> list[Share]:
    """
    Computes the shares for one expense.

    Args:
        amount:          Positive expense total in whole cents (Decimal, int or
                         numeric str).
        strategy:        SplitStrategy or its string value.
        group_members:   Ordered member ids. Order decides who absorbs the
                         equal-split remainder. Ignored for custom strategies
                         (membership of custom shares is checked by the caller).
        provided_splits: Required for percentage/custom. Each item is a Share,
                         a (member, amount) pair, or a mapping with "amount" and
                         either "member" or "user_id".
        tolerance:       Allowed |sum - amount| for provided shares.

    Raises:
        InvalidInput       — bad amount, unknown strategy, empty/duplicate shares.
        InvalidGroupState  — equal split over zero members.
        SplitMismatch      — provided shares off by more than the tolerance.
    """
    total = to_money_amount(amount)
    strategy = SplitStrategy.parse(strategy)

    if strategy is SplitStrategy.EQUAL:
        return _equal_shares(total, group_members)

    return _reconciled_shares(total, _normalise_shares(provided_splits), tolerance)


# ── Strategies ─────────────────────────────────────────────────────────────

def _equal_shares(total: Decimal, group_members: Sequence[Hashable]) -> list[Share]:
    members = list(group_members or [])
    if not members:
        raise InvalidGroupState(
            "Cannot split an expense equally across a group with no members.",
            member_count=0,
        )
    _reject_missing_or_duplicate(members, field="group_members")

    n = len(members)
    base = floor_to_minor_unit(total / Decimal(n))
    remainder = total - base * n

    return [
        Share(member, base + remainder if index == 0 else base)
        for index, member in enumerate(members)
    ]


def _reconciled_shares(
        total: Decimal,
        shares: list[Share],
        tolerance: Decimal,
) -> list[Share]:
    provided_sum = money_sum(s.amount for s in shares)
    if not within_tolerance(provided_sum, total, tolerance):
        raise SplitMismatch(provided_sum=provided_sum, expected_amount=total)

    shares = [Share(s.member, round_to_minor_unit(s.amount)) for s in shares]
    residual = total - money_sum(s.amount for s in shares)
    if residual == 0:
        return shares

    for index, share in enumerate(shares):
        if share.amount + residual >= ZERO:
            shares[index] = Share(share.member, share.amount + residual)
            return shares

    # Every share is smaller than a negative residual; nothing can absorb it.
    raise SplitMismatch(provided_sum=provided_sum, expected_amount=total)


# ── Input normalisation ────────────────────────────────────────────────────

def _normalise_shares(provided_splits: Iterable | None) -> list[Share]:
    if provided_splits is None:
        raise InvalidInput(
            "Splits are required for percentage and custom strategies.",
            field="splits",
        )

    shares = [_coerce_share(item) for item in provided_splits]
    if not shares:
        raise InvalidInput(
            "Splits are required for percentage and custom strategies.",
            field="splits",
        )

    _reject_missing_or_duplicate([s.member for s in shares], field="splits")
    for share in shares:
        if share.amount < ZERO:
            raise InvalidInput(
                f"Split amount for member {share.member!r} must not be negative.",
                field="splits",
            )
    return shares


def _coerce_share(item) -> Share:
    if isinstance(item, Share):
        return Share(item.member, to_decimal(item.amount, field="splits"))

    if isinstance(item, Mapping):
        member = item.get("member", item.get("user_id"))
        return Share(member, to_decimal(item.get("amount"), field="splits"))

    try:
        member, amount = item
    except (TypeError, ValueError):
        raise InvalidInput(
            f"Split entries must be (member, amount) pairs, got {item!r}.",
            field="splits",
        )
    return Share(member, to_decimal(amount, field="splits"))


def _reject_missing_or_duplicate(members: list[Hashable], field: str) -> None:
    seen: set = set()
    for member in members:
        if member is None:
            raise InvalidInput("Member reference is missing.", field=field)
        if member in seen:
            raise InvalidInput(f"Member {member!r} appears more than once.", field=field)
        seen.add(member)

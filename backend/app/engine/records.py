"""
engine/records.py — Plain, immutable records the engine consumes and produces.

The engine never sees ORM objects directly. Services convert persisted rows
into these records (see services/balance_service.py), which keeps the engine
free of SQLAlchemy and lets unit tests build inputs by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Hashable


@dataclass(frozen=True)
class Share:
    """One member's owed portion of an expense."""

    member: Hashable
    amount: Decimal

    def to_dict(self) -> dict:
        return {"member": self.member, "amount": self.amount}


@dataclass(frozen=True)
class ExpenseRecord:
    amount: Decimal
    payer: Hashable
    splits: tuple[Share, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SettlementRecord:
    """`from_member` paid `to_member` directly to reduce a debt."""

    from_member: Hashable
    to_member: Hashable
    amount: Decimal

"""
engine — the ledger engine.

Pure, stateless functions: no Flask, no SQLAlchemy, no I/O. Every call is a
fold over its arguments, so it is safe to run once per request on any thread.
"""

from backend.app.engine.balances import (
    balance_sum,
    compute_balances,
    is_unsettled,
    suggest_settlements,
)
from backend.app.engine.records import ExpenseRecord, SettlementRecord, Share
from backend.app.engine.splits import SplitStrategy, compute_splits

__all__ = [
    "ExpenseRecord",
    "SettlementRecord",
    "Share",
    "SplitStrategy",
    "balance_sum",
    "compute_balances",
    "compute_splits",
    "is_unsettled",
    "suggest_settlements",
]

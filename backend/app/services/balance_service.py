"""
services/balance_service.py — Loads a group's ledger and runs the balance engine.

The formula itself lives in engine/balances.py and must not be reimplemented
here. This module only:
  1. Fetches current members, expenses (with splits) and settlements.
  2. Converts rows into engine records.
  3. Calls compute_balances() and shapes the response.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives group_id (int) and session (SQLAlchemy Session) as arguments.
  - Returns plain Python dicts and lists.

Corrupt rows:
  If any stored expense or settlement breaks an engine invariant the engine
  raises InvalidRecord. It is logged here with the group id and re-raised;
  the global handler turns it into a 500. A partial balance is never shown.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from backend.app.engine import (
    ExpenseRecord,
    SettlementRecord,
    Share,
    balance_sum,
    compute_balances,
    is_unsettled,
    suggest_settlements,
)
from backend.app.errors import InvalidRecord
from backend.app.models.expense import Expense
from backend.app.models.settlement import Settlement
from backend.app.models.user import User
from backend.app.services.lookups import (
    get_group_or_404,
    ordered_member_ids,
    require_member,
)

logger = logging.getLogger(__name__)


# ── Data access helpers ────────────────────────────────────────────────────

def get_expense_records(group_id: int, session: Session) -> list[ExpenseRecord]:
    """All expenses of a group as engine records, oldest first."""
    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .options(selectinload(Expense.splits))
        .order_by(Expense.id.asc())
    )
    return [
        ExpenseRecord(
            amount=expense.amount,
            payer=expense.paid_by_user_id,
            splits=tuple(Share(s.user_id, s.amount) for s in expense.splits),
        )
        for expense in session.execute(stmt).scalars().all()
    ]


def get_settlement_records(group_id: int, session: Session) -> list[SettlementRecord]:
    """All settlements of a group as engine records, oldest first."""
    stmt = (
        select(Settlement)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.id.asc())
    )
    return [
        SettlementRecord(
            from_member=s.from_user_id,
            to_member=s.to_user_id,
            amount=s.amount,
        )
        for s in session.execute(stmt).scalars().all()
    ]


# ── Public service functions ───────────────────────────────────────────────

def compute_group_balances(group_id: int, session: Session) -> dict[int, Decimal]:
    """
    Returns {user_id: net} for every current member of the group, plus any
    former member who still appears in its history.

    Raises:
        InvalidRecord — a stored record is corrupt (logged, then re-raised).
    """
    members = ordered_member_ids(group_id, session)
    expenses = get_expense_records(group_id, session)
    settlements = get_settlement_records(group_id, session)

    try:
        return compute_balances(members, expenses, settlements)
    except InvalidRecord as exc:
        logger.warning(
            "Balance read aborted for group %s: %s #%s is invalid (%s)",
            group_id,
            exc.kind,
            exc.index,
            exc.details.get("reason"),
        )
        raise


def is_group_unsettled(group_id: int, session: Session) -> bool:
    """True if any member of the group has a non-zero net balance."""
    return is_unsettled(compute_group_balances(group_id, session))


def get_balance_response(group_id: int, caller_id: int, session: Session) -> dict:
    """
    Builds the payload for GET /groups/:id/balances.

    Raises:
        AppError(GROUP_NOT_FOUND, 404) — group does not exist.
        AppError(FORBIDDEN, 403)       — caller is not a member.
        InvalidRecord (500)            — stored ledger data is corrupt.
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    current_members = set(ordered_member_ids(group_id, session))
    balances = compute_group_balances(group_id, session)

    users = session.execute(
        select(User).where(User.id.in_(list(balances)))
    ).scalars().all()
    names = {u.id: u.name for u in users}

    suggestions = [
        {
            "from_user_id": p["from"],
            "from_name": names.get(p["from"], f"user_{p['from']}"),
            "to_user_id": p["to"],
            "to_name": names.get(p["to"], f"user_{p['to']}"),
            "amount": str(p["amount"]),
        }
        for p in suggest_settlements(balances)
    ]

    return {
        "group_id": group_id,
        "balances": [
            {
                "user_id": uid,
                "name": names.get(uid, f"user_{uid}"),
                "balance": str(net),
                "is_member": uid in current_members,
            }
            for uid, net in balances.items()
        ],
        "is_unsettled": is_unsettled(balances),
        "suggested_settlements": suggestions,
        "balance_sum": str(balance_sum(balances)),
    }

"""
services/expense_service.py — Expense business logic.

Rules enforced here:
  FORBIDDEN (403)              — caller must be a group member
  SPLIT_USER_NOT_MEMBER (422)  — every custom/percentage split user must be a member
  INVALID_GROUP_STATE (422)    — raised by the split calculator for an empty group
  SPLIT_MISMATCH (422)         — raised by the split calculator

The payer is always the caller. Shares are computed by engine.compute_splits()
and stored in the order it returns them (Split.position), so an equal split
always shows the remainder on the first member.

Expenses are immutable once recorded: there is no edit or delete.

Layer rules:
  - No Flask imports. The split tolerance is passed in by the route.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.engine import SplitStrategy, compute_splits
from backend.app.engine.money import TOLERANCE
from backend.app.errors import AppError, ErrorCode
from backend.app.models.expense import Expense
from backend.app.models.split import Split
from backend.app.services.lookups import (
    get_expense_or_404,
    get_group_or_404,
    ordered_member_ids,
    require_member,
)

logger = logging.getLogger(__name__)


def _validate_split_users_are_members(
        splits: list[dict],
        group_id: int,
        member_ids: list[int],
) -> None:
    """Raises SPLIT_USER_NOT_MEMBER (422) for the first split user not in the group."""
    member_set = set(member_ids)
    for split in splits:
        if split["user_id"] not in member_set:
            raise AppError(
                ErrorCode.SPLIT_USER_NOT_MEMBER,
                f"User {split['user_id']} is not a member of group {group_id}.",
                422,
                field="splits",
            )


# ── Public service functions ───────────────────────────────────────────────

def create_expense(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        tolerance: Decimal = TOLERANCE,
) -> Expense:
    """
    Records a new expense paid by the caller.

    Args:
        group_id:  The group this expense belongs to.
        caller_id: The authenticated user (from flask.g); becomes the payer.
        data:      Validated dict from CreateExpenseSchema.
        tolerance: Largest accepted |sum(splits) - amount| for
                   percentage/custom expenses.

    Returns:
        The new Expense with its splits loaded.
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    amount: Decimal = data["amount"]
    strategy: SplitStrategy = data.get("split_strategy", SplitStrategy.EQUAL)
    provided = data.get("splits")

    member_ids = ordered_member_ids(group_id, session)
    if strategy is not SplitStrategy.EQUAL:
        _validate_split_users_are_members(provided or [], group_id, member_ids)

    shares = compute_splits(
        amount,
        strategy,
        member_ids,
        provided_splits=provided,
        tolerance=tolerance,
    )

    expense = Expense(
        group_id=group_id,
        paid_by_user_id=caller_id,
        description=data["description"].strip(),
        amount=amount,
        split_strategy=strategy,
        category=(data.get("category") or "").strip() or None,
        is_recurring=data.get("is_recurring", False),
        splits=[
            Split(user_id=share.member, amount=share.amount, position=position)
            for position, share in enumerate(shares)
        ],
    )
    if data.get("expense_date") is not None:
        expense.expense_date = data["expense_date"]

    session.add(expense)
    group.updated_at = func.now()
    session.flush()

    logger.info(
        "Expense %s recorded in group %s: %s paid by user %s, split %s across %d members",
        expense.id,
        group_id,
        amount,
        caller_id,
        strategy.value,
        len(shares),
    )
    return expense


def list_expenses(group_id: int, caller_id: int, session: Session) -> list[Expense]:
    """All expenses of a group, newest first. Caller must be a member."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


def get_expense(expense_id: int, caller_id: int, session: Session) -> Expense:
    """
    Returns a single expense including its splits.

    The caller must be a current member of the expense's group.
    """
    expense = get_expense_or_404(expense_id, session)
    require_member(expense.group_id, caller_id, session)
    return expense

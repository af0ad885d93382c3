"""
services/comment_service.py — Comments on expenses.

Any current member of the expense's group may comment and read comments.
Comments never affect balances.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models.comment import Comment
from backend.app.services.lookups import get_expense_or_404, require_member


def add_comment(expense_id: int, caller_id: int, message: str, session: Session) -> Comment:
    expense = get_expense_or_404(expense_id, session)
    require_member(expense.group_id, caller_id, session)

    comment = Comment(expense_id=expense.id, user_id=caller_id, message=message.strip())
    session.add(comment)
    session.flush()
    return comment


def list_comments(expense_id: int, caller_id: int, session: Session) -> list[Comment]:
    """Comments on an expense, oldest first."""
    expense = get_expense_or_404(expense_id, session)
    require_member(expense.group_id, caller_id, session)

    stmt = (
        select(Comment)
        .where(Comment.expense_id == expense_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    return list(session.execute(stmt).scalars().all())

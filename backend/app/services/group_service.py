"""
services/group_service.py — Group, membership, budget and activity logic.

Authorization rules:
  - Every group-scoped call requires the caller to be a current member
    (FORBIDDEN, 403), including adding and removing members.
  - Adding a user who is already a member, or removing one who is not,
    is a no-op for that user.

Removing a member deletes the membership row only; their expenses, splits and
settlements stay and keep counting toward balances.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.models.expense import Expense
from backend.app.models.group import BudgetPlan, Group
from backend.app.models.membership import Membership
from backend.app.models.settlement import Settlement
from backend.app.models.user import User
from backend.app.services import balance_service
from backend.app.services.lookups import (
    get_group_or_404,
    get_user_or_404,
    require_member,
)

logger = logging.getLogger(__name__)


# ── Serialisation helpers ──────────────────────────────────────────────────

def _build_group_dict(group: Group, session: Session) -> dict:
    """Serialises a Group with its ordered member list and budget plans."""
    stmt = (
        select(User)
        .join(Membership, User.id == Membership.user_id)
        .where(Membership.group_id == group.id)
        .order_by(Membership.joined_at.asc(), Membership.id.asc())
    )
    members = session.execute(stmt).scalars().all()

    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "budget": str(group.budget),
        "created_by_user_id": group.created_by_user_id,
        "created_at": group.created_at.isoformat(),
        "updated_at": group.updated_at.isoformat(),
        "members": [
            {"id": m.id, "name": m.name, "email": m.email}
            for m in members
        ],
        "budget_plans": [
            {"id": p.id, "category": p.category, "limit": str(p.limit_amount)}
            for p in group.budget_plans
        ],
    }


# ── Groups ─────────────────────────────────────────────────────────────────

def create_group(
        name: str,
        creator_id: int,
        session: Session,
        description: str | None = None,
) -> dict:
    """Creates a group; the creator becomes its first member."""
    group = Group(
        name=name.strip(),
        description=description,
        created_by_user_id=creator_id,
    )
    session.add(group)
    session.flush()  # populate group.id before creating membership

    session.add(Membership(user_id=creator_id, group_id=group.id))
    session.flush()

    return _build_group_dict(group, session)


def list_groups(user_id: int, session: Session) -> list[dict]:
    """
    Groups the user belongs to, most recently updated first, each with an
    `is_unsettled` flag derived from the balance engine.
    """
    stmt = (
        select(Group)
        .join(Membership, Group.id == Membership.group_id)
        .where(Membership.user_id == user_id)
        .order_by(Group.updated_at.desc(), Group.id.desc())
    )
    groups = session.execute(stmt).scalars().all()

    return [
        {
            "id": g.id,
            "name": g.name,
            "updated_at": g.updated_at.isoformat(),
            "is_unsettled": balance_service.is_group_unsettled(g.id, session),
        }
        for g in groups
    ]


def get_group(group_id: int, caller_id: int, session: Session) -> dict:
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return _build_group_dict(group, session)

def update_group(
        group_id: int,
        caller_id: int,
        session: Session,
        name: str | None = None,
        description: str | None = None,
) -> dict:
    """
    Renames a group and/or replaces its description. Fields left as None are
    not touched; an empty description clears it.
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    if name is not None:
        group.name = name.strip()
    if description is not None:
        group.description = description.strip() or None
    group.updated_at = func.now()
    session.flush()
    session.refresh(group)
    return _build_group_dict(group, session)


# ── Membership ─────────────────────────────────────────────────────────────

def add_members(
        group_id: int,
        caller_id: int,
        user_ids: list[int],
        session: Session,
) -> dict:
    """
    Adds users to a group in the order given.

    Raises:
      AppError(USER_NOT_FOUND, 404) — any user id does not exist. Nothing is
                                      added in that case.
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    for user_id in user_ids:
        get_user_or_404(user_id, session)

    existing = set(session.execute(
        select(Membership.user_id).where(Membership.group_id == group_id)
    ).scalars().all())

    for user_id in dict.fromkeys(user_ids):
        if user_id in existing:
            continue
        session.add(Membership(user_id=user_id, group_id=group_id))
        # one flush per row keeps membership ids in request order
        session.flush()

    return _build_group_dict(group, session)


def remove_members(
        group_id: int,
        caller_id: int,
        user_ids: list[int],
        session: Session,
) -> dict:
    """Removes users from a group. Their ledger history is kept."""
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    memberships = session.execute(
        select(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id.in_(user_ids),
        )
    ).scalars().all()

    for membership in memberships:
        session.delete(membership)
    session.flush()

    logger.info(
        "Removed %d member(s) from group %s at the request of user %s",
        len(memberships),
        group_id,
        caller_id,
    )
    return _build_group_dict(group, session)


# ── Budgets ────────────────────────────────────────────────────────────────

def update_budget(
        group_id: int,
        caller_id: int,
        budget: Decimal,
        session: Session,
) -> dict:
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    group.budget = budget
    session.flush()
    return _build_group_dict(group, session)


def add_budget_plan(
        group_id: int,
        caller_id: int,
        category: str,
        limit: Decimal,
        session: Session,
) -> dict:
    """
    Adds a per-category spending limit.

    Raises:
      AppError(DUPLICATE_BUDGET_PLAN, 409) — a plan for this category already
                                             exists (case-insensitive).
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    category = category.strip()
    duplicate = session.execute(
        select(BudgetPlan).where(
            BudgetPlan.group_id == group_id,
            func.lower(BudgetPlan.category) == category.lower(),
        )
    ).scalar_one_or_none()
    if duplicate is not None:
        raise AppError(
            ErrorCode.DUPLICATE_BUDGET_PLAN,
            f"A budget plan for '{category}' already exists in this group.",
            409,
            field="category",
        )

    group.budget_plans.append(BudgetPlan(category=category, limit_amount=limit))
    session.flush()
    return _build_group_dict(group, session)

def delete_budget_plan(
        group_id: int,
        caller_id: int,
        plan_id: int,
        session: Session,
) -> dict:
    """
    Removes one budget plan from the group.

    Raises:
      AppError(BUDGET_PLAN_NOT_FOUND, 404) — no plan with this id in this group.
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    plan = session.get(BudgetPlan, plan_id)
    if plan is None or plan.group_id != group_id:
        raise AppError(
            ErrorCode.BUDGET_PLAN_NOT_FOUND,
            f"Budget plan {plan_id} does not exist in group {group_id}.",
            404,
        )

    group.budget_plans.remove(plan)
    session.flush()

    logger.info(
        "Budget plan %s (%s) removed from group %s by user %s",
        plan_id,
        plan.category,
        group_id,
        caller_id,
    )
    return _build_group_dict(group, session)


# ── Activity feed ──────────────────────────────────────────────────────────

def get_activity(group_id: int, caller_id: int, session: Session) -> list[dict]:
    """
    Expenses and settlements of a group merged into one feed, newest first.
    Each item carries a `type` of "expense" or "settlement".
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    expenses = session.execute(
        select(Expense).where(Expense.group_id == group_id)
    ).scalars().all()
    settlements = session.execute(
        select(Settlement).where(Settlement.group_id == group_id)
    ).scalars().all()

    items = [
        (e.created_at, e.id, {
            "type": "expense",
            "id": e.id,
            "description": e.description,
            "amount": str(e.amount),
            "paid_by_user_id": e.paid_by_user_id,
            "paid_by_name": e.payer.name,
            "created_at": e.created_at.isoformat(),
        })
        for e in expenses
    ] + [
        (s.created_at, s.id, {
            "type": "settlement",
            "id": s.id,
            "amount": str(s.amount),
            "from_user_id": s.from_user_id,
            "from_name": s.sender.name,
            "to_user_id": s.to_user_id,
            "to_name": s.recipient.name,
            "created_at": s.created_at.isoformat(),
        })
        for s in settlements
    ]

    items.sort(key=lambda item: (item[0], item[1]), reverse=True)
    return [payload for _, _, payload in items]

"""
models/group.py — Group and BudgetPlan table definitions.

No business logic. No imports from services or routes.

Member order matters: the first member (by joined_at, then membership id)
absorbs the rounding remainder of every equal split. `ordered_memberships`
exposes that order; services must use it rather than `memberships`.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class Group(db.Model):
    __tablename__ = "groups"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
        CheckConstraint("budget >= 0", name="ck_groups_budget_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    budget: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        server_default="0",
    )

    # ON DELETE RESTRICT — cannot delete a user who created a group.
    created_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Bumped by services whenever an expense or settlement is recorded so the
    # group listing can show the most active groups first.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    creator: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[created_by_user_id],
    )

    ordered_memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="group",
        order_by="[Membership.joined_at, Membership.id]",
    )

    budget_plans: Mapped[list["BudgetPlan"]] = relationship(
        "BudgetPlan",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="BudgetPlan.id",
    )

    expenses: Mapped[list["Expense"]] = relationship(  # noqa: F821
        "Expense",
        back_populates="group",
    )

    settlements: Mapped[list["Settlement"]] = relationship(  # noqa: F821
        "Settlement",
        back_populates="group",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r}>"


class BudgetPlan(db.Model):
    __tablename__ = "budget_plans"

    __table_args__ = (
        # Case-insensitive uniqueness is checked in group_service; this
        # constraint catches exact duplicates.
        UniqueConstraint("group_id", "category", name="uq_budget_plans_group_category"),
        CheckConstraint("limit_amount >= 0", name="ck_budget_plans_limit_non_negative"),
        CheckConstraint(
            "LENGTH(TRIM(category)) > 0",
            name="ck_budget_plans_category_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    limit_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    group: Mapped[Group] = relationship(
        "Group",
        back_populates="budget_plans",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<BudgetPlan id={self.id} group_id={self.group_id} "
            f"category={self.category!r} limit={self.limit_amount}>"
        )

"""
models/expense.py — Expense table definition.

No business logic. No imports from services or routes.

Key design points:
  - Expenses are immutable once created: no updated_at, no soft-delete.
  - `amount` uses Numeric(12, 2) — never Float.
  - `split_strategy` stores the SplitStrategy value the split calculator
    dispatched on; the shares themselves live in `splits`, in calculator order.
  - `category` is free text (e.g. "Food"); budget plans match it
    case-insensitively.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.engine.splits import SplitStrategy
from backend.app.extensions import db


class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE RESTRICT — cannot delete a group that has expenses.
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # ON DELETE RESTRICT — cannot delete a user who has paid expenses.
    paid_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    # Stored as VARCHAR + CHECK so SQLite and PostgreSQL share one schema.
    split_strategy: Mapped[SplitStrategy] = mapped_column(
        Enum(
            SplitStrategy,
            name="split_strategy_enum",
            native_enum=False,
            length=20,
            values_callable=lambda cls: [member.value for member in cls],
        ),
        nullable=False,
        default=SplitStrategy.EQUAL,
        server_default=SplitStrategy.EQUAL.value,
    )

    category: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    is_recurring: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    expense_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="expenses",
    )

    payer: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="expenses_paid",
        foreign_keys=[paid_by_user_id],
    )

    # ON DELETE CASCADE — splits are owned by their expense.
    splits: Mapped[list["Split"]] = relationship(  # noqa: F821
        "Split",
        back_populates="expense",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Split.position",
    )

    comments: Mapped[list["Comment"]] = relationship(  # noqa: F821
        "Comment",
        back_populates="expense",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Comment.id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id} "
            f"group_id={self.group_id} "
            f"amount={self.amount} "
            f"strategy={self.split_strategy.value}>"
        )

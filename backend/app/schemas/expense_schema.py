"""
schemas/expense_schema.py — Marshmallow schemas for expense and comment endpoints.

Validation responsibility:
  - This file:
      - Field types, lengths, enum values, decimal precision
      - SPLITS_SENT_FOR_EQUAL_STRATEGY (400) — request shape rule
      - DUPLICATE_SPLIT_USER           (400) — request shape rule
      - Splits required for 'percentage' and 'custom'
      - Non-empty-after-trim enforcement for description and comment message
  - engine/splits.py (called from services/expense_service.py):
      - SPLIT_MISMATCH (422) — |sum(splits) - amount| > 0.01
      - INVALID_GROUP_STATE (422) — equal split over zero members
  - services/expense_service.py:
      - SPLIT_USER_NOT_MEMBER (422) — requires DB membership lookup

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from backend.app.engine.splits import SplitStrategy
from backend.app.errors import ErrorCode


# ── Shared validators ──────────────────────────────────────────────────────

def _validate_monetary_amount(value: Decimal) -> None:
    """
    Strictly positive, at most 2 decimal places.

    More than 2 decimal places is REJECTED (INVALID_AMOUNT_PRECISION), never
    rounded: the column is NUMERIC(12, 2) and a silently rounded share would
    break sum(splits) == amount.
    """
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_share_amount(value: Decimal) -> None:
    """Shares may be zero (a member included but owing nothing); never negative."""
    if value < Decimal("0"):
        raise ValidationError("Split amount must not be negative.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


# ── Sub-schema: one entry in the `splits` array ───────────────────────────

class SplitInputSchema(Schema):
    """
    One {user_id, amount} entry. Percentage splits are sent already resolved
    to absolute amounts.
    """

    user_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
    )

    amount = fields.Decimal(
        required=True,
        validate=_validate_share_amount,
    )


# ── Create expense ─────────────────────────────────────────────────────────

class CreateExpenseSchema(Schema):
    """
    POST /groups/:id/expenses

    The payer is always the authenticated caller; it is not part of the body.

    Split strategy behaviour:
      - 'equal' (default)        → client must NOT send splits. The server
                                   divides the amount across all current
                                   members, first member absorbs the remainder.
      - 'percentage' / 'custom'  → client MUST send splits with absolute amounts.
    """

    description = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    split_strategy = fields.Enum(
        SplitStrategy,
        load_default=SplitStrategy.EQUAL,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_STRATEGY},
    )

    # Free text, e.g. "Food". Budget plans match it case-insensitively.
    category = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=50, error="Category must be at most 50 characters."),
    )

    is_recurring = fields.Bool(load_default=False)

    expense_date = fields.AwareDateTime(load_default=None, allow_none=True)

    splits = fields.List(
        fields.Nested(SplitInputSchema),
        load_default=None,
    )

    @validates_schema
    def validate_splits_coherence(self, data: dict, **kwargs) -> None:
        """
        1. SPLITS_SENT_FOR_EQUAL_STRATEGY: splits present with strategy 'equal'.
        2. splits required for 'percentage' and 'custom'.
        3. DUPLICATE_SPLIT_USER: same user_id twice in splits.

        The sum check is NOT here — the split calculator owns it.
        """
        strategy = data.get("split_strategy", SplitStrategy.EQUAL)
        splits = data.get("splits")

        if strategy == SplitStrategy.EQUAL:
            if splits is not None:
                raise ValidationError(
                    {"splits": [ErrorCode.SPLITS_SENT_FOR_EQUAL_STRATEGY]}
                )
            return

        if not splits:
            raise ValidationError(
                {"splits": [f"splits is required when split_strategy is '{strategy.value}'."]}
            )

        user_ids = [s["user_id"] for s in splits]
        if len(user_ids) != len(set(user_ids)):
            raise ValidationError({"splits": [ErrorCode.DUPLICATE_SPLIT_USER]})


# ── Comments ───────────────────────────────────────────────────────────────

class CreateCommentSchema(Schema):
    """POST /expenses/:id/comments"""

    message = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=2000, error="Comment must be between 1 and 2000 characters."),
            _validate_non_empty_after_trim,
        ],
    )

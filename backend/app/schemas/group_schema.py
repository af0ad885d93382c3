"""
schemas/group_schema.py — Marshmallow schemas for group, membership and
budget endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks, budget precision.
    An update must name at least one field.
  - services/group_service.py:
      - FORBIDDEN (caller must be a member)
      - USER_NOT_FOUND, GROUP_NOT_FOUND, BUDGET_PLAN_NOT_FOUND,
        DUPLICATE_BUDGET_PLAN (DB lookups)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from backend.app.errors import ErrorCode


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _validate_budget_amount(value: Decimal) -> None:
    """Budgets may be zero but never negative; at most 2 decimal places."""
    if value < Decimal("0"):
        raise ValidationError("Budget must not be negative.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


class CreateGroupSchema(Schema):
    """POST /groups — name non-empty after trim, max 100 chars."""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    description = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=1000),
    )


class UpdateGroupSchema(Schema):
    """PATCH /groups/:id — name and/or description; at least one is required."""

    name = fields.Str(
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    description = fields.Str(
        validate=validate.Length(max=1000),
    )

    @validates_schema
    def validate_not_empty(self, data: dict, **kwargs) -> None:
        if "name" not in data and "description" not in data:
            raise ValidationError({"name": ["Provide a name or a description to update."]})


class MemberIdsSchema(Schema):
    """POST /groups/:id/members and /groups/:id/members/remove"""

    user_ids = fields.List(
        fields.Int(
            strict=True,
            validate=validate.Range(min=1, error="user_id must be a positive integer."),
        ),
        required=True,
        validate=validate.Length(min=1, error="Provide at least one user_id."),
    )


class UpdateBudgetSchema(Schema):
    """PATCH /groups/:id/budget"""

    budget = fields.Decimal(
        required=True,
        validate=_validate_budget_amount,
    )


class CreateBudgetPlanSchema(Schema):
    """POST /groups/:id/budget-plans"""

    category = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=50, error="Category must be between 1 and 50 characters."),
            _validate_non_empty_after_trim,
        ],
    )

    limit = fields.Decimal(
        required=True,
        validate=_validate_budget_amount,
    )

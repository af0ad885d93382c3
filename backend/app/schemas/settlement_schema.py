"""
schemas/settlement_schema.py — Marshmallow schema for settlement endpoints.

Validation responsibility:
  - This file: field types, decimal precision, positive amount.
  - services/settlement_service.py:
      - SELF_SETTLEMENT (422)             — from_user_id == to_user_id
      - SETTLEMENT_PARTY_NOT_MEMBER (422) — requires DB membership lookup

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from backend.app.errors import ErrorCode


def _validate_monetary_amount(value: Decimal) -> None:
    """
    Strictly positive, at most 2 decimal places. Settlements are always paid
    in full; there is no partial or installment form.
    """
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


class CreateSettlementSchema(Schema):
    """
    POST /groups/:id/settlements

    Records that `from_user_id` paid `to_user_id` directly. Any group member
    may record a settlement between any two members.
    """

    from_user_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="from_user_id must be a positive integer."),
    )

    to_user_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="to_user_id must be a positive integer."),
    )

    amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    settled_at = fields.AwareDateTime(load_default=None, allow_none=True)

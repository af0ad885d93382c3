"""
tests/unit/test_validation_schemas.py — Unit tests for the marshmallow request schemas.

Schemas are loaded without a Flask app: they inherit from marshmallow.Schema,
not ma.Schema, precisely so they can be tested this way.

What this file proves:
  - Required fields, lengths and blank-after-trim checks
  - Monetary precision: more than 2 decimal places → INVALID_AMOUNT_PRECISION
  - split_strategy coherence rules (equal must not send splits, the others must)
  - DUPLICATE_SPLIT_USER and INVALID_SPLIT_STRATEGY surface as error codes
  - The error-envelope helper picks the first nested error and its path
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from marshmallow import ValidationError

from backend.app import _first_validation_error
from backend.app.engine import SplitStrategy
from backend.app.errors import ErrorCode
from backend.app.models.user import Role
from backend.app.schemas.auth_schema import LoginSchema, RegisterSchema, UserSearchSchema
from backend.app.schemas.expense_schema import CreateCommentSchema, CreateExpenseSchema
from backend.app.schemas.group_schema import (
    CreateBudgetPlanSchema,
    CreateGroupSchema,
    MemberIdsSchema,
    UpdateBudgetSchema,
)
from backend.app.schemas.settlement_schema import CreateSettlementSchema


def _errors(schema, payload) -> dict:
    with pytest.raises(ValidationError) as exc_info:
        schema.load(payload)
    return exc_info.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════

class TestRegisterSchema:

    def _valid(self, **overrides):
        payload = {"name": "Alice", "email": "Alice@Example.com", "password": "Password1"}
        payload.update(overrides)
        return payload

    def test_valid_payload_lowercases_email_and_defaults_role(self):
        data = RegisterSchema().load(self._valid())
        assert data["email"] == "alice@example.com"
        assert data["role"] is Role.MEMBER

    def test_admin_role_is_accepted(self):
        assert RegisterSchema().load(self._valid(role="admin"))["role"] is Role.ADMIN

    def test_unknown_role_is_rejected(self):
        assert "role" in _errors(RegisterSchema(), self._valid(role="owner"))

    @pytest.mark.parametrize("password", ["short1", "allletters", "12345678"])
    def test_weak_password_is_rejected(self, password):
        assert "password" in _errors(RegisterSchema(), self._valid(password=password))

    def test_blank_name_is_rejected(self):
        assert "name" in _errors(RegisterSchema(), self._valid(name="   "))

    def test_invalid_email_is_rejected(self):
        assert "email" in _errors(RegisterSchema(), self._valid(email="not-an-email"))

    def test_missing_fields_are_reported(self):
        errors = _errors(RegisterSchema(), {})
        assert set(errors) == {"name", "email", "password"}


def test_login_schema_lowercases_email():
    data = LoginSchema().load({"email": " BOB@test.com ", "password": "x"})
    assert data["email"] == "bob@test.com"


def test_user_search_requires_email():
    assert "email" in _errors(UserSearchSchema(), {})


# ═══════════════════════════════════════════════════════════════════════════
# Expenses
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateExpenseSchema:

    def test_equal_is_the_default_strategy(self):
        data = CreateExpenseSchema().load({"description": "Dinner", "amount": "90.00"})

        assert data["split_strategy"] is SplitStrategy.EQUAL
        assert data["amount"] == Decimal("90.00")
        assert data["splits"] is None
        assert data["is_recurring"] is False
        assert data["category"] is None

    def test_custom_with_splits_is_accepted(self):
        data = CreateExpenseSchema().load({
            "description": "Taxi",
            "amount": "30.00",
            "split_strategy": "custom",
            "category": "Transport",
            "splits": [
                {"user_id": 1, "amount": "10.00"},
                {"user_id": 2, "amount": "20.00"},
            ],
        })
        assert data["split_strategy"] is SplitStrategy.CUSTOM
        assert data["splits"][1] == {"user_id": 2, "amount": Decimal("20.00")}

    def test_percentage_is_a_valid_strategy(self):
        data = CreateExpenseSchema().load({
            "description": "Hotel",
            "amount": "200.00",
            "split_strategy": "percentage",
            "splits": [{"user_id": 1, "amount": "200.00"}],
        })
        assert data["split_strategy"] is SplitStrategy.PERCENTAGE

    def test_unknown_strategy_uses_error_code(self):
        errors = _errors(CreateExpenseSchema(), {
            "description": "x", "amount": "1.00", "split_strategy": "weighted",
        })
        assert errors["split_strategy"] == [ErrorCode.INVALID_SPLIT_STRATEGY]

    def test_splits_with_equal_strategy_are_rejected(self):
        errors = _errors(CreateExpenseSchema(), {
            "description": "x",
            "amount": "10.00",
            "splits": [{"user_id": 1, "amount": "10.00"}],
        })
        assert errors["splits"] == [ErrorCode.SPLITS_SENT_FOR_EQUAL_STRATEGY]

    @pytest.mark.parametrize("strategy", ["custom", "percentage"])
    def test_custom_strategies_require_splits(self, strategy):
        errors = _errors(CreateExpenseSchema(), {
            "description": "x", "amount": "10.00", "split_strategy": strategy,
        })
        assert "splits" in errors

    def test_duplicate_split_user_is_rejected(self):
        errors = _errors(CreateExpenseSchema(), {
            "description": "x",
            "amount": "10.00",
            "split_strategy": "custom",
            "splits": [
                {"user_id": 1, "amount": "5.00"},
                {"user_id": 1, "amount": "5.00"},
            ],
        })
        assert errors["splits"] == [ErrorCode.DUPLICATE_SPLIT_USER]

    def test_three_decimal_places_is_rejected(self):
        errors = _errors(CreateExpenseSchema(), {"description": "x", "amount": "10.005"})
        assert errors["amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    @pytest.mark.parametrize("amount", ["0", "0.00", "-1.00"])
    def test_non_positive_amount_is_rejected(self, amount):
        assert "amount" in _errors(CreateExpenseSchema(), {"description": "x", "amount": amount})

    def test_split_amount_precision_is_checked(self):
        errors = _errors(CreateExpenseSchema(), {
            "description": "x",
            "amount": "10.00",
            "split_strategy": "custom",
            "splits": [{"user_id": 1, "amount": "10.001"}],
        })
        assert errors["splits"][0]["amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    def test_zero_split_amount_is_allowed(self):
        data = CreateExpenseSchema().load({
            "description": "x",
            "amount": "10.00",
            "split_strategy": "custom",
            "splits": [{"user_id": 1, "amount": "10.00"}, {"user_id": 2, "amount": "0"}],
        })
        assert data["splits"][1]["amount"] == Decimal("0")

    def test_whitespace_description_is_rejected(self):
        assert "description" in _errors(
            CreateExpenseSchema(), {"description": "   ", "amount": "1.00"}
        )

    def test_string_user_id_is_rejected(self):
        errors = _errors(CreateExpenseSchema(), {
            "description": "x",
            "amount": "10.00",
            "split_strategy": "custom",
            "splits": [{"user_id": "1", "amount": "10.00"}],
        })
        assert "user_id" in errors["splits"][0]


def test_comment_schema_rejects_blank_message():
    assert "message" in _errors(CreateCommentSchema(), {"message": "  "})


# ═══════════════════════════════════════════════════════════════════════════
# Settlements
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateSettlementSchema:

    def test_valid_payload(self):
        data = CreateSettlementSchema().load(
            {"from_user_id": 2, "to_user_id": 1, "amount": "33.33"}
        )
        assert data == {
            "from_user_id": 2,
            "to_user_id": 1,
            "amount": Decimal("33.33"),
            "settled_at": None,
        }

    def test_zero_amount_is_rejected(self):
        assert "amount" in _errors(
            CreateSettlementSchema(), {"from_user_id": 2, "to_user_id": 1, "amount": "0"}
        )

    def test_precision_is_checked(self):
        errors = _errors(
            CreateSettlementSchema(), {"from_user_id": 2, "to_user_id": 1, "amount": "1.001"}
        )
        assert errors["amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    def test_parties_are_required(self):
        errors = _errors(CreateSettlementSchema(), {"amount": "5.00"})
        assert set(errors) == {"from_user_id", "to_user_id"}


# ═══════════════════════════════════════════════════════════════════════════
# Groups and budgets
# ═══════════════════════════════════════════════════════════════════════════

def test_group_name_must_not_be_blank():
    assert "name" in _errors(CreateGroupSchema(), {"name": " "})


def test_group_description_is_optional():
    assert CreateGroupSchema().load({"name": "Trip"}) == {"name": "Trip", "description": None}


def test_member_ids_must_not_be_empty():
    assert "user_ids" in _errors(MemberIdsSchema(), {"user_ids": []})


def test_budget_may_be_zero_but_not_negative():
    assert UpdateBudgetSchema().load({"budget": "0"}) == {"budget": Decimal("0")}
    assert "budget" in _errors(UpdateBudgetSchema(), {"budget": "-1"})


def test_budget_plan_requires_category_and_limit():
    errors = _errors(CreateBudgetPlanSchema(), {})
    assert set(errors) == {"category", "limit"}


# ═══════════════════════════════════════════════════════════════════════════
# Error envelope helper
# ═══════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("messages, expected", [
    ({"amount": ["Not a valid number."]}, ("amount", "Not a valid number.")),
    ({"splits": {0: {"amount": ["INVALID_AMOUNT_PRECISION"]}}},
     ("splits.0.amount", "INVALID_AMOUNT_PRECISION")),
    ({"_schema": ["Invalid input type."]}, (None, "Invalid input type.")),
    (["Invalid input type."], (None, "Invalid input type.")),
])
def test_first_validation_error(messages, expected):
    assert _first_validation_error(messages) == expected

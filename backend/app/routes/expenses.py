"""
routes/expenses.py — Expense and comment route handlers.

Registered at url_prefix=/api/v1 (not /api/v1/expenses) because this blueprint
owns BOTH the group-scoped paths (/groups/:id/expenses) and the
expense-ID paths (/expenses/:id). Registering at /api/v1/expenses would
make the group-scoped paths unreachable.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - _serialize_expense() is a pure data-shape helper — not business logic.

Endpoints:
  POST   /groups/:id/expenses    → 201  create expense (runs the split calculator)
  GET    /groups/:id/expenses    → 200  list expenses, newest first
  GET    /expenses/:id           → 200  expense + ordered splits
  POST   /expenses/:id/comments  → 201  add a comment
  GET    /expenses/:id/comments  → 200  list comments, oldest first
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.models.comment import Comment
from backend.app.models.expense import Expense
from backend.app.schemas.expense_schema import CreateCommentSchema, CreateExpenseSchema
from backend.app.services import comment_service, expense_service

expenses_bp = Blueprint("expenses", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────
# Pure data-shaping — no DB access, no logic. Amounts as strings.

def _serialize_expense(expense: Expense) -> dict:
    """Converts an Expense ORM object to a plain dict for JSON output."""
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "paid_by_user_id": expense.paid_by_user_id,
        "paid_by_name": expense.payer.name,
        "description": expense.description,
        "amount": str(expense.amount),
        "split_strategy": expense.split_strategy.value,
        "category": expense.category,
        "is_recurring": expense.is_recurring,
        "expense_date": expense.expense_date.isoformat(),
        "created_at": expense.created_at.isoformat(),
        "splits": [
            {
                "user_id": s.user_id,
                "name": s.user.name,
                "amount": str(s.amount),
            }
            for s in expense.splits
        ],
    }


def _serialize_comment(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "expense_id": comment.expense_id,
        "user_id": comment.user_id,
        "author_name": comment.author.name,
        "message": comment.message,
        "created_at": comment.created_at.isoformat(),
    }


# ── Group-scoped expense routes ────────────────────────────────────────────

@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["POST"])
@require_auth
def create_expense(group_id: int):
    """
    POST /groups/:id/expenses — Record a new expense paid by the caller.
    'equal' splits across all current members; 'percentage' and 'custom'
    take explicit splits.
    """
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    expense = expense_service.create_expense(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        tolerance=current_app.config["LEDGER_SPLIT_TOLERANCE"],
    )
    db.session.commit()
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 201


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["GET"])
@require_auth
def list_expenses(group_id: int):
    expenses = expense_service.list_expenses(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 200


# ── Expense-ID routes ──────────────────────────────────────────────────────

@expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
@require_auth
def get_expense(expense_id: int):
    """GET /expenses/:id — Get expense detail including splits."""
    expense = expense_service.get_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>/comments", methods=["POST"])
@require_auth
def add_comment(expense_id: int):
    data = CreateCommentSchema().load(request.get_json(force=True) or {})
    comment = comment_service.add_comment(
        expense_id=expense_id,
        caller_id=g.user_id,
        message=data["message"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_comment(comment), "warnings": []}), 201


@expenses_bp.route("/expenses/<int:expense_id>/comments", methods=["GET"])
@require_auth
def list_comments(expense_id: int):
    comments = comment_service.list_comments(
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [_serialize_comment(c) for c in comments],
        "warnings": [],
    }), 200

"""
routes/groups.py — Group, membership, budget and activity route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/groups):
  POST   /groups                       → 201  create group
  GET    /groups                       → 200  caller's groups with is_unsettled
  GET    /groups/:id                   → 200  group + ordered members + budget plans
  PATCH  /groups/:id                   → 200  rename / change description
  POST   /groups/:id/members           → 200  add users
  POST   /groups/:id/members/remove    → 200  remove users
  PATCH  /groups/:id/budget            → 200  set overall budget
  POST   /groups/:id/budget-plans      → 201  add a category budget plan
  DELETE /groups/:id/budget-plans/:pid → 200  remove a budget plan
  GET    /groups/:id/activity          → 200  expenses + settlements, newest first
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.group_schema import (
    CreateBudgetPlanSchema,
    CreateGroupSchema,
    MemberIdsSchema,
    UpdateBudgetSchema,
    UpdateGroupSchema,
)
from backend.app.services import group_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a new group. Caller becomes creator and first member."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(
        name=data["name"],
        description=data["description"],
        creator_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/", methods=["GET"])
@require_auth
def list_groups():
    """GET /groups — Groups the caller belongs to, most recently active first."""
    result = group_service.list_groups(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    result = group_service.get_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["PATCH"])
@require_auth
def update_group(group_id: int):
    """PATCH /groups/:id — {"name"?, "description"?}; omitted fields are kept."""
    data = UpdateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.update_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        name=data.get("name"),
        description=data.get("description"),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@require_auth
def add_members(group_id: int):
    """POST /groups/:id/members — {"user_ids": [...]}; existing members are skipped."""
    data = MemberIdsSchema().load(request.get_json(force=True) or {})
    result = group_service.add_members(
        group_id=group_id,
        caller_id=g.user_id,
        user_ids=data["user_ids"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members/remove", methods=["POST"])
@require_auth
def remove_members(group_id: int):
    """POST /groups/:id/members/remove — {"user_ids": [...]}; history is kept."""
    data = MemberIdsSchema().load(request.get_json(force=True) or {})
    result = group_service.remove_members(
        group_id=group_id,
        caller_id=g.user_id,
        user_ids=data["user_ids"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/budget", methods=["PATCH"])
@require_auth
def update_budget(group_id: int):
    data = UpdateBudgetSchema().load(request.get_json(force=True) or {})
    result = group_service.update_budget(
        group_id=group_id,
        caller_id=g.user_id,
        budget=data["budget"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/budget-plans", methods=["POST"])
@require_auth
def add_budget_plan(group_id: int):
    """POST /groups/:id/budget-plans — one plan per category, case-insensitive."""
    data = CreateBudgetPlanSchema().load(request.get_json(force=True) or {})
    result = group_service.add_budget_plan(
        group_id=group_id,
        caller_id=g.user_id,
        category=data["category"],
        limit=data["limit"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/budget-plans/<int:plan_id>", methods=["DELETE"])
@require_auth
def delete_budget_plan(group_id: int, plan_id: int):
    result = group_service.delete_budget_plan(
        group_id=group_id,
        caller_id=g.user_id,
        plan_id=plan_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/activity", methods=["GET"])
@require_auth
def get_activity(group_id: int):
    result = group_service.get_activity(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200

"""
routes/users.py — User lookup.

Endpoints (base url_prefix=/api/v1/users):
  GET /users/search?email=...  → 200  find one user to add to a group
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.auth_schema import UserSearchSchema
from backend.app.services import auth_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/search", methods=["GET"])
@require_auth
def search_user():
    data = UserSearchSchema().load(request.args.to_dict())
    result = auth_service.find_user_by_email(
        email=data["email"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200

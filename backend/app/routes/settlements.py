"""
routes/settlements.py — Settlement route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/groups):
  POST   /groups/:id/settlements  → 201  record a direct payment between members
  GET    /groups/:id/settlements  → 200  settlement history, newest first
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.models.settlement import Settlement
from backend.app.schemas.settlement_schema import CreateSettlementSchema
from backend.app.services import settlement_service

settlements_bp = Blueprint("settlements", __name__)


# ── Serialization helper ───────────────────────────────────────────────────

def _serialize_settlement(s: Settlement) -> dict:
    """Converts a Settlement ORM object to a plain dict for JSON output."""
    return {
        "id": s.id,
        "group_id": s.group_id,
        "from_user_id": s.from_user_id,
        "from_name": s.sender.name,
        "to_user_id": s.to_user_id,
        "to_name": s.recipient.name,
        "amount": str(s.amount),
        "settled_at": s.settled_at.isoformat(),
        "created_at": s.created_at.isoformat(),
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@settlements_bp.route("/<int:group_id>/settlements", methods=["POST"])
@require_auth
def create_settlement(group_id: int):
    """
    POST /groups/:id/settlements — Record that from_user_id paid to_user_id.

    Any member may record a settlement between any two members. Overpaying
    is allowed; the settlement is always recorded in full.
    """
    data = CreateSettlementSchema().load(request.get_json(force=True) or {})
    settlement = settlement_service.create_settlement(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_settlement(settlement), "warnings": []}), 201


@settlements_bp.route("/<int:group_id>/settlements", methods=["GET"])
@require_auth
def list_settlements(group_id: int):
    settlements = settlement_service.list_settlements(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [_serialize_settlement(s) for s in settlements],
        "warnings": [],
    }), 200

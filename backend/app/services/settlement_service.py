"""
services/settlement_service.py — Settlement business logic.

Rules enforced here:
  FORBIDDEN (403)                    — caller must be a group member
  SELF_SETTLEMENT (422)              — from_user_id must not equal to_user_id
  SETTLEMENT_PARTY_NOT_MEMBER (422)  — both parties must be current members

A settlement is always recorded in full; overpaying is allowed and simply
flips the sign of the two balances. The DB also has CHECK constraints for
positive amount and from <> to as the final defence layer.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.models.settlement import Settlement
from backend.app.services.lookups import (
    get_group_or_404,
    ordered_member_ids,
    require_member,
)

logger = logging.getLogger(__name__)


def create_settlement(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Settlement:
    """
    Records that data["from_user_id"] paid data["to_user_id"] directly.

    Args:
        group_id:  The group this settlement belongs to.
        caller_id: The authenticated user recording it (from flask.g).
        data:      Validated dict from CreateSettlementSchema.
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    from_user_id: int = data["from_user_id"]
    to_user_id: int = data["to_user_id"]
    amount: Decimal = data["amount"]

    if from_user_id == to_user_id:
        raise AppError(
            ErrorCode.SELF_SETTLEMENT,
            "A settlement needs two different members.",
            422,
            field="to_user_id",
        )

    member_ids = set(ordered_member_ids(group_id, session))
    for field, user_id in (("from_user_id", from_user_id), ("to_user_id", to_user_id)):
        if user_id not in member_ids:
            raise AppError(
                ErrorCode.SETTLEMENT_PARTY_NOT_MEMBER,
                f"User {user_id} is not a member of group {group_id}.",
                422,
                field=field,
            )

    settlement = Settlement(
        group_id=group_id,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        amount=amount,
    )
    if data.get("settled_at") is not None:
        settlement.settled_at = data["settled_at"]

    session.add(settlement)
    group.updated_at = func.now()
    session.flush()

    logger.info(
        "Settlement %s recorded in group %s: user %s paid user %s %s",
        settlement.id,
        group_id,
        from_user_id,
        to_user_id,
        amount,
    )
    return settlement


def list_settlements(group_id: int, caller_id: int, session: Session) -> list[Settlement]:
    """Settlement history of a group, newest first. Caller must be a member."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = (
        select(Settlement)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.created_at.desc(), Settlement.id.desc())
    )
    return list(session.execute(stmt).scalars().all())

"""
middleware/auth_middleware.py — Bearer-token authentication for ledger routes.

@require_auth resolves the caller of a request to a live User row and exposes
it as g.user (and its id as g.user_id). Group membership is not checked here;
group-scoped services do that with require_member().

Failures, all 401:
  TOKEN_MISSING  — no Authorization header
  TOKEN_EXPIRED  — signature is fine but exp has passed
  TOKEN_INVALID  — anything else: not "Bearer <jwt>", bad signature, no usable
                   sub claim, or the account behind sub no longer exists
"""

from __future__ import annotations

import functools
import logging
from typing import Callable

import jwt
from flask import current_app, g, request

from backend.app.errors import AppError, ErrorCode
from backend.app.extensions import db
from backend.app.models.user import User

logger = logging.getLogger(__name__)


def require_auth(f: Callable) -> Callable:
    """Route decorator; the wrapped view runs with g.user and g.user_id set."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user = _authenticate_request()
        g.user = user
        g.user_id = user.id
        return f(*args, **kwargs)

    return decorated


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )
    return parts[1]


def _user_id_from_token(raw_token: str) -> int:
    try:
        payload = jwt.decode(
            raw_token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        # no refresh token; the client logs in again
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Log in again to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
            401,
        )


def _authenticate_request() -> User:
    """
    Returns the User the request's token was issued to.

    A correctly signed token can outlive its account, so the row is loaded
    on every request rather than trusting the sub claim alone.
    """
    user_id = _user_id_from_token(_bearer_token())

    user = db.session.get(User, user_id)
    if user is None:
        logger.info("Rejected token for user %s: account no longer exists", user_id)
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The account this token was issued to no longer exists.",
            401,
        )
    return user

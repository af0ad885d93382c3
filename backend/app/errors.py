"""
errors.py — AppError base class, ledger error types and the error code registry.

Every error returned by the GroupLedger API uses a code defined here.
Do not raise strings or generic exceptions from engine, service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - 401 (unauthenticated) and 403 (unauthorized) are never conflated.

The ledger engine (app/engine/) raises the four typed errors at the bottom of
this file. They are ordinary AppError subclasses, so the global Flask handler
renders them like any other error; `details` carries the structured
diagnostics (e.g. the provided and expected sums of a SplitMismatch).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field    # which request field caused the error
        self.details     = details  # structured diagnostics, JSON-safe after to_dict()

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.details:
            payload["details"] = {
                key: str(value) if isinstance(value, Decimal) else value
                for key, value in self.details.items()
            }
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD                  = "MISSING_FIELD"
    INVALID_FIELD                  = "INVALID_FIELD"
    INVALID_INPUT                  = "INVALID_INPUT"
    INVALID_AMOUNT_PRECISION       = "INVALID_AMOUNT_PRECISION"
    INVALID_SPLIT_STRATEGY         = "INVALID_SPLIT_STRATEGY"
    SPLITS_SENT_FOR_EQUAL_STRATEGY = "SPLITS_SENT_FOR_EQUAL_STRATEGY"
    DUPLICATE_SPLIT_USER           = "DUPLICATE_SPLIT_USER"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL                = "DUPLICATE_EMAIL"
    DUPLICATE_BUDGET_PLAN          = "DUPLICATE_BUDGET_PLAN"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND                 = "USER_NOT_FOUND"
    GROUP_NOT_FOUND                = "GROUP_NOT_FOUND"
    EXPENSE_NOT_FOUND              = "EXPENSE_NOT_FOUND"
    BUDGET_PLAN_NOT_FOUND          = "BUDGET_PLAN_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    INVALID_GROUP_STATE            = "INVALID_GROUP_STATE"
    SPLIT_MISMATCH                 = "SPLIT_MISMATCH"
    SPLIT_USER_NOT_MEMBER          = "SPLIT_USER_NOT_MEMBER"
    SETTLEMENT_PARTY_NOT_MEMBER    = "SETTLEMENT_PARTY_NOT_MEMBER"
    SELF_SETTLEMENT                = "SELF_SETTLEMENT"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    INVALID_CREDENTIALS            = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING                  = "TOKEN_MISSING"          # 401
    TOKEN_INVALID                  = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED                  = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                      = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    # INVALID_RECORD means stored ledger data is corrupt; the balance read is
    # rejected instead of showing wrong totals.
    INVALID_RECORD                 = "INVALID_RECORD"
    INTERNAL_ERROR                 = "INTERNAL_ERROR"


# ── Ledger engine errors ───────────────────────────────────────────────────

class InvalidInput(AppError):
    """Missing/zero amount, malformed member reference, unknown strategy."""

    def __init__(self, message: str, field: str | None = None, **details: Any) -> None:
        super().__init__(ErrorCode.INVALID_INPUT, message, 400, field=field, details=details or None)


class InvalidGroupState(AppError):
    """The group cannot support the request, e.g. an equal split over zero members."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(ErrorCode.INVALID_GROUP_STATE, message, 422, details=details or None)


class SplitMismatch(AppError):
    """Provided shares do not reconcile with the expense amount within tolerance."""

    def __init__(self, provided_sum: Decimal, expected_amount: Decimal) -> None:
        super().__init__(
            ErrorCode.SPLIT_MISMATCH,
            f"The splits add up to {provided_sum} but the expense amount is {expected_amount}.",
            422,
            field="splits",
            details={"provided_sum": provided_sum, "expected_amount": expected_amount},
        )
        self.provided_sum    = provided_sum
        self.expected_amount = expected_amount


class InvalidRecord(AppError):
    """A stored expense or settlement breaks a structural invariant."""

    def __init__(self, kind: str, index: int, reason: str) -> None:
        super().__init__(
            ErrorCode.INVALID_RECORD,
            f"{kind.capitalize()} record #{index} is invalid: {reason}",
            500,
            details={"kind": kind, "index": index, "reason": reason},
        )
        self.kind  = kind
        self.index = index

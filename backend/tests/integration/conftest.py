"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session with create_app("testing"). The
    testing config points at an in-memory SQLite database unless
    TEST_DATABASE_URL is set (e.g. to a PostgreSQL test database).
  - All tables are created once via db.create_all() at session start.
  - After each test, all rows are deleted in FK-safe order so tests are
    isolated.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)      → dict with user + access_token
  - login(client, ...)         → dict with user + access_token
  - auth_headers(token)        → {"Authorization": "Bearer <token>"}
  - make_group(client, ...)    → group dict
  - add_members(...)           → HTTP response
  - make_expense(...)          → HTTP response
  - settle(...)                → HTTP response
  - get_balances(...)          → balances payload dict

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from backend.app import create_app
from backend.app.extensions import db as _db

# Child tables first.
_TABLES = (
    "comments",
    "splits",
    "settlements",
    "expenses",
    "budget_plans",
    "memberships",
    "groups",
    "users",
)


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the app in 'testing' mode and all tables, once per session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after EVERY integration test."""
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            for table in _TABLES:
                conn.execute(text(f"DELETE FROM {table}"))
            conn.commit()


@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    name: str = "alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """
    Registers a new user and returns the response data dict.
    Returns: {"user": {...}, "access_token": "..."}
    """
    if email is None:
        email = f"{name.lower()}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_group(client, token: str, name: str = "Test Group", **extra) -> dict:
    """
    Creates a group and returns the group data dict.
    The caller (token owner) becomes the creator and first member.
    """
    resp = client.post(
        "/api/v1/groups/",
        json={"name": name, **extra},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_members(client, token: str, group_id: int, user_ids: list[int]):
    """Adds users to a group in the given order. Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"user_ids": user_ids},
        headers=auth_headers(token),
    )


def remove_members(client, token: str, group_id: int, user_ids: list[int]):
    return client.post(
        f"/api/v1/groups/{group_id}/members/remove",
        json={"user_ids": user_ids},
        headers=auth_headers(token),
    )


def make_expense(
    client,
    token: str,
    group_id: int,
    amount: str,
    strategy: str = "equal",
    splits: list[dict] | None = None,
    description: str = "Test Expense",
    **extra,
):
    """
    Creates an expense paid by the token owner and returns the HTTP response.
    For strategy='equal', leave splits as None (the server computes them).
    """
    payload: dict = {
        "description": description,
        "amount": amount,
        "split_strategy": strategy,
        **extra,
    }
    if splits is not None:
        payload["splits"] = splits

    return client.post(
        f"/api/v1/groups/{group_id}/expenses",
        json=payload,
        headers=auth_headers(token),
    )


def settle(client, token: str, group_id: int, from_user_id: int, to_user_id: int, amount: str):
    """Records a settlement and returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/settlements",
        json={"from_user_id": from_user_id, "to_user_id": to_user_id, "amount": amount},
        headers=auth_headers(token),
    )


def get_balances(client, token: str, group_id: int) -> dict:
    resp = client.get(
        f"/api/v1/groups/{group_id}/balances",
        headers=auth_headers(token),
    )
    assert resp.status_code == 200, f"get_balances failed: {resp.get_json()}"
    return resp.get_json()["data"]


def balance_of(payload: dict, user_id: int) -> str:
    """Picks one user's balance string out of a balances payload."""
    for row in payload["balances"]:
        if row["user_id"] == user_id:
            return row["balance"]
    raise AssertionError(f"user {user_id} missing from balances: {payload['balances']}")

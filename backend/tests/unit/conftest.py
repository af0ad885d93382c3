"""
tests/unit/conftest.py — Registers every model with SQLAlchemy.

Unit tests build ORM objects (Expense, Split, Settlement, ...) without an app
or database. Relationships are declared by class name, so every model module
must be imported before the first mapper is configured.
"""

from backend.app.models import (  # noqa: F401
    comment,
    expense,
    group,
    membership,
    settlement,
    split,
    user,
)

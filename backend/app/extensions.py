"""
extensions.py — Flask extension singletons.

SQLAlchemy and marshmallow are created here without an app and bound inside
the app factory with init_app(app), so tests can build isolated app instances:

    from backend.app.extensions import db, ma

Request schemas in app/schemas/ inherit from marshmallow.Schema, not
ma.Schema: ma.Schema needs an active application context and the unit tests
load schemas without one.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ma = Marshmallow()

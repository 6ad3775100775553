"""Database bootstrap utilities for the catalog service.

Exposes engine construction and the SQL migrations runner. The DB layer does
not leak ORM models into route handlers; repositories use textual SQL.
"""

from catalog.db.base import get_engine, reset_engine
from catalog.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "reset_engine",
    "apply_migrations",
]

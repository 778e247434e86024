"""Database bootstrap utilities for the SQL ledger backend.

This module exposes convenience imports for engine construction and the
migrations runner that applies the packaged SQL files. The DB layer does not
define ORM models; the SQL store issues Core statements directly.
"""

from codeledger.db.base import get_engine
from codeledger.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "apply_migrations",
]

"""SQL-backed ledger store.

The ledger lives in one row of `code_ledger` keyed by `ledger_key`. The
integer `version` column is the version token: writes are a conditional
UPDATE on the expected version, so a zero row count means another writer
committed first. Creation is a plain INSERT guarded by the primary key.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from datetime import datetime, timezone
from typing import ContextManager, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from codeledger.db.migrations_runner import apply_migrations
from codeledger.logic.errors import StoreTransportError, VersionConflict
from codeledger.models.ledger import Ledger, VersionedLedger, parse_ledger_document, serialize_ledger

logger = logging.getLogger(__name__)

_SELECT = sql_text("SELECT version, document FROM code_ledger WHERE ledger_key = :k")
_INSERT = sql_text(
    "INSERT INTO code_ledger (ledger_key, version, document, updated_at) "
    "VALUES (:k, 1, :doc, :at)"
)
_UPDATE = sql_text(
    "UPDATE code_ledger SET version = version + 1, document = :doc, updated_at = :at "
    "WHERE ledger_key = :k AND version = :v"
)


def _now_text() -> str:
    return datetime.now(timezone.utc).isoformat()


# StaticPool engines (in-memory SQLite) hand every thread the same DBAPI
# connection, so transactions from concurrent callers must not overlap.
_SHARED_CONNECTION_LOCK = threading.RLock()


def _connection_guard(engine: Engine) -> ContextManager[object]:
    if isinstance(engine.pool, StaticPool):
        return _SHARED_CONNECTION_LOCK
    return contextlib.nullcontext()


class SqlLedgerStore:
    name = "sql"

    def __init__(self, engine: Engine, ledger_key: str = "default", *, migrate: bool = True) -> None:
        self._engine = engine
        self._key = ledger_key
        self._guard = _connection_guard(engine)
        if migrate:
            try:
                with self._guard:
                    apply_migrations(engine)
            except SQLAlchemyError as e:
                logger.error("store.sql.migrate_failed key=%s", ledger_key, exc_info=True)
                raise StoreTransportError(f"ledger schema migration failed: {e}") from e

    def read(self) -> Optional[VersionedLedger]:
        try:
            with self._guard, self._engine.connect() as conn:
                row = conn.execute(_SELECT, {"k": self._key}).first()
        except SQLAlchemyError as e:
            logger.error("store.sql.read_failed key=%s", self._key, exc_info=True)
            raise StoreTransportError(f"ledger read failed: {e}") from e
        if row is None:
            return None
        version, document = row[0], row[1]
        return VersionedLedger(ledger=parse_ledger_document(document), token=str(int(version)))

    def create(self, initial: Ledger) -> str:
        try:
            with self._guard, self._engine.begin() as conn:
                conn.execute(_INSERT, {"k": self._key, "doc": serialize_ledger(initial), "at": _now_text()})
        except IntegrityError as e:
            logger.info("store.sql.create_conflict key=%s", self._key)
            raise VersionConflict("ledger already exists") from e
        except SQLAlchemyError as e:
            logger.error("store.sql.create_failed key=%s", self._key, exc_info=True)
            raise StoreTransportError(f"ledger create failed: {e}") from e
        return "1"

    def write_if_match(self, ledger: Ledger, token: str) -> str:
        try:
            expected = int(token)
        except (TypeError, ValueError):
            # A token this backend never issued cannot match the stored version
            raise VersionConflict(f"unrecognised version token {token!r}") from None
        try:
            with self._guard, self._engine.begin() as conn:
                result = conn.execute(
                    _UPDATE,
                    {"k": self._key, "v": expected, "doc": serialize_ledger(ledger), "at": _now_text()},
                )
                updated = result.rowcount
        except SQLAlchemyError as e:
            logger.error("store.sql.write_failed key=%s", self._key, exc_info=True)
            raise StoreTransportError(f"ledger write failed: {e}") from e
        if updated != 1:
            raise VersionConflict(token=token)
        return str(expected + 1)


__all__ = ["SqlLedgerStore"]

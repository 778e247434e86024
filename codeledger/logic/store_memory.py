"""In-memory ledger store (test/dev only).

Keeps the ledger as serialized JSON so no caller ever shares a mutable
object with the store. A single lock makes compare-and-swap atomic across
threads; tokens are increasing integers rendered as strings.
"""

from __future__ import annotations

import threading
from typing import Optional

from codeledger.logic.errors import VersionConflict
from codeledger.models.ledger import Ledger, VersionedLedger, parse_ledger_document, serialize_ledger


class InMemoryLedgerStore:
    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._document: Optional[str] = None
        self._version = 0

    def read(self) -> Optional[VersionedLedger]:
        with self._lock:
            document, version = self._document, self._version
        if document is None:
            return None
        return VersionedLedger(ledger=parse_ledger_document(document), token=str(version))

    def create(self, initial: Ledger) -> str:
        body = serialize_ledger(initial)
        with self._lock:
            if self._document is not None:
                raise VersionConflict("ledger already exists", token=str(self._version))
            self._version += 1
            self._document = body
            return str(self._version)

    def write_if_match(self, ledger: Ledger, token: str) -> str:
        body = serialize_ledger(ledger)
        with self._lock:
            if self._document is None or str(self._version) != str(token):
                raise VersionConflict(token=str(self._version))
            self._version += 1
            self._document = body
            return str(self._version)


__all__ = ["InMemoryLedgerStore"]

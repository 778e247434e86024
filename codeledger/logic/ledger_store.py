"""Ledger store adapter contract and backend factory.

Every backend exposes the same three operations over a single versioned
document. Outcomes are typed: `read` returns None when the document is
absent, conflicts raise `VersionConflict`, and everything else the store
cannot serve raises `StoreTransportError`.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

from codeledger.config import StoreConfig
from codeledger.models.ledger import Ledger, VersionedLedger

logger = logging.getLogger(__name__)


@runtime_checkable
class LedgerStore(Protocol):
    name: str

    def read(self) -> Optional[VersionedLedger]:
        """Return the current ledger and its token, or None when absent."""
        ...

    def create(self, initial: Ledger) -> str:
        """Persist `initial` only if no ledger exists; return the new token."""
        ...

    def write_if_match(self, ledger: Ledger, token: str) -> str:
        """Replace the ledger when `token` is current; return the new token."""
        ...


def build_store(config: StoreConfig) -> LedgerStore:
    """Instantiate the backend named by `config.backend`."""
    # Backends import their client libraries lazily so a memory-only
    # deployment does not need a reachable database or API.
    if config.backend == "memory":
        from codeledger.logic.store_memory import InMemoryLedgerStore

        store: LedgerStore = InMemoryLedgerStore()
    elif config.backend == "sql":
        from codeledger.db.base import get_engine
        from codeledger.logic.store_sql import SqlLedgerStore

        store = SqlLedgerStore(get_engine(config.database_url), ledger_key=config.ledger_key)
    elif config.backend == "github":
        from codeledger.logic.store_github import GitHubLedgerStore

        store = GitHubLedgerStore.from_config(config.github)
    else:  # pragma: no cover - rejected by StoreConfig validation
        raise ValueError(f"unknown store backend: {config.backend}")
    logger.info("ledger_store.selected backend=%s", store.name)
    return store


__all__ = ["LedgerStore", "build_store"]

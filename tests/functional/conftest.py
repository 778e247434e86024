from __future__ import annotations

"""Functional test bootstrap for the code ledger service.

Provides in-memory stores wrapped with fault injection and interleaving
hooks so allocator races can be driven deterministically, plus a factory for
FastAPI apps wired to an isolated store. Nothing here reads the process
environment or config files.
"""

import threading
from typing import Callable, List, Optional

import pytest

from codeledger.config import AllocatorConfig, AppConfig, StoreConfig
from codeledger.logic import events
from codeledger.logic.allocator import Allocator
from codeledger.logic.errors import StoreTransportError, VersionConflict
from codeledger.logic.store_memory import InMemoryLedgerStore
from codeledger.main import create_app
from codeledger.models.ledger import Ledger, VersionedLedger


class ScriptedStore:
    """Wraps an in-memory store and injects outcomes per call.

    - `conflicts`: number of upcoming writes to reject with VersionConflict
      before touching the inner store.
    - `write_error` / `read_error` / `create_error`: exception raised on every
      call of that operation while set.
    - `read_barrier`: barrier awaited right after each of the first
      `read_barrier.parties` reads, so racing callers hold the same token.
    - `on_conflict`: callback run whenever a write conflicts.
    """

    name = "scripted"

    def __init__(self, inner: Optional[InMemoryLedgerStore] = None) -> None:
        self.inner = inner or InMemoryLedgerStore()
        self.conflicts = 0
        self.write_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self.read_barrier: Optional[threading.Barrier] = None
        self.on_conflict: Optional[Callable[[], None]] = None
        self.reads = 0
        self.writes = 0
        self.creates = 0
        self.create_conflicts = 0
        self.write_conflicts = 0
        self._lock = threading.Lock()

    def read(self) -> Optional[VersionedLedger]:
        with self._lock:
            self.reads += 1
            nth = self.reads
        if self.read_error is not None:
            raise self.read_error
        current = self.inner.read()
        barrier = self.read_barrier
        if barrier is not None and nth <= barrier.parties:
            barrier.wait(timeout=10)
        return current

    def create(self, initial: Ledger) -> str:
        if self.create_error is not None:
            raise self.create_error
        try:
            token = self.inner.create(initial)
        except VersionConflict:
            with self._lock:
                self.create_conflicts += 1
            raise
        with self._lock:
            self.creates += 1
        return token

    def write_if_match(self, ledger: Ledger, token: str) -> str:
        with self._lock:
            self.writes += 1
            scripted_conflict = self.conflicts > 0
            if scripted_conflict:
                self.conflicts -= 1
        if self.write_error is not None:
            raise self.write_error
        try:
            if scripted_conflict:
                raise VersionConflict(token=token)
            return self.inner.write_if_match(ledger, token)
        except VersionConflict:
            with self._lock:
                self.write_conflicts += 1
            if self.on_conflict is not None:
                self.on_conflict()
            raise


@pytest.fixture()
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture()
def scripted_store() -> ScriptedStore:
    return ScriptedStore()


@pytest.fixture()
def make_allocator() -> Callable[..., Allocator]:
    def _make(store, prefix: str = "X-", start: int = 100, max_attempts: int = 5) -> Allocator:
        return Allocator(store, prefix=prefix, start=start, max_attempts=max_attempts)

    return _make


@pytest.fixture()
def make_config() -> Callable[..., AppConfig]:
    def _make(prefix: str = "X-", start: int = 100, max_attempts: int = 5, init_on_startup: bool = False) -> AppConfig:
        return AppConfig(
            allocator=AllocatorConfig(
                prefix=prefix,
                start=start,
                max_attempts=max_attempts,
                init_on_startup=init_on_startup,
            ),
            store=StoreConfig(backend="memory"),
        )

    return _make


@pytest.fixture()
def make_app(make_config):  # type: ignore[no-untyped-def]
    def _make(store=None, **config_kwargs):  # type: ignore[no-untyped-def]
        return create_app(make_config(**config_kwargs), store=store or InMemoryLedgerStore())

    return _make


@pytest.fixture(autouse=True)
def clear_event_buffer() -> None:
    events.get_buffered_events(clear=True)
    yield
    events.get_buffered_events(clear=True)


@pytest.fixture()
def transport_error() -> StoreTransportError:
    return StoreTransportError("store unreachable", status=503)


__all__: List[str] = ["ScriptedStore"]

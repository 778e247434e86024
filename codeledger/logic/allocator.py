"""Sequential code allocator over a versioned ledger store.

Every attempt re-reads the ledger, computes the next state on a local copy
and writes it back conditioned on the version token it read. A version
conflict means another caller committed in between, so the attempt is
discarded and the loop reads again, up to `max_attempts` times. Transport
failures and invalid ledgers end the call immediately.

The allocator keeps no ledger state between calls; concurrent `allocate`
calls coordinate only through the store's version check.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from codeledger.config import AllocatorConfig
from codeledger.logic import events
from codeledger.logic.errors import (
    AllocationCancelledError,
    AllocationContentionError,
    AllocationInvalidStateError,
    AllocationTransportError,
    LedgerInvalid,
    StoreTransportError,
    VersionConflict,
)
from codeledger.logic.ledger_store import LedgerStore
from codeledger.models.ledger import AllocationRecord, Ledger, VersionedLedger

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AllocationResult:
    code: str
    code_number: int
    label: str
    issued_at: datetime

    @property
    def display(self) -> str:
        """Label and code joined the way users are shown their code."""
        return f"{self.label}-{self.code}"


def advance(ledger: Ledger, requester_id: str, label: str, issued_at: datetime) -> tuple[Ledger, AllocationRecord]:
    """Return the ledger after issuing its next code, plus the new record.

    The input ledger is left untouched.
    """
    number = ledger.next_sequence
    record = AllocationRecord(
        code=ledger.code_for(number),
        requester_id=requester_id,
        label=label,
        issued_at=issued_at,
    )
    updated = ledger.model_copy(
        update={"next_sequence": number + 1, "assignments": [*ledger.assignments, record]}
    )
    return updated, record


class Allocator:
    def __init__(
        self,
        store: LedgerStore,
        *,
        prefix: str,
        start: int,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if start < 0:
            raise ValueError("start must be a non-negative integer")
        self.store = store
        self.prefix = prefix
        self.start = start
        self.max_attempts = max_attempts
        self._clock = clock

    @classmethod
    def from_config(cls, store: LedgerStore, config: AllocatorConfig) -> "Allocator":
        return cls(store, prefix=config.prefix, start=config.start, max_attempts=config.max_attempts)

    def initial_ledger(self) -> Ledger:
        return Ledger.initial(self.prefix, self.start)

    # ----------------------
    # Operations
    # ----------------------

    def current(self) -> Optional[VersionedLedger]:
        """Return the stored ledger with its token, or None when absent."""
        return self._read(attempt=0)

    def ensure_ledger(self) -> VersionedLedger:
        """Create the ledger if it is absent and return the stored state.

        Safe to call from several processes at once: creation is
        only-if-absent, and a losing creator reads the winner's ledger.
        """
        # One read more than creates, so the last create is always read back
        for round_no in range(self.max_attempts + 1):
            current = self._read(attempt=0)
            if current is not None:
                if current.ledger.prefix != self.prefix:
                    logger.warning(
                        "allocator.prefix_differs stored=%r configured=%r",
                        current.ledger.prefix,
                        self.prefix,
                    )
                return current
            if round_no < self.max_attempts:
                self._create_initial(attempt=0)
        raise AllocationTransportError("ledger still missing after initialization")

    def allocate(
        self,
        requester_id: str,
        label: str,
        cancel: Optional[threading.Event] = None,
    ) -> AllocationResult:
        """Issue the next code to `requester_id`.

        Raises `AllocationContentionError` once `max_attempts` writes have
        conflicted, `AllocationTransportError` on the first store failure,
        `AllocationInvalidStateError` when the stored ledger is malformed and
        `AllocationCancelledError` when `cancel` is set between attempts.
        """
        attempt = 0
        init_rounds = 0
        while True:
            if cancel is not None and cancel.is_set():
                logger.info("allocator.cancelled attempts=%s", attempt)
                raise AllocationCancelledError("allocation cancelled", attempts=attempt)

            current = self._read(attempt)
            if current is None:
                # Cold start: initialization rounds do not count as contention
                init_rounds += 1
                if init_rounds > self.max_attempts:
                    raise AllocationTransportError("ledger still missing after initialization", attempts=attempt)
                self._create_initial(attempt)
                continue

            attempt += 1
            updated, record = advance(current.ledger, requester_id, label, self._clock())
            try:
                self.store.write_if_match(updated, current.token)
            except VersionConflict:
                logger.info("allocator.conflict attempt=%s/%s code=%s", attempt, self.max_attempts, record.code)
                if attempt < self.max_attempts:
                    continue
                logger.warning("allocator.contention_exhausted attempts=%s", attempt)
                raise AllocationContentionError(
                    f"could not allocate a code after {attempt} conflicting attempts",
                    attempts=attempt,
                ) from None
            except StoreTransportError as e:
                logger.error("allocator.write_failed attempt=%s error=%s", attempt, e)
                raise AllocationTransportError(str(e), attempts=attempt) from e

            result = AllocationResult(
                code=record.code,
                code_number=current.ledger.next_sequence,
                label=label,
                issued_at=record.issued_at,
            )
            logger.info("allocator.issued code=%s attempt=%s", result.code, attempt)
            events.publish(
                events.CODE_ISSUED,
                {
                    "code": result.code,
                    "code_number": result.code_number,
                    "requester_id": requester_id,
                    "label": label,
                },
            )
            return result

    # ----------------------
    # Store access with error translation
    # ----------------------

    def _read(self, attempt: int) -> Optional[VersionedLedger]:
        try:
            return self.store.read()
        except StoreTransportError as e:
            logger.error("allocator.read_failed attempt=%s error=%s", attempt, e)
            raise AllocationTransportError(str(e), attempts=attempt) from e
        except LedgerInvalid as e:
            logger.error("allocator.ledger_invalid error=%s", e)
            raise AllocationInvalidStateError(str(e), attempts=attempt) from e

    def _create_initial(self, attempt: int) -> None:
        try:
            self.store.create(self.initial_ledger())
            logger.info("allocator.ledger_created prefix=%r start=%s", self.prefix, self.start)
        except VersionConflict:
            # Another caller initialized first; the next read sees their ledger
            logger.info("allocator.ledger_create_lost_race")
        except StoreTransportError as e:
            logger.error("allocator.create_failed error=%s", e)
            raise AllocationTransportError(str(e), attempts=attempt) from e


__all__ = ["Allocator", "AllocationResult", "advance", "DEFAULT_MAX_ATTEMPTS"]

"""Exception taxonomy for ledger storage and code allocation.

Store adapters raise `StoreTransportError` and `VersionConflict`; ledger
parsing raises `LedgerInvalid`. The allocator translates these into
`AllocationError` subclasses carrying a `kind` from `AllocationErrorKind`.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for ledger store adapter failures."""


class StoreTransportError(StoreError):
    """Store unreachable, malformed response, or permission denied."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class VersionConflict(StoreError):
    """The supplied version token no longer matches the stored document.

    Also raised by `create` when the document already exists.
    """

    def __init__(self, message: str = "ledger version mismatch", *, token: str | None = None) -> None:
        super().__init__(message)
        self.token = token


class LedgerInvalid(Exception):
    """The stored ledger document failed structural validation."""


class AllocationErrorKind:
    TRANSPORT = "transport"
    CONTENTION = "contention"
    INVALID_STATE = "invalid_state"
    CANCELLED = "cancelled"


class AllocationError(Exception):
    kind: str = ""

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class AllocationTransportError(AllocationError):
    kind = AllocationErrorKind.TRANSPORT


class AllocationContentionError(AllocationError):
    kind = AllocationErrorKind.CONTENTION


class AllocationInvalidStateError(AllocationError):
    kind = AllocationErrorKind.INVALID_STATE


class AllocationCancelledError(AllocationError):
    kind = AllocationErrorKind.CANCELLED


__all__ = [
    "StoreError",
    "StoreTransportError",
    "VersionConflict",
    "LedgerInvalid",
    "AllocationErrorKind",
    "AllocationError",
    "AllocationTransportError",
    "AllocationContentionError",
    "AllocationInvalidStateError",
    "AllocationCancelledError",
]

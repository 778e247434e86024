"""Centralised construction of problem+json payloads.

Single source of truth for mapping allocation outcomes to problem codes and
HTTP statuses. Route and handler modules import from here instead of
hardcoding strings or numbers.
"""

from __future__ import annotations

from typing import Dict
import logging

from codeledger.logic.errors import AllocationError, AllocationErrorKind


logger = logging.getLogger(__name__)

# Seconds a caller should wait before retrying after contention
CONTENTION_RETRY_AFTER = 1

ALLOCATION_ERROR_MAP: Dict[str, Dict[str, object]] = {
    AllocationErrorKind.CONTENTION: {
        "code": "ALLOC_CONTENTION",
        "status": 503,
        "title": "Service Unavailable",
        "detail": "Too many concurrent allocations; retry shortly",
    },
    AllocationErrorKind.TRANSPORT: {
        "code": "ALLOC_STORE_UNAVAILABLE",
        "status": 502,
        "title": "Bad Gateway",
        "detail": "The ledger store could not be reached",
    },
    AllocationErrorKind.INVALID_STATE: {
        "code": "ALLOC_LEDGER_INVALID",
        "status": 500,
        "title": "Internal Server Error",
        "detail": "The stored ledger failed validation",
    },
    AllocationErrorKind.CANCELLED: {
        "code": "ALLOC_CANCELLED",
        "status": 499,
        "title": "Client Closed Request",
        "detail": "The allocation was cancelled before completion",
    },
}


def problem_for_allocation_error(exc: AllocationError) -> Dict[str, object]:
    """Return the problem body for an allocation failure."""
    entry = ALLOCATION_ERROR_MAP.get(exc.kind) or ALLOCATION_ERROR_MAP[AllocationErrorKind.TRANSPORT]
    problem: Dict[str, object] = {
        "title": entry["title"],
        "status": entry["status"],
        "detail": entry["detail"],
        "code": entry["code"],
        "attempts": exc.attempts,
    }
    logger.info("error_handler.handle", extra={"code": problem.get("code")})
    return problem


def problem_ledger_not_initialized() -> Dict[str, object]:
    """Return a 404 problem indicating no ledger has been created yet."""
    problem = {
        "title": "Not Found",
        "status": 404,
        "detail": "No code has been issued yet; the ledger does not exist",
        "code": "LEDGER_NOT_INITIALIZED",
    }
    logger.info("error_handler.handle", extra={"code": problem.get("code")})
    return problem


__all__ = [
    "ALLOCATION_ERROR_MAP",
    "CONTENTION_RETRY_AFTER",
    "problem_for_allocation_error",
    "problem_ledger_not_initialized",
]

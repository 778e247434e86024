"""FastAPI application package for the code ledger service.

This package issues unique, sequential codes backed by a versioned ledger
document. It exposes a small FastAPI application factory; the allocation
algorithm and store adapters live in `codeledger/logic/` and route handlers
in `codeledger/routes/`.
"""

from __future__ import annotations

from codeledger.main import create_app

__all__ = ["create_app"]

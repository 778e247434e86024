"""APIRouter registration for the code ledger service."""

from __future__ import annotations

from fastapi import APIRouter

from codeledger.routes.codes import router as codes_router
from codeledger.routes.health import router as health_router
from codeledger.routes.ledger import router as ledger_router

api_router = APIRouter()
api_router.include_router(codes_router, tags=["Codes"])
api_router.include_router(ledger_router, tags=["Ledger"])
api_router.include_router(health_router, tags=["Health"])

__all__ = ["api_router"]

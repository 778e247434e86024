"""Liveness probe."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from codeledger.logic.allocator import Allocator
from codeledger.routes.dependencies import get_allocator

router = APIRouter()


@router.get("/health", summary="Liveness probe")
def health(allocator: Allocator = Depends(get_allocator)) -> dict:
    # Liveness only; the store is not contacted
    return {"status": "ok", "store": allocator.store.name}


__all__ = ["router"]

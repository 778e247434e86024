"""FastAPI dependencies shared by route modules."""

from __future__ import annotations

from fastapi import Request

from codeledger.logic.allocator import Allocator


def get_allocator(request: Request) -> Allocator:
    """Return the allocator wired onto the application at startup."""
    return request.app.state.allocator


__all__ = ["get_allocator"]

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import anyio
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from codeledger.config import AppConfig, load_config
from codeledger.http.problem import (
    handle_allocation_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from codeledger.http.request_id import RequestIdMiddleware
from codeledger.logging_setup import configure_logging
from codeledger.logic.allocator import Allocator
from codeledger.logic.errors import AllocationError
from codeledger.logic.ledger_store import LedgerStore, build_store
from codeledger.routes import api_router

logger = logging.getLogger(__name__)


def _lifespan(allocator: Allocator, init_on_startup: bool):  # type: ignore[no-untyped-def]
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if init_on_startup:
            # A store outage at boot is logged, not fatal; allocate retries init lazily
            try:
                current = await anyio.to_thread.run_sync(allocator.ensure_ledger)
                logger.info(
                    "startup.ledger_ready next_sequence=%s issued=%s",
                    current.ledger.next_sequence,
                    len(current.ledger.assignments),
                )
            except AllocationError as e:
                logger.error("startup.ledger_unavailable kind=%s error=%s", e.kind, e)
        yield
        close = getattr(allocator.store, "close", None)
        if callable(close):
            close()

    return lifespan


def create_app(config: Optional[AppConfig] = None, store: Optional[LedgerStore] = None) -> FastAPI:
    """Build the FastAPI application.

    `config` defaults to `load_config()`; `store` defaults to the backend the
    config names. Tests pass both to run against an isolated store.
    """
    # Configure global logging before app instantiation so all modules emit
    configure_logging()
    cfg = config or load_config()
    ledger_store = store or build_store(cfg.store)
    allocator = Allocator.from_config(ledger_store, cfg.allocator)

    app = FastAPI(title="Code Ledger", lifespan=_lifespan(allocator, cfg.allocator.init_on_startup))
    app.state.config = cfg
    app.state.allocator = allocator

    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(AllocationError, handle_allocation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)
    logger.info(
        "app.created backend=%s prefix=%r max_attempts=%s",
        ledger_store.name,
        cfg.allocator.prefix,
        cfg.allocator.max_attempts,
    )
    return app


def run() -> None:  # pragma: no cover - process entry point
    import uvicorn

    port = int(os.getenv("PORT", "3000"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)


__all__ = ["create_app", "run"]

"""Problem+JSON utilities and global exception handlers.

Defines RFC7807 media type and handler callables that produce
application/problem+json responses.
"""

from __future__ import annotations

import logging
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from codeledger.logic.errors import AllocationError, AllocationErrorKind
from codeledger.logic.problem_factory import CONTENTION_RETRY_AFTER, problem_for_allocation_error

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status_code = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        detail = exc.detail
    else:
        detail = {"title": "Error", "status": status_code, "detail": str(exc.detail or "")}
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return JSONResponse(detail, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=headers or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        # ctx may hold exception instances that are not JSON serialisable
        "errors": [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()],
    }
    return JSONResponse(problem, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_allocation_error(request: Request, exc: AllocationError) -> JSONResponse:  # noqa: D401
    problem = problem_for_allocation_error(exc)
    headers = None
    if exc.kind == AllocationErrorKind.CONTENTION:
        headers = {"Retry-After": str(CONTENTION_RETRY_AFTER)}
    logger.warning("allocation_error kind=%s attempts=%s path=%s", exc.kind, exc.attempts, request.url.path)
    return JSONResponse(problem, status_code=int(problem["status"]), media_type=PROBLEM_MEDIA_TYPE, headers=headers)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse({"title": "Internal Server Error", "status": 500}, status_code=500, media_type=PROBLEM_MEDIA_TYPE)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_allocation_error",
    "handle_unexpected_error",
]

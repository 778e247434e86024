"""Code issuing endpoint.

The allocator blocks on store I/O, so it runs in a worker thread that is
never abandoned while a write is in flight. While it runs, the request is
watched for a client disconnect; one sets the allocator's cancel event so no
further attempt starts after the caller has gone.
"""

from __future__ import annotations

import logging
import threading
from functools import partial
from typing import Any, Optional, Tuple

import anyio
from fastapi import APIRouter, Depends, Request

from codeledger.logic.allocator import AllocationResult, Allocator
from codeledger.models.allocation import AllocationRequest, AllocationResponse
from codeledger.routes.dependencies import get_allocator

router = APIRouter()
logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.05


async def _watch_disconnect(request: Any, cancel: threading.Event, done: threading.Event) -> None:
    while not done.is_set():
        if await request.is_disconnected():
            logger.info("codes.client_disconnected")
            cancel.set()
            return
        await anyio.sleep(DISCONNECT_POLL_SECONDS)


def _allocate_in_thread(
    allocator: Allocator, requester_id: str, label: str, cancel: threading.Event
) -> Tuple[Optional[AllocationResult], Optional[Exception]]:
    try:
        return allocator.allocate(requester_id, label, cancel=cancel), None
    except Exception as e:  # re-raised outside the task group below
        return None, e


async def allocate_until_disconnect(request: Any, allocator: Allocator, requester_id: str, label: str) -> AllocationResult:
    """Run `allocator.allocate` in a worker thread, cancelling it if the client disconnects."""
    cancel = threading.Event()
    done = threading.Event()
    async with anyio.create_task_group() as tg:
        tg.start_soon(_watch_disconnect, request, cancel, done)
        try:
            result, error = await anyio.to_thread.run_sync(
                partial(_allocate_in_thread, allocator, requester_id, label, cancel)
            )
        finally:
            done.set()
            tg.cancel_scope.cancel()
    if error is not None:
        raise error
    return result  # type: ignore[return-value]


@router.post(
    "/api/v1/codes",
    status_code=201,
    response_model=AllocationResponse,
    summary="Issue the next sequential code",
)
async def issue_code(
    body: AllocationRequest,
    request: Request,
    allocator: Allocator = Depends(get_allocator),
) -> AllocationResponse:
    result = await allocate_until_disconnect(request, allocator, body.requester_id, body.label)
    logger.info(
        "codes.issued code=%s requester_id=%s request_id=%s",
        result.code,
        body.requester_id,
        getattr(request.state, "request_id", None),
    )
    return AllocationResponse(
        code=result.code,
        code_number=result.code_number,
        display=result.display,
        issued_at=result.issued_at,
    )


__all__ = ["router", "allocate_until_disconnect"]

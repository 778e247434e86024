"""Read-only ledger view.

Exposes the current ledger with its version token as ETag. Clients polling
for new codes send If-None-Match and get 304 while nothing was issued.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Response
from fastapi.responses import JSONResponse

from codeledger.http.problem import PROBLEM_MEDIA_TYPE
from codeledger.logic.allocator import Allocator
from codeledger.logic.etag import etag_matches, ledger_etag
from codeledger.logic.problem_factory import problem_ledger_not_initialized
from codeledger.models.allocation import AssignmentView, LedgerView
from codeledger.routes.dependencies import get_allocator

router = APIRouter()


@router.get("/api/v1/ledger", summary="Get the code ledger", response_model=LedgerView)
def get_ledger(
    if_none_match: str | None = Header(default=None),
    allocator: Allocator = Depends(get_allocator),
):
    current = allocator.current()
    if current is None:
        return JSONResponse(problem_ledger_not_initialized(), status_code=404, media_type=PROBLEM_MEDIA_TYPE)

    etag = ledger_etag(current.token)
    if etag_matches(current.token, if_none_match):
        return Response(status_code=304, headers={"ETag": etag})

    ledger = current.ledger
    view = LedgerView(
        prefix=ledger.prefix,
        next_sequence=ledger.next_sequence,
        issued_count=len(ledger.assignments),
        assignments=[
            AssignmentView(
                code=rec.code,
                requester_id=rec.requester_id,
                label=rec.label,
                issued_at=rec.issued_at,
            )
            for rec in ledger.assignments
        ],
    )
    return JSONResponse(view.model_dump(mode="json"), headers={"ETag": etag})


__all__ = ["router"]

"""Pydantic models for the code allocation HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field, field_validator

LABEL_MIN_LENGTH = 3
LABEL_MAX_LENGTH = 60


class AllocationRequest(BaseModel):
    requester_id: str = Field(min_length=1, max_length=128)
    label: str = Field(min_length=LABEL_MIN_LENGTH, max_length=LABEL_MAX_LENGTH)

    @field_validator("requester_id", "label", mode="before")
    @classmethod
    def strip_whitespace(cls, v):  # type: ignore[no-untyped-def]
        # Length limits apply to the trimmed value
        return v.strip() if isinstance(v, str) else v


class AllocationResponse(BaseModel):
    code: str
    code_number: int
    display: str
    issued_at: datetime


class AssignmentView(BaseModel):
    code: str
    requester_id: str
    label: str
    issued_at: datetime


class LedgerView(BaseModel):
    prefix: str
    next_sequence: int
    issued_count: int
    assignments: List[AssignmentView]


__all__ = [
    "LABEL_MIN_LENGTH",
    "LABEL_MAX_LENGTH",
    "AllocationRequest",
    "AllocationResponse",
    "AssignmentView",
    "LedgerView",
]

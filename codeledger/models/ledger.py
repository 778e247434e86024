"""Pydantic models for the persisted code ledger document.

Canonical keys are written on every save. Legacy keys from ledgers written
by the earlier bot deployment (`next`, `assigned`, `userId`, `name`, `at`)
are accepted on read.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError as PydanticValidationError,
    field_validator,
)

from codeledger.logic.errors import LedgerInvalid


class AllocationRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    code: StrictStr
    requester_id: StrictStr = Field(validation_alias=AliasChoices("requester_id", "userId"))
    label: StrictStr = Field(validation_alias=AliasChoices("label", "name"))
    issued_at: datetime = Field(validation_alias=AliasChoices("issued_at", "at"))


class Ledger(BaseModel):
    model_config = ConfigDict(extra="ignore")

    next_sequence: StrictInt = Field(ge=0, validation_alias=AliasChoices("next_sequence", "next"))
    prefix: StrictStr
    assignments: list[AllocationRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("assignments", "assigned"),
    )

    @field_validator("assignments", mode="before")
    @classmethod
    def missing_assignments_are_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @classmethod
    def initial(cls, prefix: str, start: int) -> "Ledger":
        return cls(next_sequence=start, prefix=prefix, assignments=[])

    def code_for(self, number: int) -> str:
        return f"{self.prefix}{number}"

    def to_document(self) -> dict:
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class VersionedLedger:
    """A ledger as read from the store together with its version token."""

    ledger: Ledger
    token: str


def serialize_ledger(ledger: Ledger) -> str:
    """Render the ledger as the JSON text persisted by every backend."""
    return json.dumps(ledger.to_document(), ensure_ascii=False, indent=2)


def parse_ledger_document(raw: str | bytes | dict) -> Ledger:
    """Validate a stored document and return a `Ledger`.

    Raises `LedgerInvalid` when the content is not JSON, not an object, or
    fails structural validation.
    """
    data: Any = raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            data = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise LedgerInvalid(f"ledger document is not UTF-8: {e}") from e
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise LedgerInvalid(f"ledger document is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise LedgerInvalid("ledger document must be a JSON object")
    try:
        return Ledger.model_validate(data)
    except PydanticValidationError as e:
        raise LedgerInvalid(f"ledger document failed validation: {e.error_count()} error(s)") from e


__all__ = [
    "AllocationRecord",
    "Ledger",
    "VersionedLedger",
    "serialize_ledger",
    "parse_ledger_document",
]

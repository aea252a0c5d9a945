from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


def _enum_value(value):
    if isinstance(value, enum.Enum):
        return value.value
    return value


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class DocumentRoleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    person_id: UUID
    role: str
    created_at: datetime

    @field_validator("role", mode="before")
    @classmethod
    def _role_value(cls, value):
        return _enum_value(value)


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    template_id: UUID
    data: dict
    status: str
    deadline: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def _status_value(cls, value):
        return _enum_value(value)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class HistoryEntry(BaseModel):
    id: UUID
    sequence: int
    status: str
    action: str
    description: str
    performed_by: str
    performed_by_name: str
    role: str
    rejection_reason: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class RenderResult(BaseModel):
    document_id: UUID
    file_name: str
    path: str
    storage_key: str | None = None
    download_url: str | None = None

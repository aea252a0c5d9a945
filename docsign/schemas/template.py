from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TemplateBase(BaseModel):
    name: str
    description: str | None = None
    is_public: bool = False
    pdf_file_path: str
    pdf_image_path: str | None = None
    field_schema: list[dict] = Field(default_factory=list)


class TemplateCreate(TemplateBase):
    pass


class TemplateUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    is_public: bool | None = None
    pdf_file_path: str | None = None
    pdf_image_path: str | None = None
    field_schema: list[dict] | None = None


class TemplateRead(TemplateBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_by: UUID
    created_at: datetime
    updated_at: datetime


class TemplateSource(BaseModel):
    """What the workflow and compositor need from a template."""

    name: str
    pdf_file_path: str
    field_schema: list[dict]

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from docportal.core.enums import DocumentStatus, Workspace


class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str | None
    status: DocumentStatus
    workspace: Workspace
    created_by: str
    stored_at: datetime | None
    archived_at: datetime | None
    created_at: datetime
    updated_at: datetime


class StatusChangeRequest(BaseModel):
    status: DocumentStatus


class StatusChangeOut(BaseModel):
    document: DocumentOut
    changed: bool

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from docportal.core.enums import Role, Workspace


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: str
    role: Role
    workspace: Workspace
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime


class RolePermissionOut(BaseModel):
    role: Role
    workspace: Workspace
    can_view: bool
    can_download: bool
    can_archive_others: bool
    can_manage_workspace: bool


class PermissionMatrixOut(BaseModel):
    rows: list[RolePermissionOut]
    revoked_tokens: int

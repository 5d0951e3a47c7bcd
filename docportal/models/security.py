from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from docportal.core.enums import Role, Workspace
from docportal.core.models import PermissionFlags, RolePermissionRow, UserRecord, utcnow
from docportal.db.base import Base


def enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


RoleColumn = Enum(Role, name="user_role", values_callable=enum_values, validate_strings=True)
WorkspaceColumn = Enum(Workspace, name="workspace", values_callable=enum_values, validate_strings=True)


def new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    # Stored lower-cased.
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)

    role: Mapped[Role] = mapped_column(RoleColumn, nullable=False, index=True)
    workspace: Mapped[Workspace] = mapped_column(WorkspaceColumn, nullable=False, index=True)

    # Null disables password login.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def to_record(self) -> UserRecord:
        return UserRecord(
            id=self.id,
            email=self.email,
            full_name=self.full_name,
            role=self.role,
            workspace=self.workspace,
            password_hash=self.password_hash,
            is_active=self.is_active,
            last_login_at=self.last_login_at,
            preferences=dict(self.preferences or {}),
        )


class RolePermission(Base):
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role", "workspace", name="uq_role_permissions_role_workspace"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    role: Mapped[Role] = mapped_column(RoleColumn, nullable=False, index=True)
    workspace: Mapped[Workspace] = mapped_column(WorkspaceColumn, nullable=False)

    can_view: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_download: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_archive_others: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_manage_workspace: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_row(self) -> RolePermissionRow:
        return RolePermissionRow(
            role=self.role,
            workspace=self.workspace,
            flags=PermissionFlags(
                can_view=self.can_view,
                can_download=self.can_download,
                can_archive_others=self.can_archive_others,
                can_manage_workspace=self.can_manage_workspace,
            ),
        )

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from docportal.core.enums import TOP_ADMIN_ROLE
from docportal.core.service import AuthService
from docportal.models.security import User
from docportal.schemas.security import PermissionMatrixOut, RolePermissionOut, UserOut
from docportal.security.dependencies import get_auth_service, get_scoped_db, require_role

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_role(TOP_ADMIN_ROLE))])


@router.get("/users", response_model=list[UserOut])
def list_users(db: Session = Depends(get_scoped_db)) -> list[User]:
    return list(db.scalars(select(User).order_by(User.email)).all())


@router.get("/permissions", response_model=PermissionMatrixOut)
def permission_matrix(service: AuthService = Depends(get_auth_service)) -> PermissionMatrixOut:
    rows = [
        RolePermissionOut(
            role=row.role,
            workspace=row.workspace,
            can_view=row.flags.can_view,
            can_download=row.flags.can_download,
            can_archive_others=row.flags.can_archive_others,
            can_manage_workspace=row.flags.can_manage_workspace,
        )
        for row in service.resolver.matrix.rows()
    ]
    return PermissionMatrixOut(rows=rows, revoked_tokens=service.tokens.stats()["revoked_tokens"])

from __future__ import annotations

import copy
import logging
from pathlib import Path

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from docportal.core.enums import TOP_ADMIN_ROLE, Workspace
from docportal.core.models import DEFAULT_PREFERENCES
from docportal.core.passwords import PasswordHasher
from docportal.db.base import Base
from docportal.models import documents as _documents  # noqa: F401  (register Document table)
from docportal.models.security import RolePermission, User
from docportal.security.config import load_permission_matrix

logger = logging.getLogger(__name__)


def init_db(
    engine: Engine,
    session_factory: sessionmaker[Session],
    matrix_path: Path,
    hasher: PasswordHasher | None = None,
    admin_email: str | None = None,
    admin_password: str | None = None,
) -> None:
    """
    Create tables, seed the permission matrix and optionally the first administrator.

    Each step only runs when its table is still empty, so startup is idempotent.
    """

    Base.metadata.create_all(bind=engine)

    with session_factory() as db:
        if not _has_permission_rows(db):
            _seed_permissions(db, matrix_path)
        if admin_email and admin_password and not _has_users(db):
            _bootstrap_admin(db, hasher or PasswordHasher(), admin_email, admin_password)


def _has_permission_rows(db: Session) -> bool:
    return db.execute(select(RolePermission.id).limit(1)).first() is not None


def _has_users(db: Session) -> bool:
    return db.execute(select(User.id).limit(1)).first() is not None


def _seed_permissions(db: Session, matrix_path: Path) -> None:
    rows = load_permission_matrix(matrix_path)
    db.add_all(
        RolePermission(
            role=row.role,
            workspace=row.workspace,
            can_view=row.flags.can_view,
            can_download=row.flags.can_download,
            can_archive_others=row.flags.can_archive_others,
            can_manage_workspace=row.flags.can_manage_workspace,
        )
        for row in rows
    )
    db.commit()
    logger.info("Seeded permission matrix rows=%s from %s", len(rows), matrix_path)


def _bootstrap_admin(db: Session, hasher: PasswordHasher, email: str, password: str) -> None:
    admin = User(
        email=email.strip().lower(),
        full_name="Administrador",
        role=TOP_ADMIN_ROLE,
        workspace=Workspace.PRESIDENCIA,
        password_hash=hasher.hash(password),
        is_active=True,
        preferences=copy.deepcopy(DEFAULT_PREFERENCES),
    )
    db.add(admin)
    db.commit()
    logger.info("Bootstrapped administrator user_id=%s", admin.id)

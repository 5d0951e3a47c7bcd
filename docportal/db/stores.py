"""
SQL implementations of the core store protocols.

Each call opens its own short-lived session, so one store instance can be
shared by every request thread.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from docportal.core.enums import Role, Workspace
from docportal.core.errors import EmailConflictError, StoreError
from docportal.core.models import RolePermissionRow, UserRecord
from docportal.models.security import RolePermission, User

logger = logging.getLogger(__name__)


class SqlCredentialStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find_by_email(self, email: str) -> UserRecord | None:
        try:
            with self._session_factory() as db:
                user = db.scalars(select(User).where(func.lower(User.email) == email.strip().lower())).first()
                return user.to_record() if user is not None else None
        except SQLAlchemyError as exc:
            logger.exception("find_by_email failed")
            raise StoreError("credential store unavailable") from exc

    def find_by_id(self, user_id: str) -> UserRecord | None:
        try:
            with self._session_factory() as db:
                user = db.get(User, user_id)
                return user.to_record() if user is not None else None
        except SQLAlchemyError as exc:
            logger.exception("find_by_id failed user_id=%s", user_id)
            raise StoreError("credential store unavailable") from exc

    def create(
        self,
        *,
        email: str,
        full_name: str,
        role: Role,
        workspace: Workspace,
        password_hash: str,
        preferences: dict[str, Any],
    ) -> UserRecord:
        try:
            with self._session_factory() as db:
                user = User(
                    email=email.strip().lower(),
                    full_name=full_name,
                    role=role,
                    workspace=workspace,
                    password_hash=password_hash,
                    is_active=True,
                    preferences=preferences,
                )
                db.add(user)
                db.commit()
                db.refresh(user)
                return user.to_record()
        except IntegrityError as exc:
            logger.info("create rejected: unique constraint on email")
            raise EmailConflictError(email) from exc
        except SQLAlchemyError as exc:
            logger.exception("create failed")
            raise StoreError("credential store unavailable") from exc

    def _update(self, user_id: str, **changes: Any) -> UserRecord | None:
        try:
            with self._session_factory() as db:
                user = db.get(User, user_id)
                if user is None:
                    return None
                for name, value in changes.items():
                    setattr(user, name, value)
                db.commit()
                db.refresh(user)
                return user.to_record()
        except SQLAlchemyError as exc:
            logger.exception("update failed user_id=%s fields=%s", user_id, sorted(changes))
            raise StoreError("credential store unavailable") from exc

    def update_last_login(self, user_id: str, when: datetime) -> UserRecord | None:
        return self._update(user_id, last_login_at=when)

    def update_profile_fields(
        self,
        user_id: str,
        *,
        full_name: str | None = None,
        preferences: dict[str, Any] | None = None,
    ) -> UserRecord | None:
        changes: dict[str, Any] = {}
        if full_name is not None:
            changes["full_name"] = full_name
        if preferences is not None:
            changes["preferences"] = preferences
        return self._update(user_id, **changes)

    def update_password_hash(self, user_id: str, password_hash: str) -> UserRecord | None:
        return self._update(user_id, password_hash=password_hash)


class SqlPermissionStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find_all_for_role(self, role: Role) -> list[RolePermissionRow]:
        try:
            with self._session_factory() as db:
                rows = db.scalars(
                    select(RolePermission).where(RolePermission.role == role).order_by(RolePermission.id)
                ).all()
                return [row.to_row() for row in rows]
        except SQLAlchemyError as exc:
            logger.exception("find_all_for_role failed role=%s", role.value)
            raise StoreError("permission store unavailable") from exc

"""In-memory store implementations. Used by tests and for running the core without a database."""

from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable

from .enums import Role, Workspace
from .errors import EmailConflictError
from .models import RolePermissionRow, UserRecord


class MemoryCredentialStore:
    def __init__(self, users: Iterable[UserRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[str, UserRecord] = {}
        for user in users:
            self._by_id[user.id] = user

    def add(self, user: UserRecord) -> UserRecord:
        with self._lock:
            self._by_id[user.id] = user
        return user

    def all(self) -> list[UserRecord]:
        with self._lock:
            return list(self._by_id.values())

    def find_by_email(self, email: str) -> UserRecord | None:
        wanted = email.strip().lower()
        with self._lock:
            for user in self._by_id.values():
                if user.email.lower() == wanted:
                    return user
        return None

    def find_by_id(self, user_id: str) -> UserRecord | None:
        with self._lock:
            return self._by_id.get(user_id)

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
        with self._lock:
            if any(u.email.lower() == email.lower() for u in self._by_id.values()):
                raise EmailConflictError(email)
            user = UserRecord(
                id=uuid.uuid4().hex,
                email=email,
                full_name=full_name,
                role=role,
                workspace=workspace,
                password_hash=password_hash,
                preferences=copy.deepcopy(preferences),
            )
            self._by_id[user.id] = user
            return user

    def _update(self, user_id: str, **changes: Any) -> UserRecord | None:
        with self._lock:
            user = self._by_id.get(user_id)
            if user is None:
                return None
            updated = replace(user, **changes)
            self._by_id[user_id] = updated
            return updated

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
            changes["preferences"] = copy.deepcopy(preferences)
        return self._update(user_id, **changes)

    def update_password_hash(self, user_id: str, password_hash: str) -> UserRecord | None:
        return self._update(user_id, password_hash=password_hash)


class MemoryPermissionStore:
    def __init__(self, rows: Iterable[RolePermissionRow] = ()) -> None:
        self._lock = threading.Lock()
        self._rows = list(rows)

    def add(self, row: RolePermissionRow) -> None:
        with self._lock:
            self._rows.append(row)

    def find_all_for_role(self, role: Role) -> list[RolePermissionRow]:
        with self._lock:
            return [row for row in self._rows if row.role is role]

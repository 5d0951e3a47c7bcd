"""
Collaborator interfaces consumed by the core.

Implementations must return ``None`` (or an empty list) for "not found" and
raise ``StoreError`` only for genuine infrastructure failures.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from .enums import Role, Workspace
from .models import RolePermissionRow, UserRecord


class CredentialStore(Protocol):
    def find_by_email(self, email: str) -> UserRecord | None: ...

    def find_by_id(self, user_id: str) -> UserRecord | None: ...

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
        """Insert a user; raise ``EmailConflictError`` if the email exists."""
        ...

    def update_last_login(self, user_id: str, when: datetime) -> UserRecord | None: ...

    def update_profile_fields(
        self,
        user_id: str,
        *,
        full_name: str | None = None,
        preferences: dict[str, Any] | None = None,
    ) -> UserRecord | None: ...

    def update_password_hash(self, user_id: str, password_hash: str) -> UserRecord | None: ...


class PermissionStore(Protocol):
    def find_all_for_role(self, role: Role) -> list[RolePermissionRow]: ...

"""
Role x workspace permission matrix and the resolver built on top of it.

Key ideas:
- Load every role's rows from the permission store once at startup.
- Union duplicate (role, workspace) rows into a single set of flags.
- Precompute the resolved workspace sets per role.
- At runtime, answer:
    resolve(role)?
    can_perform(role, action, workspace)?

This module is pure Python and has no FastAPI or SQLAlchemy dependency.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Mapping

from .enums import Action, Role, Workspace, parse_enum
from .models import PermissionFlags, ResolvedPermissions, RolePermissionRow
from .stores import PermissionStore

logger = logging.getLogger(__name__)

EMPTY_PERMISSIONS = ResolvedPermissions()


# ---- Matrix ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PermissionMatrix:
    """Immutable (role, workspace) -> flags lookup."""

    entries: Mapping[tuple[Role, Workspace], PermissionFlags]

    @classmethod
    def from_rows(cls, rows: Iterable[RolePermissionRow]) -> PermissionMatrix:
        entries: dict[tuple[Role, Workspace], PermissionFlags] = {}
        for row in rows:
            key = (row.role, row.workspace)
            current = entries.get(key)
            entries[key] = row.flags if current is None else current.union(row.flags)
        return cls(entries=entries)

    @classmethod
    def from_store(cls, store: PermissionStore, roles: Iterable[Role] = tuple(Role)) -> PermissionMatrix:
        """
        Read all rows for ``roles``.

        A role whose lookup fails contributes no rows, so it resolves to
        nothing at all.
        """

        rows: list[RolePermissionRow] = []
        for role in roles:
            try:
                rows.extend(store.find_all_for_role(role))
            except Exception:
                logger.exception("Permission rows for role=%s could not be loaded; denying all", role.value)
        return cls.from_rows(rows)

    def flags_for(self, role: Role, workspace: Workspace) -> PermissionFlags | None:
        return self.entries.get((role, workspace))

    def rows(self) -> list[RolePermissionRow]:
        """Rows sorted by role then workspace, for display."""
        ordered = sorted(self.entries.items(), key=lambda item: (item[0][0].value, item[0][1].value))
        return [RolePermissionRow(role=role, workspace=ws, flags=flags) for (role, ws), flags in ordered]

    def resolve(self, role: Role) -> ResolvedPermissions:
        view: set[Workspace] = set()
        download: set[Workspace] = set()
        archive: set[Workspace] = set()
        manage: set[Workspace] = set()
        for (row_role, workspace), flags in self.entries.items():
            if row_role is not role:
                continue
            if flags.can_view:
                view.add(workspace)
            if flags.can_download:
                download.add(workspace)
            if flags.can_archive_others:
                archive.add(workspace)
            if flags.can_manage_workspace:
                manage.add(workspace)
        return ResolvedPermissions(
            can_view=frozenset(view),
            can_download=frozenset(download),
            can_archive=frozenset(archive),
            can_manage=frozenset(manage),
        )


def _workspaces_for(resolved: ResolvedPermissions, action: Action) -> frozenset[Workspace]:
    if action is Action.VIEW:
        return resolved.can_view
    if action is Action.DOWNLOAD:
        return resolved.can_download
    if action is Action.ARCHIVE:
        return resolved.can_archive
    return resolved.can_manage


# ---- Resolver -------------------------------------------------------------------------


class PermissionResolver:
    """
    Answers capability questions from a precomputed matrix.

    Usage:
        resolver = PermissionResolver.from_store(store)
        resolver.can_perform(Role.PRESIDENTE, "archive", "cam")

    Reads go through one attribute lookup of an immutable snapshot, so
    ``reload`` can swap the snapshot without blocking readers.
    """

    def __init__(self, matrix: PermissionMatrix) -> None:
        self._lock = threading.Lock()
        self._install(matrix)

    @classmethod
    def from_store(cls, store: PermissionStore) -> PermissionResolver:
        return cls(PermissionMatrix.from_store(store))

    @classmethod
    def from_rows(cls, rows: Iterable[RolePermissionRow]) -> PermissionResolver:
        return cls(PermissionMatrix.from_rows(rows))

    def _install(self, matrix: PermissionMatrix) -> None:
        resolved = {role: matrix.resolve(role) for role in Role}
        with self._lock:
            self._snapshot = (matrix, resolved)

    @property
    def matrix(self) -> PermissionMatrix:
        return self._snapshot[0]

    def reload(self, store: PermissionStore) -> None:
        """Rebuild from ``store`` and swap the snapshot in one step."""
        matrix = PermissionMatrix.from_store(store)
        self._install(matrix)
        logger.info("Permission matrix reloaded rows=%s", len(matrix.entries))

    # ---- Main decision API ----------------------------------------------------------

    def resolve(self, role: Role | str) -> ResolvedPermissions:
        """Workspaces per capability for ``role``; empty for unknown roles."""
        parsed = parse_enum(Role, role)
        if parsed is None:
            logger.debug("Permissions: unknown role=%r", role)
            return EMPTY_PERMISSIONS
        return self._snapshot[1].get(parsed, EMPTY_PERMISSIONS)

    def can_perform(
        self,
        role: Role | str,
        action: Action | str,
        workspace: Workspace | str | None = None,
    ) -> bool:
        """
        Decide whether ``role`` may perform ``action``.

        Without a workspace, True iff the role holds the capability anywhere.
        With one, True iff that workspace is in the capability's set.
        Unknown role, action or workspace values are denied; so is any
        unexpected internal failure.
        """

        try:
            parsed_role = parse_enum(Role, role)
            parsed_action = parse_enum(Action, action)
            if parsed_role is None or parsed_action is None:
                logger.debug("Permissions: denied unknown role=%r or action=%r", role, action)
                return False

            allowed_in = _workspaces_for(self.resolve(parsed_role), parsed_action)

            if workspace is None:
                allowed = bool(allowed_in)
            else:
                parsed_ws = parse_enum(Workspace, workspace)
                if parsed_ws is None:
                    logger.debug("Permissions: denied unknown workspace=%r", workspace)
                    return False
                allowed = parsed_ws in allowed_in

            logger.debug(
                "Permissions: %s role=%s action=%s workspace=%s",
                "allowed" if allowed else "denied",
                parsed_role.value,
                parsed_action.value,
                workspace,
            )
            return allowed
        except Exception:
            logger.exception("Permissions: check failed role=%r action=%r; denying", role, action)
            return False

    def viewable_workspaces(self, role: Role | str) -> frozenset[Workspace]:
        return self.resolve(role).can_view

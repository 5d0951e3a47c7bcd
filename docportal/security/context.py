from __future__ import annotations

from dataclasses import dataclass

from docportal.core.enums import Role, Workspace
from docportal.core.models import AuthenticatedUser


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization context.

    Small and immutable so it can be attached to:
    - request.state (FastAPI request lifetime)
    - Session.info (SQLAlchemy session lifetime)
    """

    user_id: str
    role: Role
    workspace: Workspace

    # Workspaces whose documents the caller may list.
    viewable_workspaces: frozenset[Workspace]

    # Scope decisions
    filter_by_workspace: bool = True
    hide_foreign_drafts: bool = True

    @classmethod
    def for_user(cls, user: AuthenticatedUser) -> AuthzContext:
        return cls(
            user_id=user.id,
            role=user.role,
            workspace=user.workspace,
            viewable_workspaces=user.permissions.can_view,
        )

"""Plain domain records passed between the core components and its stores."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable

from .enums import DocumentStatus, Role, TokenType, Workspace

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Timezone-aware UTC now; the default clock for every core component."""
    return datetime.now(timezone.utc)


DEFAULT_PREFERENCES: dict[str, Any] = {
    "theme": "light",
    "language": "es",
    "notifications": {"email": True, "browser": True},
}


# ---- Users -----------------------------------------------------------------------------


@dataclass(frozen=True)
class UserRecord:
    """Identity row as returned by a credential store."""

    id: str
    email: str
    full_name: str
    role: Role
    workspace: Workspace
    password_hash: str | None
    is_active: bool = True
    last_login_at: datetime | None = None
    preferences: dict[str, Any] = field(default_factory=dict)

    def with_last_login(self, when: datetime) -> UserRecord:
        return replace(self, last_login_at=when)


@dataclass(frozen=True)
class NewUser:
    """Registration payload. ``email`` is normalized by the orchestrator."""

    email: str
    full_name: str
    role: Role
    workspace: Workspace
    password: str


@dataclass(frozen=True)
class UserSummary:
    """Public view of a user returned with a token pair (no password hash)."""

    id: str
    email: str
    full_name: str
    role: Role
    workspace: Workspace
    is_active: bool
    last_login_at: datetime | None

    @classmethod
    def from_record(cls, user: UserRecord) -> UserSummary:
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            workspace=user.workspace,
            is_active=user.is_active,
            last_login_at=user.last_login_at,
        )


# ---- Permissions -----------------------------------------------------------------------


@dataclass(frozen=True)
class PermissionFlags:
    can_view: bool = False
    can_download: bool = False
    can_archive_others: bool = False
    can_manage_workspace: bool = False

    def union(self, other: PermissionFlags) -> PermissionFlags:
        return PermissionFlags(
            can_view=self.can_view or other.can_view,
            can_download=self.can_download or other.can_download,
            can_archive_others=self.can_archive_others or other.can_archive_others,
            can_manage_workspace=self.can_manage_workspace or other.can_manage_workspace,
        )


@dataclass(frozen=True)
class RolePermissionRow:
    """One row of the role x workspace permission matrix."""

    role: Role
    workspace: Workspace
    flags: PermissionFlags


@dataclass(frozen=True)
class ResolvedPermissions:
    """Workspaces partitioned by capability for a single role."""

    can_view: frozenset[Workspace] = frozenset()
    can_download: frozenset[Workspace] = frozenset()
    can_archive: frozenset[Workspace] = frozenset()
    can_manage: frozenset[Workspace] = frozenset()

    def to_dict(self) -> dict[str, list[str]]:
        """Return a JSON-serializable dict with sorted workspace values."""
        return {
            "can_view": sorted(w.value for w in self.can_view),
            "can_download": sorted(w.value for w in self.can_download),
            "can_archive": sorted(w.value for w in self.can_archive),
            "can_manage": sorted(w.value for w in self.can_manage),
        }


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity plus resolved permissions; what request handlers see."""

    id: str
    email: str
    full_name: str
    role: Role
    workspace: Workspace
    is_active: bool
    permissions: ResolvedPermissions
    last_login_at: datetime | None = None
    preferences: dict[str, Any] = field(default_factory=dict)


# ---- Tokens ----------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    """Access token lifetime in seconds."""

    token_type: str = "bearer"


@dataclass(frozen=True)
class TokenClaims:
    """
    Verified claims of a session credential.

    Produced only after signature, expiry, revocation and type checks pass.
    """

    user_id: str
    email: str
    role: Role
    workspace: Workspace
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime
    token_id: str

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role.value,
            "workspace": self.workspace.value,
            "token_type": self.token_type.value,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "token_id": self.token_id,
        }


# ---- Documents -------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentRef:
    """The slice of a document the lifecycle state machine reasons about."""

    id: str
    status: DocumentStatus
    owner_id: str
    workspace: Workspace
    stored_at: datetime | None = None
    archived_at: datetime | None = None

"""
Authorization and session core of the document portal.

This package has no dependency on other docportal packages (db, routers,
security) nor on FastAPI or SQLAlchemy. Stores are injected as protocols;
``docportal.core.memory`` provides in-memory implementations.
"""

from .config import CoreConfig
from .enums import Action, DocumentStatus, Role, TokenType, Workspace
from .errors import (
    AuthErrorCode,
    AuthFailure,
    AuthResult,
    AuthSuccess,
    HashingError,
    InfrastructureError,
    LogoutResult,
    StoreError,
    TokenError,
    TokenExpired,
    TokenInvalid,
    TokenRevoked,
    TransitionReason,
)
from .lifecycle import DocumentLifecycle, TransitionDecision, TransitionOutcome
from .models import AuthenticatedUser, DocumentRef, NewUser, TokenClaims, TokenPair, UserRecord
from .passwords import PasswordHasher, validate_strength
from .permissions import PermissionMatrix, PermissionResolver
from .ratelimit import UserRateLimiter
from .revocation import RevocationCache, Sweeper
from .service import AuthService
from .tokens import TokenService

__all__ = [
    "Action",
    "AuthErrorCode",
    "AuthFailure",
    "AuthResult",
    "AuthService",
    "AuthSuccess",
    "AuthenticatedUser",
    "CoreConfig",
    "DocumentLifecycle",
    "DocumentRef",
    "DocumentStatus",
    "HashingError",
    "InfrastructureError",
    "LogoutResult",
    "NewUser",
    "PasswordHasher",
    "PermissionMatrix",
    "PermissionResolver",
    "RevocationCache",
    "Role",
    "StoreError",
    "Sweeper",
    "TokenClaims",
    "TokenError",
    "TokenExpired",
    "TokenInvalid",
    "TokenPair",
    "TokenRevoked",
    "TokenService",
    "TokenType",
    "TransitionDecision",
    "TransitionOutcome",
    "TransitionReason",
    "UserRateLimiter",
    "UserRecord",
    "Workspace",
    "validate_strength",
]

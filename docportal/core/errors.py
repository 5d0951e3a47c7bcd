"""
Error taxonomy for the authorization and session core.

Two families live here:

* **Expected failures** (bad credentials, weak password, illegal transition...)
  are returned as data: ``AuthFailure`` carries an ``AuthErrorCode`` and a
  caller-safe message. They never raise.
* **Infrastructure faults** (``HashingError``, ``StoreError``) are exceptions.
  They propagate to the outer layer, which reports a generic internal error.

Token verification raises ``TokenError`` subclasses inside the core; the
orchestrator converts them into ``AuthFailure`` results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .models import TokenPair, UserSummary


class AuthErrorCode(str, Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    NO_PASSWORD_SET = "NO_PASSWORD_SET"
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    NO_TOKEN_PROVIDED = "NO_TOKEN_PROVIDED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    PASSWORD_UNCHANGED = "PASSWORD_UNCHANGED"


class TransitionReason(str, Enum):
    NOT_OWNER_AND_NO_PERMISSION = "NOT_OWNER_AND_NO_PERMISSION"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"


# ---- Results ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthSuccess:
    user: UserSummary
    tokens: TokenPair
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class AuthFailure:
    code: AuthErrorCode
    message: str
    details: tuple[str, ...] = ()
    ok: bool = field(default=False, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": list(self.details),
        }


AuthResult = Union[AuthSuccess, AuthFailure]


@dataclass(frozen=True)
class LogoutResult:
    revoked: int
    ok: bool = True


# Caller-facing messages. One message per code so that different internal
# causes (unknown email vs wrong password) are indistinguishable.
MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Invalid email or password.",
    AuthErrorCode.ACCOUNT_DISABLED: "Account disabled. Contact an administrator.",
    AuthErrorCode.NO_PASSWORD_SET: "Account has no password configured. Contact an administrator.",
    AuthErrorCode.EMAIL_ALREADY_EXISTS: "Email is already registered.",
    AuthErrorCode.WEAK_PASSWORD: "Password does not meet the security requirements.",
    AuthErrorCode.INSUFFICIENT_PERMISSIONS: "Only administrators can create users.",
    AuthErrorCode.TOKEN_EXPIRED: "Token expired.",
    AuthErrorCode.TOKEN_INVALID: "Invalid token.",
    AuthErrorCode.TOKEN_REVOKED: "Token revoked.",
    AuthErrorCode.INVALID_REFRESH_TOKEN: "Invalid or expired refresh token.",
    AuthErrorCode.NO_TOKEN_PROVIDED: "Access token required.",
    AuthErrorCode.USER_NOT_FOUND: "User not found or inactive.",
    AuthErrorCode.PASSWORD_UNCHANGED: "New password must differ from the current one.",
}


def failure(code: AuthErrorCode, details: tuple[str, ...] | list[str] = ()) -> AuthFailure:
    return AuthFailure(code=code, message=MESSAGES[code], details=tuple(details))


# ---- Token exceptions ------------------------------------------------------------------


class TokenError(Exception):
    """Raised when a session credential fails verification. Do not log the token."""

    code: AuthErrorCode = AuthErrorCode.TOKEN_INVALID


class TokenExpired(TokenError):
    code = AuthErrorCode.TOKEN_EXPIRED


class TokenInvalid(TokenError):
    code = AuthErrorCode.TOKEN_INVALID


class TokenRevoked(TokenError):
    code = AuthErrorCode.TOKEN_REVOKED


# ---- Infrastructure faults -------------------------------------------------------------


class InfrastructureError(Exception):
    """Fault not attributable to user input. Surface only as a generic failure."""


class HashingError(InfrastructureError):
    """The password hashing primitive failed."""


class StoreError(InfrastructureError):
    """A backing store could not be read or written."""


class EmailConflictError(Exception):
    """Raised by ``CredentialStore.create`` when the email is already taken."""

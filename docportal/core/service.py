"""
Session orchestrator.

Composes the credential store, password hasher, token service and permission
resolver into the user-facing operations (login, register, refresh, logout,
profile). Expected failures come back as ``AuthFailure``; only infrastructure
faults (``HashingError``, ``StoreError``) escape.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Union

from .config import CoreConfig
from .enums import TOP_ADMIN_ROLE, Action, Workspace
from .errors import (
    AuthErrorCode,
    AuthFailure,
    AuthResult,
    AuthSuccess,
    EmailConflictError,
    LogoutResult,
    TokenError,
    failure,
)
from .models import (
    DEFAULT_PREFERENCES,
    AuthenticatedUser,
    Clock,
    NewUser,
    UserRecord,
    UserSummary,
    utcnow,
)
from .passwords import PasswordContext, PasswordHasher, validate_strength
from .permissions import PermissionResolver
from .stores import CredentialStore
from .tokens import TokenService, extract_from_header

logger = logging.getLogger(__name__)

# Verified against when the email is unknown, so both paths cost one bcrypt check.
_DUMMY_PASSWORD = "docportal-timing-equalizer"

AuthenticateResult = Union[AuthenticatedUser, AuthFailure]


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(
        self,
        users: CredentialStore,
        resolver: PermissionResolver,
        tokens: TokenService,
        hasher: PasswordHasher,
        config: CoreConfig,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._resolver = resolver
        self._tokens = tokens
        self._hasher = hasher
        self._config = config
        self._clock = clock
        self._dummy_hash = hasher.hash(_DUMMY_PASSWORD)

    @property
    def tokens(self) -> TokenService:
        return self._tokens

    @property
    def resolver(self) -> PermissionResolver:
        return self._resolver

    def _burn_verify(self, password: str) -> None:
        self._hasher.verify(password, self._dummy_hash)

    def _success(self, user: UserRecord) -> AuthSuccess:
        return AuthSuccess(user=UserSummary.from_record(user), tokens=self._tokens.issue_pair(user))

    # ---- Login ----------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate by email and password.

        Unknown email, inactive account, missing hash and wrong password all
        yield the same INVALID_CREDENTIALS failure. The real reason is logged.
        """

        normalized = normalize_email(email)
        user = self._users.find_by_email(normalized)

        if user is None:
            self._burn_verify(password)
            logger.info("Login failed: unknown email")
            return failure(AuthErrorCode.INVALID_CREDENTIALS)

        if not user.is_active:
            self._burn_verify(password)
            logger.info("Login failed: account disabled user_id=%s", user.id)
            return failure(AuthErrorCode.INVALID_CREDENTIALS)

        if not user.password_hash:
            self._burn_verify(password)
            logger.info("Login failed: no password set user_id=%s", user.id)
            return failure(AuthErrorCode.INVALID_CREDENTIALS)

        if not self._hasher.verify(password, user.password_hash):
            logger.info("Login failed: wrong password user_id=%s", user.id)
            return failure(AuthErrorCode.INVALID_CREDENTIALS)

        now = self._clock()
        updated = self._users.update_last_login(user.id, now) or user.with_last_login(now)
        logger.info("Login succeeded user_id=%s role=%s", updated.id, updated.role.value)
        return self._success(updated)

    # ---- Registration ---------------------------------------------------------------

    def register(self, data: NewUser, requesting_admin_id: str) -> AuthResult:
        """Create a user on behalf of an administrator. Nothing is written on rejection."""
        requester = self._users.find_by_id(requesting_admin_id)
        if requester is None or not requester.is_active or requester.role is not TOP_ADMIN_ROLE:
            logger.info("Register rejected: requester_id=%s is not an active administrator", requesting_admin_id)
            return failure(AuthErrorCode.INSUFFICIENT_PERMISSIONS)

        email = normalize_email(data.email)
        if self._users.find_by_email(email) is not None:
            logger.info("Register rejected: email already exists requester_id=%s", requesting_admin_id)
            return failure(AuthErrorCode.EMAIL_ALREADY_EXISTS)

        if self._config.enforce_password_strength:
            report = validate_strength(data.password, PasswordContext(email=email, full_name=data.full_name))
            if not report.valid:
                logger.info("Register rejected: weak password violations=%s", len(report.violations))
                return failure(AuthErrorCode.WEAK_PASSWORD, report.violations)

        password_hash = self._hasher.hash(data.password)
        try:
            user = self._users.create(
                email=email,
                full_name=data.full_name.strip(),
                role=data.role,
                workspace=data.workspace,
                password_hash=password_hash,
                preferences=copy.deepcopy(DEFAULT_PREFERENCES),
            )
        except EmailConflictError:
            logger.info("Register rejected: email conflict on insert requester_id=%s", requesting_admin_id)
            return failure(AuthErrorCode.EMAIL_ALREADY_EXISTS)

        logger.info(
            "User registered user_id=%s role=%s workspace=%s by=%s",
            user.id,
            user.role.value,
            user.workspace.value,
            requesting_admin_id,
        )
        return self._success(user)

    # ---- Session lifecycle ----------------------------------------------------------

    def refresh(self, refresh_token: str) -> AuthResult:
        try:
            claims = self._tokens.verify_refresh(refresh_token)
        except TokenError as e:
            logger.info("Refresh rejected: %s", e.code.value)
            return failure(AuthErrorCode.INVALID_REFRESH_TOKEN)

        user = self._users.find_by_id(claims.user_id)
        if user is None or not user.is_active:
            logger.info("Refresh rejected: user missing or inactive user_id=%s", claims.user_id)
            return failure(AuthErrorCode.INVALID_REFRESH_TOKEN)

        if self._config.revoke_refresh_on_rotate:
            self._tokens.revoke(refresh_token)

        logger.info("Tokens refreshed user_id=%s", user.id)
        return self._success(user)

    def logout(self, access_token: str | None = None, refresh_token: str | None = None) -> LogoutResult:
        """Revoke whichever tokens are given. The revocation is visible on return."""
        if not access_token and not refresh_token:
            raise ValueError("logout requires an access token or a refresh token")

        revoked = 0
        for token in (access_token, refresh_token):
            if token and self._tokens.revoke(token):
                revoked += 1
        logger.info("Logout revoked=%s", revoked)
        return LogoutResult(revoked=revoked)

    # ---- Profile --------------------------------------------------------------------

    def _profile_of(self, user: UserRecord) -> AuthenticatedUser:
        return AuthenticatedUser(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            workspace=user.workspace,
            is_active=user.is_active,
            permissions=self._resolver.resolve(user.role),
            last_login_at=user.last_login_at,
            preferences=dict(user.preferences),
        )

    def get_profile(self, user_id: str) -> AuthenticatedUser | None:
        """Identity plus resolved permissions, or None for missing/inactive users."""
        user = self._users.find_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return self._profile_of(user)

    def authenticate(self, authorization_header: str | None) -> AuthenticateResult:
        """Resolve the caller behind an ``Authorization`` header value."""
        token = extract_from_header(authorization_header)
        if token is None:
            return failure(AuthErrorCode.NO_TOKEN_PROVIDED)

        try:
            claims = self._tokens.verify_access(token)
        except TokenError as e:
            return failure(e.code)

        profile = self.get_profile(claims.user_id)
        if profile is None:
            logger.info("Authentication rejected: user missing or inactive user_id=%s", claims.user_id)
            return failure(AuthErrorCode.USER_NOT_FOUND)
        return profile

    def can_user_perform_action(
        self,
        user_id: str,
        action: Action | str,
        workspace: Workspace | str | None = None,
    ) -> bool:
        try:
            profile = self.get_profile(user_id)
            if profile is None:
                return False
            return self._resolver.can_perform(profile.role, action, workspace)
        except Exception:
            logger.exception("Permission check failed user_id=%s action=%r; denying", user_id, action)
            return False

    def update_profile(
        self,
        user_id: str,
        full_name: str | None = None,
        preferences: dict[str, Any] | None = None,
    ) -> AuthenticateResult:
        """Change display name and/or preferences. Other fields are never touched here."""
        user = self._users.find_by_id(user_id)
        if user is None or not user.is_active:
            return failure(AuthErrorCode.USER_NOT_FOUND)
        if full_name is None and preferences is None:
            return self._profile_of(user)

        updated = self._users.update_profile_fields(
            user_id,
            full_name=full_name.strip() if full_name is not None else None,
            preferences=preferences,
        )
        if updated is None:
            return failure(AuthErrorCode.USER_NOT_FOUND)
        logger.info("Profile updated user_id=%s", user_id)
        return self._profile_of(updated)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> AuthFailure | None:
        """Returns None on success."""
        user = self._users.find_by_id(user_id)
        if user is None:
            return failure(AuthErrorCode.USER_NOT_FOUND)
        if not user.is_active:
            return failure(AuthErrorCode.ACCOUNT_DISABLED)
        if not user.password_hash:
            return failure(AuthErrorCode.NO_PASSWORD_SET)

        if not self._hasher.verify(current_password, user.password_hash):
            logger.info("Password change rejected: wrong current password user_id=%s", user_id)
            return failure(AuthErrorCode.INVALID_CREDENTIALS)

        if new_password == current_password:
            return failure(AuthErrorCode.PASSWORD_UNCHANGED)

        if self._config.enforce_password_strength:
            report = validate_strength(new_password, PasswordContext(email=user.email, full_name=user.full_name))
            if not report.valid:
                return failure(AuthErrorCode.WEAK_PASSWORD, report.violations)

        self._users.update_password_hash(user_id, self._hasher.hash(new_password))
        logger.info("Password changed user_id=%s", user_id)
        return None

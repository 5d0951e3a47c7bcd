"""
Issue, verify and revoke session credentials.

Access and refresh tokens are HS256 JWTs signed with the server secret. Both
carry the same identity claims plus a ``typ`` discriminator, so a refresh
token is never accepted where an access token is required (and vice versa).

Verification order matters:

1. **Revocation**: a token in the revocation set is rejected before any
   claim is read.
2. **Signature, shape, issuer, audience**.
3. **Expiry**, against the injected clock (so tests can move time).
4. **Type discriminator**.

Only after all checks pass is a ``TokenClaims`` returned.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from .config import CoreConfig
from .enums import Role, TokenType, Workspace
from .errors import TokenExpired, TokenInvalid, TokenRevoked
from .models import Clock, TokenClaims, TokenPair, UserRecord, utcnow
from .revocation import RevocationCache

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer"

_REQUIRED_CLAIMS = ["sub", "email", "role", "workspace", "typ", "iat", "exp", "jti"]


def extract_from_header(header_value: str | None) -> str | None:
    """
    Parse ``Bearer <token>``.

    Returns None (not an error) when the header is absent or not of exactly
    that shape; callers decide whether anonymous access is acceptable.
    """

    if not header_value:
        return None
    parts = header_value.strip().split(" ")
    if len(parts) != 2:
        return None
    scheme, token = parts
    if scheme != BEARER_PREFIX or not token:
        return None
    return token


def _to_timestamp(value: datetime) -> int:
    return int(value.timestamp())


def _from_timestamp(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class TokenService:
    """
    Stateless token minting/verification plus the injected revocation set.

    The revocation cache is owned by the caller so it can be shared, swept in
    the background, or replaced per test.
    """

    def __init__(
        self,
        config: CoreConfig,
        revocation: RevocationCache | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._config = config
        self._clock = clock
        self._revocation = revocation if revocation is not None else RevocationCache(clock=clock)

    @property
    def revocation(self) -> RevocationCache:
        return self._revocation

    # ---- Issuing ------------------------------------------------------------------------

    def _encode(self, user: UserRecord, token_type: TokenType, now: datetime, ttl: timedelta) -> str:
        payload: dict[str, Any] = {
            "sub": user.id,
            "email": user.email,
            "role": user.role.value,
            "workspace": user.workspace.value,
            "typ": token_type.value,
            "iat": _to_timestamp(now),
            "exp": _to_timestamp(now + ttl),
            "iss": self._config.issuer,
            "aud": self._config.audience,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._config.jwt_secret, algorithm=self._config.algorithm)

    def issue_pair(self, user: UserRecord) -> TokenPair:
        """Mint an access + refresh pair for ``user`` with distinct expiries."""
        now = self._clock()
        access = self._encode(user, TokenType.ACCESS, now, self._config.access_token_ttl)
        refresh = self._encode(user, TokenType.REFRESH, now, self._config.refresh_token_ttl)
        logger.debug("Issued token pair user_id=%s", user.id)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            expires_in=int(self._config.access_token_ttl.total_seconds()),
        )

    # ---- Verification -------------------------------------------------------------------

    def verify_access(self, token: str) -> TokenClaims:
        return self._verify(token, TokenType.ACCESS)

    def verify_refresh(self, token: str) -> TokenClaims:
        return self._verify(token, TokenType.REFRESH)

    def _verify(self, token: str, expected: TokenType) -> TokenClaims:
        if not token:
            raise TokenInvalid("Invalid token: empty")

        if token in self._revocation:
            logger.info("Token rejected: revoked type=%s", expected.value)
            raise TokenRevoked("Token revoked")

        try:
            payload = jwt.decode(
                token,
                self._config.jwt_secret,
                algorithms=[self._config.algorithm],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options={
                    "verify_signature": True,
                    "verify_aud": True,
                    "verify_iss": True,
                    # Lifetime is checked below against the injected clock.
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": _REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidTokenError as e:
            logger.info("Token invalid: %s", type(e).__name__)
            raise TokenInvalid("Invalid token") from e

        claims = self._claims_from_payload(payload)

        skew = timedelta(seconds=self._config.clock_skew_seconds)
        if self._clock() >= claims.expires_at + skew:
            logger.info("Token expired type=%s user_id=%s", claims.token_type.value, claims.user_id)
            raise TokenExpired("Token expired")

        if claims.token_type is not expected:
            logger.info("Token type mismatch expected=%s got=%s", expected.value, claims.token_type.value)
            raise TokenInvalid("Invalid token: wrong type")

        return claims

    @staticmethod
    def _claims_from_payload(payload: dict[str, Any]) -> TokenClaims:
        try:
            return TokenClaims(
                user_id=str(payload["sub"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
                workspace=Workspace(payload["workspace"]),
                token_type=TokenType(payload["typ"]),
                issued_at=_from_timestamp(payload["iat"]),
                expires_at=_from_timestamp(payload["exp"]),
                token_id=str(payload["jti"]),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            logger.info("Token payload malformed: %s", type(e).__name__)
            raise TokenInvalid("Invalid token payload") from e

    # ---- Revocation ---------------------------------------------------------------------

    def revoke(self, token: str) -> bool:
        """
        Add ``token`` to the revocation set. Idempotent.

        The entry outlives the token by the configured clock skew, so it is never
        purged while the token could still pass the expiry check. When the
        token cannot be decoded, the refresh lifetime is used as an upper bound.
        Returns True when the token was not revoked before.
        """

        expires_at = self.expiration_of(token)
        if expires_at is None:
            expires_at = self._clock() + self._config.refresh_token_ttl
        expires_at += timedelta(seconds=self._config.clock_skew_seconds)
        added = self._revocation.add(token, expires_at)
        if added:
            logger.info("Token revoked until=%s", expires_at.isoformat())
        return added

    def is_revoked(self, token: str) -> bool:
        return token in self._revocation

    # ---- Introspection ------------------------------------------------------------------

    @staticmethod
    def expiration_of(token: str) -> datetime | None:
        """Read ``exp`` without verifying the token. For bookkeeping only."""
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            return _from_timestamp(payload["exp"])
        except Exception:
            return None

    def stats(self) -> dict[str, int]:
        return {
            "revoked_tokens": len(self._revocation),
            "access_token_ttl_seconds": int(self._config.access_token_ttl.total_seconds()),
            "refresh_token_ttl_seconds": int(self._config.refresh_token_ttl.total_seconds()),
        }

    extract_from_header = staticmethod(extract_from_header)

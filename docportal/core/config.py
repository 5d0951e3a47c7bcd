"""Core configuration. No hardcoded secrets; built from application settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

MIN_SECRET_LENGTH = 32

TOKEN_ISSUER = "docportal-api"
TOKEN_AUDIENCE = "docportal-client"


@dataclass(frozen=True)
class CoreConfig:
    """
    Everything the core components need to know about their environment.

    jwt_secret:
        HMAC signing secret shared by access and refresh tokens. Must be at
        least 32 characters in production (enforced by the settings layer).
    access_token_ttl / refresh_token_ttl:
        Lifetimes of the two credential types (hours vs days).
    clock_skew_seconds:
        Tolerance applied to ``exp`` when verifying.
    bcrypt_rounds:
        Password hash cost factor.
    enforce_password_strength:
        When False, registration skips the password policy (development only).
    revoke_refresh_on_rotate:
        When True, ``refresh`` revokes the presented refresh token.
    """

    jwt_secret: str
    access_token_ttl: timedelta = timedelta(hours=24)
    refresh_token_ttl: timedelta = timedelta(days=7)
    algorithm: str = "HS256"
    issuer: str = TOKEN_ISSUER
    audience: str = TOKEN_AUDIENCE
    clock_skew_seconds: int = 0
    bcrypt_rounds: int = 12
    enforce_password_strength: bool = True
    revoke_refresh_on_rotate: bool = False
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 60
    revocation_sweep_seconds: int = 3600

    def __post_init__(self) -> None:
        if not self.jwt_secret or not self.jwt_secret.strip():
            raise ValueError("jwt_secret must be set and non-empty")
        if self.access_token_ttl <= timedelta(0) or self.refresh_token_ttl <= timedelta(0):
            raise ValueError("token lifetimes must be positive")
        if self.refresh_token_ttl <= self.access_token_ttl:
            raise ValueError("refresh token lifetime must exceed access token lifetime")

    @classmethod
    def from_settings(cls, settings: Any) -> CoreConfig:
        """Build from a ``docportal.settings.Settings`` (or any object with the same attributes)."""
        secret = settings.jwt_secret
        if hasattr(secret, "get_secret_value"):
            secret = secret.get_secret_value()
        return cls(
            jwt_secret=secret,
            access_token_ttl=timedelta(minutes=settings.access_token_minutes),
            refresh_token_ttl=timedelta(days=settings.refresh_token_days),
            clock_skew_seconds=settings.clock_skew_seconds,
            bcrypt_rounds=settings.bcrypt_rounds,
            enforce_password_strength=settings.enforce_password_strength,
            revoke_refresh_on_rotate=settings.revoke_refresh_on_rotate,
            rate_limit_max_requests=settings.rate_limit_max_requests,
            rate_limit_window_seconds=settings.rate_limit_window_seconds,
            revocation_sweep_seconds=settings.revocation_sweep_seconds,
        )

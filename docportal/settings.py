from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docportal.core.config import MIN_SECRET_LENGTH

logger = logging.getLogger(__name__)

_DEV_SECRET = "dev-only-secret-change-me"


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic so the portal runs without setup.
    - Every field can be overridden with an ``APP_``-prefixed env var.
    - In production a short signing secret is a startup error.
    """

    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    environment: Literal["development", "test", "production"] = "development"
    db_url: str | None = None
    log_level: str = "INFO"

    jwt_secret: SecretStr = SecretStr(_DEV_SECRET)
    access_token_minutes: int = Field(default=24 * 60, gt=0)
    refresh_token_days: int = Field(default=7, gt=0)
    clock_skew_seconds: int = Field(default=0, ge=0)

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    enforce_password_strength: bool = True
    revoke_refresh_on_rotate: bool = False

    revocation_sweep_seconds: int = Field(default=3600, gt=0)
    rate_limit_max_requests: int = Field(default=100, gt=0)
    rate_limit_window_seconds: int = Field(default=60, gt=0)

    permission_matrix_path: str | None = None
    bootstrap_admin_email: str | None = None
    bootstrap_admin_password: SecretStr | None = None

    @model_validator(mode="after")
    def _check_secret(self) -> Settings:
        secret = self.jwt_secret.get_secret_value()
        if len(secret) < MIN_SECRET_LENGTH:
            if self.environment == "production":
                raise ValueError(f"APP_JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters in production")
            logger.warning("APP_JWT_SECRET is shorter than %s characters; do not use outside development", MIN_SECRET_LENGTH)
        return self

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "docportal.db"
        return f"sqlite:///{db_path}"

    def resolved_permission_matrix_path(self) -> Path:
        if self.permission_matrix_path:
            return Path(self.permission_matrix_path)

        return Path(__file__).resolve().parent / "config" / "permission_matrix.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docportal.core.enums import Role, Workspace
from docportal.core.passwords import PASSWORD_MAX_LEN


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)
    full_name: str = Field(min_length=2, max_length=200)
    role: Role
    workspace: Workspace


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None

    @model_validator(mode="after")
    def _at_least_one_token(self) -> LogoutRequest:
        if not self.access_token and not self.refresh_token:
            raise ValueError("access_token or refresh_token is required")
        return self


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)


class UpdateProfileRequest(BaseModel):
    full_name: str | None = Field(default=None, min_length=2, max_length=200)
    preferences: dict[str, Any] | None = None


class TokenPairOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str


class UserSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: str
    role: Role
    workspace: Workspace
    is_active: bool
    last_login_at: datetime | None


class AuthOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user: UserSummaryOut
    tokens: TokenPairOut


class PermissionsOut(BaseModel):
    can_view: list[Workspace]
    can_download: list[Workspace]
    can_archive: list[Workspace]
    can_manage: list[Workspace]


class ProfileOut(BaseModel):
    id: str
    email: str
    full_name: str
    role: Role
    workspace: Workspace
    is_active: bool
    last_login_at: datetime | None
    preferences: dict[str, Any]
    permissions: PermissionsOut


class LogoutOut(BaseModel):
    revoked: int

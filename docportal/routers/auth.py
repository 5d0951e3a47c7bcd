from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from docportal.core.errors import AuthFailure, AuthResult
from docportal.core.models import AuthenticatedUser, NewUser
from docportal.core.service import AuthService
from docportal.schemas.auth import (
    AuthOut,
    ChangePasswordRequest,
    LoginRequest,
    LogoutOut,
    LogoutRequest,
    PermissionsOut,
    ProfileOut,
    RefreshRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from docportal.security.auth import http_error
from docportal.security.dependencies import get_auth_service, get_current_user


router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_out(result: AuthResult) -> AuthOut:
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return AuthOut.model_validate(result)


def profile_out(user: AuthenticatedUser) -> ProfileOut:
    return ProfileOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        workspace=user.workspace,
        is_active=user.is_active,
        last_login_at=user.last_login_at,
        preferences=user.preferences,
        permissions=PermissionsOut(**user.permissions.to_dict()),
    )


@router.post("/login", response_model=AuthOut)
def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)) -> AuthOut:
    return _auth_out(service.login(body.email, body.password))


@router.post("/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> AuthOut:
    data = NewUser(
        email=body.email,
        full_name=body.full_name,
        role=body.role,
        workspace=body.workspace,
        password=body.password,
    )
    return _auth_out(service.register(data, requesting_admin_id=user.id))


@router.post("/refresh", response_model=AuthOut)
def refresh(body: RefreshRequest, service: AuthService = Depends(get_auth_service)) -> AuthOut:
    return _auth_out(service.refresh(body.refresh_token))


@router.post("/logout", response_model=LogoutOut)
def logout(body: LogoutRequest, service: AuthService = Depends(get_auth_service)) -> LogoutOut:
    result = service.logout(access_token=body.access_token, refresh_token=body.refresh_token)
    return LogoutOut(revoked=result.revoked)


@router.get("/me", response_model=ProfileOut)
def me(user: AuthenticatedUser = Depends(get_current_user)) -> ProfileOut:
    return profile_out(user)


@router.patch("/me", response_model=ProfileOut)
def update_me(
    body: UpdateProfileRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> ProfileOut:
    result = service.update_profile(user.id, full_name=body.full_name, preferences=body.preferences)
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return profile_out(result)


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    body: ChangePasswordRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    result = service.change_password(user.id, body.current_password, body.new_password)
    if result is not None:
        raise http_error(result)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

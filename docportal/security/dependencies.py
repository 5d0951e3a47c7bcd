from __future__ import annotations

from collections.abc import Generator
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from docportal.core.enums import Role
from docportal.core.lifecycle import DocumentLifecycle
from docportal.core.models import AuthenticatedUser
from docportal.core.ratelimit import UserRateLimiter
from docportal.core.service import AuthService
from docportal.db.session import get_db
from docportal.security.auth import authenticate_request
from docportal.security.context import AuthzContext


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized. Did app startup run?")
    return value


def get_auth_service(request: Request) -> AuthService:
    return _state(request, "auth_service")


def get_lifecycle(request: Request) -> DocumentLifecycle:
    return _state(request, "lifecycle")


def get_rate_limiter(request: Request) -> UserRateLimiter:
    return _state(request, "rate_limiter")


def get_current_user(
    request: Request,
    service: AuthService = Depends(get_auth_service),
    limiter: UserRateLimiter = Depends(get_rate_limiter),
) -> AuthenticatedUser:
    """
    Authenticate the caller and count the request against their rate limit.

    Also attaches ``request.state.user`` and ``request.state.authz`` so the
    DB dependency can scope queries.
    """

    user = authenticate_request(request, service)

    decision = limiter.hit(user.id)
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )

    request.state.user = user
    request.state.authz = AuthzContext.for_user(user)
    return user


def get_scoped_db(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
) -> Generator[Session, None, None]:
    """A session whose Document queries are limited to what ``user`` may see."""
    yield from get_db(request)


def require_role(*roles: Role) -> Callable[..., AuthenticatedUser]:
    allowed = frozenset(roles)

    def dependency(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role. Required one of: {sorted(r.value for r in allowed)}",
            )
        return user

    return dependency

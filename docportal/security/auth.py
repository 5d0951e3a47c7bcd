from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from docportal.core.errors import AuthErrorCode, AuthFailure
from docportal.core.models import AuthenticatedUser
from docportal.core.service import AuthService

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"

STATUS_BY_CODE: dict[AuthErrorCode, int] = {
    AuthErrorCode.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.ACCOUNT_DISABLED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.NO_PASSWORD_SET: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.TOKEN_INVALID: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.TOKEN_REVOKED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.INVALID_REFRESH_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.NO_TOKEN_PROVIDED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.USER_NOT_FOUND: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.INSUFFICIENT_PERMISSIONS: status.HTTP_403_FORBIDDEN,
    AuthErrorCode.EMAIL_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    AuthErrorCode.WEAK_PASSWORD: status.HTTP_400_BAD_REQUEST,
    AuthErrorCode.PASSWORD_UNCHANGED: status.HTTP_400_BAD_REQUEST,
}


def http_error(result: AuthFailure) -> HTTPException:
    """Translate a core failure into the HTTP error the client sees."""
    status_code = STATUS_BY_CODE.get(result.code, status.HTTP_400_BAD_REQUEST)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=status_code, detail=result.to_dict(), headers=headers)


def authenticate_request(request: Request, service: AuthService) -> AuthenticatedUser:
    """
    Resolve the caller from ``Authorization: Bearer <token>``.

    Raises 401 for a missing/invalid/expired/revoked token or an unknown or
    inactive user.
    """

    result = service.authenticate(request.headers.get(AUTHORIZATION_HEADER))
    if isinstance(result, AuthFailure):
        logger.info(
            "Authentication failed code=%s path=%s method=%s",
            result.code.value,
            request.url.path,
            request.method,
        )
        raise http_error(result)
    return result

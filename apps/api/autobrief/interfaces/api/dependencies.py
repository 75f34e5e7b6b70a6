import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from autobrief.container import ServiceContainer
from autobrief.core.domain.user import User
from autobrief.infrastructure.security import auth as security
from autobrief.infrastructure.security import rate_limit

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class ApiError(HTTPException):
    """HTTPException rendered with the `{"error": code, "detail": detail}` body."""

    def __init__(self, status_code: int, code: str, detail: str) -> None:
        super().__init__(status_code=status_code, detail=detail)
        self.code = code


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.code, exc.detail)


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Service container not initialised")
    return container


def _resolve_user(
    credentials: Optional[HTTPAuthorizationCredentials], container: ServiceContainer
) -> User:
    payload = security.decode_token(credentials.credentials, expected_type="access")
    if payload is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "invalid_token", "Invalid token.")

    user = container.users.get_by_id(payload.get("sub", ""))
    if user is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "invalid_token", "User not found.")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: ServiceContainer = Depends(get_container),
) -> User:
    if credentials is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "not_authenticated", "Token required.")
    return _resolve_user(credentials, container)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: ServiceContainer = Depends(get_container),
) -> Optional[User]:
    if credentials is None:
        return None
    return _resolve_user(credentials, container)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(request: Request, bucket: str, limit: int, window_seconds: int) -> None:
    try:
        rate_limit.enforce(bucket, client_ip(request), limit, window_seconds)
    except rate_limit.RateLimitExceeded:
        logger.warning("Rate limit exceeded", extra={"bucket": bucket, "ip": client_ip(request)})
        raise ApiError(
            status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited", "Too many requests, try again later."
        )


def error_response(status_code: int, code: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code, "detail": detail})

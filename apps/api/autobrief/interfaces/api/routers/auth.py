import logging

import psycopg
from fastapi import APIRouter, Depends, Request, status

from autobrief.container import ServiceContainer
from autobrief.core.domain.user import User
from autobrief.infrastructure.security import auth as security
from autobrief.interfaces.api.dependencies import (
    ApiError,
    client_ip,
    enforce_rate_limit,
    get_container,
    get_current_user,
)
from autobrief.interfaces.api.schemas import (
    TokenResponse,
    UsagePublic,
    UserCreate,
    UserLogin,
    UserPublic,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/auth/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: UserCreate, container: ServiceContainer = Depends(get_container)
) -> TokenResponse:
    if container.users.get_by_email(payload.email):
        logger.warning("Registration blocked: email already registered", extra={"email": payload.email})
        raise ApiError(status.HTTP_400_BAD_REQUEST, "email_taken", "Email already registered.")

    try:
        user = container.users.create_user(
            email=payload.email,
            password_hash=security.hash_password(payload.password),
            full_name=payload.full_name,
        )
    except psycopg.errors.UniqueViolation as exc:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "email_taken", "Email already registered.") from exc
    logger.info("User registered", extra={"user_id": user.user_id, "email": user.email})

    access_token = security.create_access_token(user_id=user.user_id, email=user.email, plan=user.plan)
    return TokenResponse(access_token=access_token)


@router.post("/auth/login", response_model=TokenResponse)
def login(
    payload: UserLogin,
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> TokenResponse:
    enforce_rate_limit(request, bucket="login", limit=5, window_seconds=60)
    user = container.users.get_by_email(payload.email)
    if not user or not security.verify_password(payload.password, user.password_hash):
        logger.warning("Login failed: invalid credentials", extra={"email": payload.email})
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "invalid_credentials", "Invalid credentials.")

    access_token = security.create_access_token(user_id=user.user_id, email=user.email, plan=user.plan)
    logger.info(
        "Login success",
        extra={"user_id": user.user_id, "email": user.email, "ip": client_ip(request)},
    )
    return TokenResponse(access_token=access_token)


@router.get("/auth/me", response_model=UserPublic)
def me(
    current_user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> UserPublic:
    """
    Current account with plan and summary usage for the dashboard.
    """
    used = container.summaries.count_for_owner(current_user.user_id)
    return UserPublic(
        user_id=current_user.user_id,
        email=current_user.email,
        full_name=current_user.full_name,
        plan=current_user.plan,
        usage=UsagePublic(used=used, limit=container.settings.summary_limit_for(current_user.plan)),
    )

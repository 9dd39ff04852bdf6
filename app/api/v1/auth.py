"""
Authentication API endpoints.

This module provides endpoints for:
- Console login (JWT in an HTTP-only cookie)
- Logout (clear the cookie)
- Session introspection ("who am I")
"""

from typing import Annotated

import redis.asyncio as redis
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.auth import AuthCookie, get_client_ip
from app.core.database import get_db
from app.core.logging import get_logger
from app.core.redis import get_redis
from app.core.security import create_session_token, verify_password, verify_session_token
from app.models.user import LOGIN_ROLES, Users
from app.schemas.auth import LoginRequest, LoginResponse, MessageResponse, SessionStatusResponse
from app.services.rate_limit import (
    check_login_rate_limit,
    clear_failed_logins,
    record_failed_login,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _set_auth_cookie(response: Response, token: str) -> None:
    """Set the session token as an HTTP-only cookie matching the token lifetime."""
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,  # Prevent JavaScript access (XSS protection)
        secure=settings.ENVIRONMENT == "production",  # HTTPS only in production
        samesite="strict",  # CSRF protection
        max_age=settings.SESSION_TOKEN_EXPIRE_HOURS * 60 * 60,
        path="/",
    )


def _clear_auth_cookie(response: Response) -> None:
    """Clear the session cookie (match set_cookie params)."""
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="strict",
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    redis_client: Annotated[redis.Redis, Depends(get_redis)],  # type: ignore[type-arg]
) -> LoginResponse:
    """
    Authenticate a console user and set the session cookie.

    Flow:
    1. Refuse the attempt if this IP has too many recent failures
    2. Verify email/password (bcrypt)
    3. Refuse roles that may not sign in
    4. Issue a 24h session token carrying {id, role} as an HTTP-only cookie
    """
    ip_address = get_client_ip(request)
    await check_login_rate_limit(ip_address, redis_client)

    result = await db.execute(select(Users).where(Users.email == credentials.email))  # type: ignore[arg-type]
    user = result.scalar_one_or_none()

    if user is None or not verify_password(credentials.password, user.password):
        await record_failed_login(ip_address, redis_client)
        logger.info("login_failed", ip_address=ip_address)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if user.role not in LOGIN_ROLES:
        logger.info("login_forbidden_role", user_id=user.id, role=user.role.value)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized access",
        )

    assert user.id is not None
    await clear_failed_logins(ip_address, redis_client)
    _set_auth_cookie(response, create_session_token(user.id, user.role))
    logger.info("login_succeeded", user_id=user.id, role=user.role.value)

    return LoginResponse(role=user.role)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear the session cookie. Always succeeds."""
    _clear_auth_cookie(response)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=SessionStatusResponse)
async def me(auth_token: AuthCookie = None) -> SessionStatusResponse:
    """
    Report whether the caller holds a valid session and its role.

    A missing, expired, tampered or foreign-signed token all read as logged out.
    """
    claims = verify_session_token(auth_token)
    if claims is None:
        return SessionStatusResponse.logged_out()
    return SessionStatusResponse(is_logged_in=True, role=claims.role)

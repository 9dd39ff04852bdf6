"""
Authentication dependencies for FastAPI route protection.

This module provides dependency functions for:
- Extracting and verifying the session token cookie
- Loading current user from database
- Protecting routes by role
"""

from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.core.logging import user_id_ctx
from app.core.security import SessionClaims, verify_session_token
from app.models.user import ADMIN_ROLES, UserRole, Users

AuthCookie = Annotated[str | None, Cookie(alias=settings.AUTH_COOKIE_NAME)]


async def get_optional_session(auth_token: AuthCookie = None) -> SessionClaims | None:
    """
    Verified session claims if the cookie holds a valid token, otherwise None.

    Useful for public endpoints that record who collected a donation.
    """
    claims = verify_session_token(auth_token)
    if claims is not None:
        user_id_ctx.set(claims.user_id)
    return claims


async def get_session(
    claims: Annotated[SessionClaims | None, Depends(get_optional_session)],
) -> SessionClaims:
    """
    Require a valid session token.

    Raises:
        HTTPException: 401 if the cookie is missing, invalid, or expired
    """
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return claims


async def get_current_user(
    claims: Annotated[SessionClaims, Depends(get_session)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Users:
    """
    Load current user from database using verified token.

    Raises:
        HTTPException: 401 if user no longer exists
    """
    result = await db.execute(select(Users).where(Users.id == claims.user_id))  # type: ignore[arg-type]
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return user


async def require_admin(
    current_user: Annotated[Users, Depends(get_current_user)],
) -> Users:
    """
    Require current user to be SUPERADMIN or STAFF.

    The stored role is authoritative; the role claim in the token is not trusted here.

    Raises:
        HTTPException: 403 otherwise
    """
    if current_user.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


async def require_coordinator(
    current_user: Annotated[Users, Depends(get_current_user)],
) -> Users:
    """
    Require a coordinator with an assigned batch.

    Raises:
        HTTPException: 403 for other roles or coordinators without a batch
    """
    if current_user.role != UserRole.COORDINATOR or current_user.batch_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid coordinator or batch assignment",
        )
    return current_user


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Checks X-Forwarded-For header first (for proxies/load balancers),
    falls back to direct client IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (client)
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Type aliases for dependency injection
OptionalSession = Annotated[SessionClaims | None, Depends(get_optional_session)]
CurrentUser = Annotated[Users, Depends(get_current_user)]
AdminUser = Annotated[Users, Depends(require_admin)]
CoordinatorUser = Annotated[Users, Depends(require_coordinator)]

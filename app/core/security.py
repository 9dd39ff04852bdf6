"""
Security utilities for authentication.

This module provides:
- Password hashing and verification using bcrypt
- Session token (JWT) issuance and verification
"""

import base64
import hashlib
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import bcrypt
import jwt

from app.config import settings
from app.core.logging import get_logger
from app.models.user import UserRole

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    user_id: int
    role: UserRole


def _prepare_password_for_bcrypt(password: str) -> str:
    """
    Prepare password for bcrypt by handling long passwords.

    Bcrypt has a 72 byte limit. For passwords longer than 72 bytes,
    we SHA256 hash them first and encode as base64.
    """
    password_bytes = password.encode("utf-8")

    if len(password_bytes) <= 72:
        return password

    # SHA256 produces 32 bytes, base64 encoding produces 44 chars (well under 72)
    hashed = hashlib.sha256(password_bytes).digest()
    return base64.b64encode(hashed).decode("ascii")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    prepared_password = _prepare_password_for_bcrypt(plain_password)
    try:
        return bcrypt.checkpw(prepared_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    For passwords longer than 72 bytes (bcrypt's limit), we SHA256 hash them first.
    """
    prepared_password = _prepare_password_for_bcrypt(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(prepared_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def create_session_token(
    user_id: int,
    role: UserRole | str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed session token carrying the user's id and role.

    Args:
        user_id: The user ID to encode in the token
        role: The user's role at login time
        expires_delta: Optional custom lifetime (defaults to settings.SESSION_TOKEN_EXPIRE_HOURS)

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(hours=settings.SESSION_TOKEN_EXPIRE_HOURS)

    now = datetime.now(UTC)
    payload = {
        "id": user_id,
        "role": UserRole(role).value,
        "iat": now,
        "exp": now + expires_delta,
    }

    return jwt.encode(
        payload, settings.JWT_SECRET.get_secret_value(), algorithm=settings.ALGORITHM
    )


def verify_session_token(token: str | None) -> SessionClaims | None:
    """
    Verify and decode a session token.

    Expired, malformed, tampered and foreign-signed tokens all yield None;
    the reason is logged and never returned to the caller.

    Args:
        token: The JWT token to verify (None is treated as absent)

    Returns:
        SessionClaims if the token is valid, None otherwise
    """
    if not token:
        return None

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET.get_secret_value(),
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": True, "verify_signature": True, "require": ["exp"]},
        )
        return SessionClaims(user_id=int(payload["id"]), role=UserRole(payload["role"]))

    except jwt.ExpiredSignatureError:
        logger.info("session_token_rejected", reason="expired")
    except jwt.InvalidTokenError:
        logger.info("session_token_rejected", reason="invalid")
    except (KeyError, ValueError, TypeError):
        logger.info("session_token_rejected", reason="malformed_claims")
    return None

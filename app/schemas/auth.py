"""
Authentication schemas for request/response validation.

This module defines Pydantic models for authentication-related API operations:
- Login credentials
- Login/logout results
- Session introspection ("who am I")
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.user import UserRole


class LoginRequest(BaseModel):
    """Request schema for console login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)


class LoginResponse(BaseModel):
    """Response schema for successful login. The token travels in the cookie."""

    success: bool = True
    role: UserRole


class MessageResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str | None = None


class SessionStatusResponse(BaseModel):
    """
    Response schema for GET /auth/me.

    Field names are camelCase on the wire to match the frontend contract.
    Any verification failure is reported as logged out.
    """

    model_config = ConfigDict(populate_by_name=True)

    is_logged_in: bool = Field(alias="isLoggedIn")
    role: UserRole | None = None

    @classmethod
    def logged_out(cls) -> "SessionStatusResponse":
        return cls(is_logged_in=False, role=None)

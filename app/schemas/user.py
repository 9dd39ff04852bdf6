"""
Pydantic schemas for console accounts: coordinator management and the
signed-in user's own profile.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.user import UserRole, Users
from app.schemas.base import UTCDatetimeOptional


def _strip(v: str | None) -> str | None:
    if isinstance(v, str):
        return v.strip()
    return v


class CoordinatorCreate(BaseModel):
    """Schema for creating a coordinator account bound to a batch"""

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6, max_length=255)
    batch_id: int

    @field_validator("name", "username", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return _strip(v)


class CoordinatorUpdate(BaseModel):
    """Schema for editing a coordinator - all fields optional, none nullable"""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    username: str | None = Field(default=None, min_length=3, max_length=50)
    password: str | None = Field(default=None, min_length=6, max_length=255)
    batch_id: int | None = None

    @field_validator("name", "username", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return _strip(v)

    @field_validator("name", "email", "username", "password", "batch_id")
    @classmethod
    def reject_null(cls, v: object) -> object:
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class CoordinatorResponse(BaseModel):
    """A coordinator account as listed in the console. Never carries the password."""

    id: int
    name: str
    email: str
    username: str | None
    role: UserRole
    batch_id: int | None
    batch_name: str | None = None
    created_at: UTCDatetimeOptional = None

    @classmethod
    def from_model(cls, user: Users, batch_name: str | None = None) -> "CoordinatorResponse":
        assert user.id is not None
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            username=user.username,
            role=user.role,
            batch_id=user.batch_id,
            batch_name=batch_name,
            created_at=user.created_at,
        )


class ProfileResponse(BaseModel):
    """The signed-in user's own account."""

    id: int
    name: str
    username: str | None
    email: str
    role: UserRole
    batch_name: str | None = None

    @classmethod
    def from_model(cls, user: Users, batch_name: str | None = None) -> "ProfileResponse":
        assert user.id is not None
        return cls(
            id=user.id,
            name=user.name,
            username=user.username,
            email=user.email,
            role=user.role,
            batch_name=batch_name,
        )


class ProfileUpdate(BaseModel):
    """
    Schema for editing one's own profile.

    name and email are always sent; an empty username clears it and an empty
    password leaves the current one in place.
    """

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    username: str | None = Field(default=None, max_length=50)
    password: str | None = Field(default=None, min_length=6, max_length=255)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        return _strip(v)

    @field_validator("username", mode="before")
    @classmethod
    def empty_username(cls, v: str | None) -> str | None:
        return _strip(v) or None

    @field_validator("password", mode="before")
    @classmethod
    def empty_password(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v


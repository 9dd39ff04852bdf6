"""
SQLModel-based User models with inheritance for security

UserBase (shared public fields)
    ├─> Users (database table, adds credentials and role assignment)
    └─> API schemas (defined in app/schemas)
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Index, func, text
from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    """Roles a console user can hold"""

    SUPERADMIN = "SUPERADMIN"
    STAFF = "STAFF"
    VIEWER = "VIEWER"
    COORDINATOR = "COORDINATOR"


# Roles allowed to change ledger data from the admin console
ADMIN_ROLES = frozenset({UserRole.SUPERADMIN, UserRole.STAFF})
# Roles allowed to sign in
LOGIN_ROLES = ADMIN_ROLES | {UserRole.COORDINATOR}


class UserBase(SQLModel):
    """
    Base model with shared public fields for Users.

    These fields are safe to expose via the API.
    """

    name: str = Field(max_length=100)
    username: str | None = Field(default=None, max_length=50)
    role: UserRole = Field(default=UserRole.STAFF)


class Users(UserBase, table=True):
    """
    Database table for console users.

    Internal/sensitive fields (should NOT be exposed via public API):
    - password: bcrypt hash
    - email: Privacy-sensitive
    - batch_id: Coordinator assignment
    """

    __tablename__ = "users"

    __table_args__ = (
        Index("idx_users_email", "email", unique=True),
        Index("idx_users_username", "username", unique=True),
    )

    id: int | None = Field(default=None, primary_key=True)

    email: str = Field(max_length=255)
    password: str = Field(max_length=255)

    # Coordinators are bound to the batch they collect for
    batch_id: int | None = Field(default=None, foreign_key="batches.id")

    created_at: datetime | None = Field(
        default=None, sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")}
    )
    updated_at: datetime | None = Field(
        default=None,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP"), "onupdate": func.now()},
    )

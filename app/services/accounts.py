"""
Console account management.

Coordinator accounts are created and maintained from the admin console;
every console user can edit their own profile. Emails and usernames are
unique across all users.
"""

from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.security import get_password_hash
from app.models.donation import Donations
from app.models.user import UserRole, Users

logger = get_logger(__name__)


class AccountConflictError(Exception):
    """Another user already holds the email or username."""


async def find_conflicting_user(
    db: AsyncSession,
    email: str | None = None,
    username: str | None = None,
    exclude_id: int | None = None,
) -> Users | None:
    """Return a user other than exclude_id holding the given email or username."""
    conditions = []
    if email:
        conditions.append(Users.email == email)
    if username:
        conditions.append(Users.username == username)
    if not conditions:
        return None

    query = select(Users).where(or_(*conditions))  # type: ignore[arg-type]
    if exclude_id is not None:
        query = query.where(Users.id != exclude_id)  # type: ignore[arg-type]
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


async def _commit_account(db: AsyncSession, user: Users) -> None:
    # A concurrent insert can still win the unique index after the pre-check
    try:
        db.add(user)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise AccountConflictError("Email or username already in use") from e
    await db.refresh(user)


async def get_coordinator(db: AsyncSession, user_id: int) -> Users | None:
    user = await db.get(Users, user_id)
    if user is None or user.role != UserRole.COORDINATOR:
        return None
    return user


async def apply_account_changes(db: AsyncSession, user: Users, changes: dict[str, Any]) -> Users:
    """
    Write profile changes to a user.

    A password in changes is stored as a bcrypt hash. Raises
    AccountConflictError when the email or username belongs to someone else.
    """
    if await find_conflicting_user(
        db, changes.get("email"), changes.get("username"), exclude_id=user.id
    ):
        raise AccountConflictError("Email or username already in use")

    if "password" in changes:
        user.password = get_password_hash(changes.pop("password"))
    for field, value in changes.items():
        setattr(user, field, value)

    await _commit_account(db, user)
    return user


async def create_coordinator(
    db: AsyncSession,
    name: str,
    email: str,
    username: str,
    password: str,
    batch_id: int,
) -> Users:
    if await find_conflicting_user(db, email, username):
        raise AccountConflictError("User with this email or username already exists")

    user = Users(
        name=name,
        email=email,
        username=username,
        password=get_password_hash(password),
        role=UserRole.COORDINATOR,
        batch_id=batch_id,
    )
    await _commit_account(db, user)

    logger.info("coordinator_created", user_id=user.id, batch_id=batch_id)
    return user


async def delete_coordinator(db: AsyncSession, user: Users) -> None:
    """Delete a coordinator, keeping the donations they collected."""
    user_id = user.id
    try:
        await db.execute(
            update(Donations)
            .where(Donations.collected_by_id == user_id)  # type: ignore[arg-type]
            .values(collected_by_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.delete(user)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("coordinator_deleted", user_id=user_id)

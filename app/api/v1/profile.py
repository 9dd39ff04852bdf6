"""
Profile API endpoints.

Any signed-in console user can read and edit their own account.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.database import get_db
from app.core.logging import get_logger
from app.models.hierarchy import Batches
from app.models.user import Users
from app.schemas.user import ProfileResponse, ProfileUpdate
from app.services import accounts

logger = get_logger(__name__)

router = APIRouter(prefix="/profile", tags=["Profile"])


async def _profile(db: AsyncSession, user: Users) -> ProfileResponse:
    batch_name = None
    if user.batch_id is not None:
        result = await db.execute(select(Batches.name).where(Batches.id == user.batch_id))  # type: ignore[call-overload]
        batch_name = result.scalar_one_or_none()
    return ProfileResponse.from_model(user, batch_name)


@router.get("", response_model=ProfileResponse)
async def get_profile(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProfileResponse:
    """Get the signed-in user's account, including their batch if any."""
    return await _profile(db, current_user)


@router.put("", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProfileResponse:
    """
    Update name, email and username, and optionally the password.

    Role and batch assignment cannot be changed here.
    """
    changes = body.model_dump(exclude={"password"})
    if body.password is not None:
        changes["password"] = body.password

    try:
        user = await accounts.apply_account_changes(db, current_user, changes)
    except accounts.AccountConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    logger.info(
        "profile_updated", user_id=user.id, password_changed=body.password is not None
    )
    return await _profile(db, user)

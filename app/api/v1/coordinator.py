"""
Coordinator API endpoints.

A coordinator is bound to one batch and only ever sees that batch's data.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CoordinatorUser
from app.core.database import get_db
from app.core.logging import get_logger
from app.models.donation import Donations, PaymentStatus
from app.models.hierarchy import Batches
from app.schemas.stats import (
    BatchSlugResponse,
    BatchSlugUpdate,
    CoordinatorBatch,
    CoordinatorLeaderboardEntry,
    CoordinatorStatsResponse,
    CoordinatorTransaction,
)
from app.schemas.stats import CoordinatorUser as CoordinatorUserSchema
from app.services.stats import ANONYMOUS, to_money

logger = get_logger(__name__)

router = APIRouter(prefix="/coordinator", tags=["Coordinator"])


async def _get_batch(db: AsyncSession, batch_id: int) -> Batches:
    batch = await db.get(Batches, batch_id)
    if batch is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No batch assigned")
    return batch


@router.get("/stats", response_model=CoordinatorStatsResponse)
async def get_coordinator_stats(
    current_user: CoordinatorUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CoordinatorStatsResponse:
    """
    Collected amount and transaction count for the coordinator's batch.

    Figures are aggregated from SUCCESS donations, not read from the stored total.
    """
    assert current_user.batch_id is not None
    batch = await _get_batch(db, current_user.batch_id)

    collected, count = (
        await db.execute(
            select(func.sum(Donations.amount), func.count(Donations.id)).where(  # type: ignore[arg-type]
                Donations.batch_id == batch.id,
                Donations.payment_status == PaymentStatus.SUCCESS,
            )
        )
    ).one()

    assert batch.id is not None
    return CoordinatorStatsResponse(
        batch=CoordinatorBatch(
            id=batch.id,
            name=batch.name,
            slug=batch.slug,
            year=batch.year,
            description=batch.description,
            total_collected=to_money(collected),
            transaction_count=count,
        ),
        user=CoordinatorUserSchema(name=current_user.name, username=current_user.username),
    )


@router.get("/transactions", response_model=list[CoordinatorTransaction])
async def list_coordinator_transactions(
    current_user: CoordinatorUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[CoordinatorTransaction]:
    """SUCCESS donations for the coordinator's batch, newest first."""
    result = await db.execute(
        select(Donations)
        .where(
            Donations.batch_id == current_user.batch_id,  # type: ignore[arg-type]
            Donations.payment_status == PaymentStatus.SUCCESS,  # type: ignore[arg-type]
        )
        .order_by(desc(Donations.created_at), desc(Donations.id))  # type: ignore[arg-type]
    )
    return [
        CoordinatorTransaction(
            id=d.id,  # type: ignore[arg-type]
            amount=d.amount,
            name=d.name,
            mobile=d.mobile,
            transaction_id=d.transaction_id,
            created_at=d.created_at,
        )
        for d in result.scalars().all()
    ]


@router.get("/leaderboard", response_model=list[CoordinatorLeaderboardEntry])
async def get_coordinator_leaderboard(
    current_user: CoordinatorUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[CoordinatorLeaderboardEntry]:
    """Top donors of the coordinator's batch, grouped by name and mobile."""
    amount = func.sum(Donations.amount).label("amount")
    result = await db.execute(
        select(Donations.name, Donations.mobile, amount)  # type: ignore[call-overload]
        .where(
            Donations.batch_id == current_user.batch_id,
            Donations.payment_status == PaymentStatus.SUCCESS,
        )
        .group_by(Donations.name, Donations.mobile)
        .order_by(desc("amount"))
        .limit(limit)
    )
    return [
        CoordinatorLeaderboardEntry(
            rank=rank,
            name=row.name or ANONYMOUS,
            mobile=row.mobile,
            amount=to_money(row.amount),
        )
        for rank, row in enumerate(result.all(), start=1)
    ]


@router.patch("/batch", response_model=BatchSlugResponse)
async def update_batch_slug(
    body: BatchSlugUpdate,
    current_user: CoordinatorUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BatchSlugResponse:
    """
    Set or clear the public slug of the coordinator's batch.

    Raises 409 when another batch already uses the slug.
    """
    assert current_user.batch_id is not None
    batch = await _get_batch(db, current_user.batch_id)

    if body.slug and body.slug != batch.slug:
        taken = await db.execute(
            select(Batches.id).where(Batches.slug == body.slug, Batches.id != batch.id)  # type: ignore[call-overload]
        )
        if taken.scalar_one_or_none() is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already taken")

    batch.slug = body.slug or None
    db.add(batch)
    await db.commit()
    await db.refresh(batch)

    logger.info("batch_slug_updated", batch_id=batch.id, slug=batch.slug, user_id=current_user.id)

    assert batch.id is not None
    return BatchSlugResponse(id=batch.id, name=batch.name, slug=batch.slug)

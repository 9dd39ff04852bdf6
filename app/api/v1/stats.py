"""
Public statistics API endpoints
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import LeaderboardType
from app.core.database import get_db
from app.schemas.donations import TransactionFeedItem
from app.schemas.stats import LeaderboardEntry, StatsResponse
from app.services import stats as stats_service

router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: Annotated[AsyncSession, Depends(get_db)]) -> StatsResponse:
    """Total collected and the top three batches."""
    return await stats_service.campaign_stats(db)


@router.get("/stats/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    db: Annotated[AsyncSession, Depends(get_db)],
    board: Annotated[
        str,
        Query(
            alias="type",
            description="batches, individuals, units, places (or municipalities), districts",
        ),
    ] = LeaderboardType.BATCHES,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> list[LeaderboardEntry]:
    """Ranked SUCCESS donation totals for the requested grouping."""
    try:
        return await stats_service.leaderboard(db, board, limit)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/transactions", response_model=list[TransactionFeedItem])
async def list_transactions(
    db: Annotated[AsyncSession, Depends(get_db)],
    search: Annotated[
        str | None, Query(max_length=100, description="Name, transaction id or exact amount")
    ] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[TransactionFeedItem]:
    """
    Public feed of confirmed donations, newest first.

    Hidden or missing donor names are shown as "Anonymous".
    """
    return await stats_service.transaction_feed(db, search=search, limit=limit)

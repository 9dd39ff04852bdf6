"""
Read-side aggregation for public statistics, leaderboards and dashboards.

Everything here counts SUCCESS donations only and never writes.
"""

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import BatchStatus, LeaderboardType
from app.models.donation import Donations, PaymentStatus
from app.models.hierarchy import Batches, Districts, Places, Units
from app.schemas.donations import DonationResponse, TransactionFeedItem
from app.schemas.stats import (
    AdminMetrics,
    AdminStatsResponse,
    BatchSummary,
    BatchTotal,
    LeaderboardEntry,
    PaymentMethodTotal,
    StatsResponse,
)
from app.services.ledger import CENT

ANONYMOUS = "Anonymous"

# Accepted spellings for the leaderboard type parameter
LEADERBOARD_ALIASES = {"municipalities": LeaderboardType.PLACES}

_SUCCESS = Donations.payment_status == PaymentStatus.SUCCESS


def to_money(value: Any) -> Decimal:
    """Normalize a driver SUM result (None, float, Decimal) to a 2-place Decimal."""
    return Decimal(str(value or 0)).quantize(CENT)


def display_name(name: str | None, hide_name: bool) -> str:
    """Name shown in public feeds."""
    if hide_name or not name:
        return ANONYMOUS
    return name


async def total_collected(db: AsyncSession, batch_id: int | None = None) -> Decimal:
    query = select(func.sum(Donations.amount)).where(_SUCCESS)  # type: ignore[arg-type]
    if batch_id is not None:
        query = query.where(Donations.batch_id == batch_id)  # type: ignore[arg-type]
    return to_money((await db.execute(query)).scalar())


async def campaign_stats(db: AsyncSession) -> StatsResponse:
    """Total collected plus the three best batches by SUCCESS donations."""
    total = await total_collected(db)
    top = await leaderboard(db, LeaderboardType.BATCHES, limit=3)
    return StatsResponse(
        total_amount=total,
        top_batches=[BatchTotal(id=e.id, name=e.name, amount=e.amount) for e in top],
    )


async def leaderboard(db: AsyncSession, board: str, limit: int = 10) -> list[LeaderboardEntry]:
    """
    Rank SUCCESS donation sums by batch, donor, unit, place or district.

    Donors are grouped by (name, mobile, batch). Donations without the
    grouping attribution are left out of that board.

    Raises:
        ValueError: unknown board type
    """
    board = LEADERBOARD_ALIASES.get(board, board)
    amount = func.sum(Donations.amount).label("amount")

    if board == LeaderboardType.INDIVIDUALS:
        query = (
            select(Donations.name, Donations.mobile, Batches.name.label("batch"), amount)  # type: ignore[attr-defined]
            .outerjoin(Batches, Batches.id == Donations.batch_id)  # type: ignore[arg-type]
            .where(_SUCCESS)  # type: ignore[arg-type]
            .group_by(Donations.name, Donations.mobile, Donations.batch_id, Batches.name)
            .order_by(desc("amount"))
            .limit(limit)
        )
        rows = (await db.execute(query)).all()
        return [
            LeaderboardEntry(
                rank=rank,
                name=row.name or ANONYMOUS,
                amount=to_money(row.amount),
                batch=row.batch or "General",
            )
            for rank, row in enumerate(rows, start=1)
        ]

    if board == LeaderboardType.BATCHES:
        model, join_on = Batches, Batches.id == Donations.batch_id
    elif board == LeaderboardType.UNITS:
        model, join_on = Units, Units.id == Donations.unit_id
    elif board == LeaderboardType.PLACES:
        model, join_on = Places, Places.id == Donations.place_id
    elif board == LeaderboardType.DISTRICTS:
        model, join_on = Districts, Districts.id == Places.district_id
    else:
        raise ValueError(f"Unknown leaderboard type: {board}")

    query = select(model.id, model.name, amount).select_from(Donations)  # type: ignore[attr-defined]
    if board == LeaderboardType.DISTRICTS:
        # Districts are reached through the donation's place
        query = query.join(Places, Places.id == Donations.place_id)  # type: ignore[arg-type]
    query = (
        query.join(model, join_on)  # type: ignore[arg-type]
        .where(_SUCCESS)  # type: ignore[arg-type]
        .group_by(model.id, model.name)  # type: ignore[attr-defined]
        .order_by(desc("amount"), model.name)  # type: ignore[attr-defined]
        .limit(limit)
    )
    rows = (await db.execute(query)).all()
    return [
        LeaderboardEntry(rank=rank, id=row.id, name=row.name, amount=to_money(row.amount))
        for rank, row in enumerate(rows, start=1)
    ]


def _search_filter(search: str) -> Any:
    pattern = f"%{search}%"
    clauses = [
        Donations.name.ilike(pattern),  # type: ignore[union-attr]
        Donations.external_payment_id.ilike(pattern),  # type: ignore[union-attr]
        Donations.external_order_id.ilike(pattern),  # type: ignore[union-attr]
    ]
    try:
        amount = Decimal(search)
    except InvalidOperation:
        amount = None
    if amount is not None and amount.is_finite():
        clauses.append(Donations.amount == amount)  # type: ignore[arg-type]
    return or_(*clauses)


async def transaction_feed(
    db: AsyncSession, search: str | None = None, limit: int = 20
) -> list[TransactionFeedItem]:
    """
    Newest SUCCESS donations for the public feed.

    search matches donor name or transaction reference (substring,
    case-insensitive) or the exact amount.
    """
    query = (
        select(Donations, Places.name, Districts.name, Batches.name)  # type: ignore[call-overload]
        .outerjoin(Places, Places.id == Donations.place_id)
        .outerjoin(Districts, Districts.id == Places.district_id)
        .outerjoin(Batches, Batches.id == Donations.batch_id)
        .where(_SUCCESS)
    )
    if search and search.strip():
        query = query.where(_search_filter(search.strip()))
    query = query.order_by(desc(Donations.created_at), desc(Donations.id)).limit(limit)

    feed = []
    for donation, place_name, district_name, batch_name in (await db.execute(query)).all():
        details = [n for n in (place_name, district_name, batch_name) if n]
        if not details:
            details = ["General Donation"]
        feed.append(
            TransactionFeedItem(
                id=donation.id,
                name=display_name(donation.name, donation.hide_name),
                amount=donation.amount,
                date=donation.created_at,
                details=details,
                transaction_id=donation.transaction_id,
            )
        )
    return feed


async def admin_dashboard(db: AsyncSession, now: datetime | None = None) -> AdminStatsResponse:
    """Figures for the console dashboard and reports."""
    now = now or datetime.now(UTC)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0, tzinfo=None)

    revenue, donation_count = (
        await db.execute(
            select(func.sum(Donations.amount), func.count(Donations.id)).where(_SUCCESS)  # type: ignore[arg-type]
        )
    ).one()
    monthly = (
        await db.execute(
            select(func.sum(Donations.amount)).where(  # type: ignore[arg-type]
                _SUCCESS, Donations.created_at >= month_start
            )
        )
    ).scalar()

    total_batches = (await db.execute(select(func.count(Batches.id)))).scalar_one()  # type: ignore[arg-type]
    active_batches = (
        await db.execute(
            select(func.count(Batches.id)).where(Batches.status == BatchStatus.ACTIVE)  # type: ignore[arg-type]
        )
    ).scalar_one()
    total_units = (await db.execute(select(func.count(Units.id)))).scalar_one()  # type: ignore[arg-type]

    recent = (
        await db.execute(
            select(Donations, Batches.name)  # type: ignore[call-overload]
            .outerjoin(Batches, Batches.id == Donations.batch_id)
            .order_by(desc(Donations.created_at), desc(Donations.id))
            .limit(5)
        )
    ).all()

    by_method = (
        await db.execute(
            select(Donations.payment_method, func.sum(Donations.amount))  # type: ignore[call-overload]
            .where(_SUCCESS)
            .group_by(Donations.payment_method)
        )
    ).all()

    donation_counts = (
        select(func.count(Donations.id))  # type: ignore[arg-type]
        .where(Donations.batch_id == Batches.id)
        .correlate(Batches)
        .scalar_subquery()
    )
    top_batches = (
        await db.execute(
            select(Batches.name, Batches.total_amount, donation_counts)  # type: ignore[call-overload]
            .order_by(desc(Batches.total_amount), Batches.name)
            .limit(5)
        )
    ).all()

    return AdminStatsResponse(
        metrics=AdminMetrics(
            total_revenue=to_money(revenue),
            total_donations=donation_count,
            total_batches=total_batches,
            active_batches=active_batches,
            total_units=total_units,
            monthly_revenue=to_money(monthly),
        ),
        recent_donations=[DonationResponse.from_model(d, name) for d, name in recent],
        payment_stats=[
            PaymentMethodTotal(payment_method=method, amount=to_money(total))
            for method, total in by_method
        ],
        top_batches=[
            BatchSummary(name=name, total_amount=to_money(total), donation_count=count)
            for name, total, count in top_batches
        ],
    )

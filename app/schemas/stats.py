"""Pydantic schemas for statistics, leaderboards and dashboards."""

from pydantic import BaseModel, Field

from app.models.donation import PaymentMethod
from app.schemas.base import Money, UTCDatetimeOptional
from app.schemas.donations import DonationResponse


class BatchTotal(BaseModel):
    """Collected amount for a batch."""

    id: int | None
    name: str
    amount: Money


class StatsResponse(BaseModel):
    """Public campaign totals."""

    total_amount: Money
    top_batches: list[BatchTotal]


class LeaderboardEntry(BaseModel):
    """A ranked leaderboard row."""

    rank: int
    name: str
    amount: Money
    id: int | None = None
    batch: str | None = Field(default=None, description="Batch name (individuals only)")


class AdminMetrics(BaseModel):
    total_revenue: Money
    total_donations: int
    total_batches: int
    active_batches: int
    total_units: int
    monthly_revenue: Money


class PaymentMethodTotal(BaseModel):
    payment_method: PaymentMethod
    amount: Money


class BatchSummary(BaseModel):
    name: str
    total_amount: Money
    donation_count: int


class AdminStatsResponse(BaseModel):
    """Console dashboard figures."""

    metrics: AdminMetrics
    recent_donations: list[DonationResponse]
    payment_stats: list[PaymentMethodTotal]
    top_batches: list[BatchSummary]


class CoordinatorBatch(BaseModel):
    id: int
    name: str
    slug: str | None
    year: int | None
    description: str | None
    total_collected: Money
    transaction_count: int


class CoordinatorUser(BaseModel):
    name: str
    username: str | None


class CoordinatorStatsResponse(BaseModel):
    """Dashboard figures for a coordinator's batch."""

    batch: CoordinatorBatch
    user: CoordinatorUser


class CoordinatorTransaction(BaseModel):
    id: int
    amount: Money
    name: str | None
    mobile: str | None
    transaction_id: str | None
    created_at: UTCDatetimeOptional = None


class CoordinatorLeaderboardEntry(BaseModel):
    rank: int
    name: str
    mobile: str | None
    amount: Money


class BatchSlugUpdate(BaseModel):
    """Request schema for changing a batch's public slug (null clears it)."""

    slug: str | None = Field(default=None, max_length=100, pattern=r"^[a-zA-Z0-9-]+$")


class BatchSlugResponse(BaseModel):
    success: bool = True
    id: int
    name: str
    slug: str | None

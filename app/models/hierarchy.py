"""
SQLModel-based organisational hierarchy models

This module defines the tables donations are attributed to:
- Sections: Top-level regions
- Districts: Regions within a section
- Places: Municipalities/panchayats within a district
- Units: Local units
- Batches: Alumni batches, carrying the denormalized collection total

Only Batches hold ledger state (total_amount). The rest are lookup tables
used for attribution and leaderboard grouping.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from app.config import BatchStatus

# ===== Sections / Districts / Places / Units =====


class Sections(SQLModel, table=True):
    """Database table for sections."""

    __tablename__ = "sections"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)


class Districts(SQLModel, table=True):
    """Database table for districts."""

    __tablename__ = "districts"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    section_id: int | None = Field(default=None, foreign_key="sections.id")


class Places(SQLModel, table=True):
    """Database table for places (municipalities and panchayats)."""

    __tablename__ = "places"

    __table_args__ = (Index("idx_places_district_id", "district_id"),)

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    district_id: int | None = Field(default=None, foreign_key="districts.id")


class Units(SQLModel, table=True):
    """Database table for units."""

    __tablename__ = "units"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)


# ===== Batches =====


class BatchBase(SQLModel):
    """
    Base model with shared public fields for Batches.

    These fields are safe to expose via the API.
    """

    name: str = Field(max_length=100)
    slug: str | None = Field(default=None, max_length=100)
    year: int | None = Field(default=None)
    description: str | None = Field(default=None, max_length=500)
    status: str = Field(default=BatchStatus.ACTIVE, max_length=20)


class Batches(BatchBase, table=True):
    """
    Database table for batches.

    total_amount is the running sum of SUCCESS donations referencing the
    batch. It is only written by app.services.ledger, never recomputed on
    read; scripts/reconcile_batch_totals.py repairs drift.
    """

    __tablename__ = "batches"

    __table_args__ = (
        Index("idx_batches_name", "name", unique=True),
        Index("idx_batches_slug", "slug", unique=True),
    )

    id: int | None = Field(default=None, primary_key=True)

    total_amount: Decimal = Field(
        default=Decimal("0"),
        max_digits=14,
        decimal_places=2,
        sa_column_kwargs={"server_default": text("0")},
    )

    created_at: datetime | None = Field(
        default=None, sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")}
    )

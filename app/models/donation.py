"""
SQLModel-based Donation model

DonationBase (donor-supplied fields)
    └─> Donations (database table, adds payment state and gateway references)

Gateway references are kept in two columns: external_order_id is issued
when the order (or QR code) is created and external_payment_id once a payment
is captured. Clients see a single derived transaction_id.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Index, func, text
from sqlmodel import Field, SQLModel


class PaymentMethod(str, Enum):
    """How a donation was paid"""

    UPI = "UPI"
    QR = "QR"
    RAZORPAY = "RAZORPAY"
    CASH = "CASH"


class PaymentStatus(str, Enum):
    """
    Donation payment state.

    Gateway-driven transitions only go PENDING -> SUCCESS or PENDING -> FAILED.
    """

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class DonationBase(SQLModel):
    """
    Base model with donor-supplied fields.

    These fields are safe to expose to console users.
    """

    amount: Decimal = Field(max_digits=12, decimal_places=2)
    name: str | None = Field(default=None, max_length=100)
    mobile: str | None = Field(default=None, max_length=20)
    hide_name: bool = Field(default=False)

    # Attribution
    batch_id: int | None = Field(default=None, foreign_key="batches.id")
    unit_id: int | None = Field(default=None, foreign_key="units.id")
    place_id: int | None = Field(default=None, foreign_key="places.id")
    district_id: int | None = Field(default=None, foreign_key="districts.id")
    section_id: int | None = Field(default=None, foreign_key="sections.id")


class Donations(DonationBase, table=True):
    """
    Database table for donations.

    Extends DonationBase with:
    - Payment method and status
    - Gateway order/payment references
    - The console user who collected the donation, if any
    """

    __tablename__ = "donations"

    __table_args__ = (
        Index("idx_donations_external_order_id", "external_order_id", unique=True),
        Index("idx_donations_external_payment_id", "external_payment_id", unique=True),
        Index("idx_donations_status_created", "payment_status", "created_at"),
        Index("idx_donations_batch_id", "batch_id"),
    )

    id: int | None = Field(default=None, primary_key=True)

    payment_method: PaymentMethod = Field(default=PaymentMethod.RAZORPAY)
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)

    external_order_id: str | None = Field(default=None, max_length=100)
    external_payment_id: str | None = Field(default=None, max_length=100)

    collected_by_id: int | None = Field(default=None, foreign_key="users.id")

    created_at: datetime | None = Field(
        default=None, sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")}
    )
    updated_at: datetime | None = Field(
        default=None,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP"), "onupdate": func.now()},
    )

    @property
    def transaction_id(self) -> str | None:
        """Payment id once captured, otherwise the gateway order id."""
        return self.external_payment_id or self.external_order_id

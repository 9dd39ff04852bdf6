"""Pydantic schemas for donation records."""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from app.config import settings
from app.models.donation import Donations, PaymentMethod, PaymentStatus
from app.schemas.base import Money, UTCDatetimeOptional


def _strip(v: str | None) -> str | None:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class DonationFields(BaseModel):
    """Donor-supplied fields shared by public and console donation forms."""

    amount: Decimal = Field(
        gt=0,
        le=settings.MAX_DONATION_AMOUNT,
        max_digits=12,
        decimal_places=2,
        description="Donation amount in rupees",
    )
    name: str | None = Field(default=None, max_length=100, description="Donor display name")
    mobile: str | None = Field(default=None, max_length=20, description="Donor mobile number")
    hide_name: bool = Field(default=False, description="Show as Anonymous in public feeds")
    batch_id: int | None = None
    unit_id: int | None = None
    place_id: int | None = None
    district_id: int | None = None
    section_id: int | None = None

    @field_validator("name", "mobile", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return _strip(v)


class DonationCreate(DonationFields):
    """Schema for a public donation started through the payment gateway."""


class AdminDonationCreate(DonationFields):
    """Schema for a donation recorded manually from the console (cash, UPI, ...)."""

    mobile: str = Field(max_length=20, min_length=1, description="Donor mobile number")
    payment_method: PaymentMethod
    transaction_id: str | None = Field(
        default=None, max_length=100, description="Reference of the manual payment, if any"
    )

    @field_validator("transaction_id", mode="before")
    @classmethod
    def strip_reference(cls, v: str | None) -> str | None:
        return _strip(v)


class AdminDonationUpdate(BaseModel):
    """
    Schema for editing a donation from the console.

    Only fields present in the request body are applied; an explicit null
    clears an attribution.
    """

    amount: Decimal | None = Field(
        default=None, gt=0, le=settings.MAX_DONATION_AMOUNT, max_digits=12, decimal_places=2
    )
    name: str | None = Field(default=None, max_length=100)
    mobile: str | None = Field(default=None, max_length=20)
    hide_name: bool | None = None
    payment_method: PaymentMethod | None = None
    payment_status: PaymentStatus | None = None
    transaction_id: str | None = Field(default=None, max_length=100)
    batch_id: int | None = None
    unit_id: int | None = None
    place_id: int | None = None
    district_id: int | None = None
    section_id: int | None = None

    @field_validator("name", "mobile", "transaction_id", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return _strip(v)

    @field_validator("amount", "hide_name", "payment_method", "payment_status")
    @classmethod
    def reject_null(cls, v: object) -> object:
        """These columns are NOT NULL; they can be left out but not cleared."""
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class DonationResponse(BaseModel):
    """Schema for a donation in console and payment API responses."""

    id: int
    amount: Money
    name: str | None
    mobile: str | None
    hide_name: bool
    batch_id: int | None
    unit_id: int | None
    place_id: int | None
    district_id: int | None
    section_id: int | None
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    transaction_id: str | None
    collected_by_id: int | None = None
    batch_name: str | None = None
    created_at: UTCDatetimeOptional = None
    updated_at: UTCDatetimeOptional = None

    @classmethod
    def from_model(cls, donation: Donations, batch_name: str | None = None) -> "DonationResponse":
        assert donation.id is not None
        return cls(
            id=donation.id,
            amount=donation.amount,
            name=donation.name,
            mobile=donation.mobile,
            hide_name=donation.hide_name,
            batch_id=donation.batch_id,
            unit_id=donation.unit_id,
            place_id=donation.place_id,
            district_id=donation.district_id,
            section_id=donation.section_id,
            payment_method=donation.payment_method,
            payment_status=donation.payment_status,
            transaction_id=donation.transaction_id,
            collected_by_id=donation.collected_by_id,
            batch_name=batch_name,
            created_at=donation.created_at,
            updated_at=donation.updated_at,
        )


class DonationListResponse(BaseModel):
    """Paginated donation list for the console."""

    total: int
    page: int
    per_page: int
    donations: list[DonationResponse]


class TransactionFeedItem(BaseModel):
    """A confirmed donation in the public transaction feed."""

    id: int
    name: str
    amount: Money
    date: UTCDatetimeOptional = None
    details: list[str]
    transaction_id: str | None

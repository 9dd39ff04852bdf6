"""Pydantic schemas for payment gateway endpoints."""

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

from app.models.donation import PaymentStatus
from app.schemas.donations import DonationResponse


class OrderResponse(BaseModel):
    """Gateway order created for a pending donation."""

    id: str = Field(description="Gateway order id")
    amount: int = Field(description="Amount in the smallest currency unit (paise)")
    currency: str
    receipt: str | None = None
    status: str | None = None
    key_id: str = Field(description="Public gateway key for the checkout widget")
    donation_id: int


class QRCodeResponse(BaseModel):
    """Single-use UPI QR code created for a pending donation."""

    qr_id: str
    donation_id: int
    amount: int
    qr_image_url: str | None = None
    qr_string: str | None = Field(
        default=None, description="Raw UPI intent, falling back to the image URL"
    )


class PaymentVerifyRequest(BaseModel):
    """
    Checkout callback fields.

    Accepts both plain names and the razorpay_-prefixed names the checkout
    widget posts.
    """

    order_id: str = Field(
        min_length=1, validation_alias=AliasChoices("order_id", "razorpay_order_id")
    )
    payment_id: str = Field(
        min_length=1, validation_alias=AliasChoices("payment_id", "razorpay_payment_id")
    )
    signature: str = Field(
        min_length=1, validation_alias=AliasChoices("signature", "razorpay_signature")
    )


class PaymentVerifyResponse(BaseModel):
    """Successful verification result."""

    status: Literal["success"] = "success"
    donation: DonationResponse


class PaymentFailureResponse(BaseModel):
    """Rejected verification result."""

    status: Literal["failure"] = "failure"
    message: str


class PaymentStatusResponse(BaseModel):
    """Current payment status of a donation."""

    status: PaymentStatus


class WebhookAck(BaseModel):
    """Acknowledgement returned to the gateway."""

    status: Literal["ok"] = "ok"

"""
Payment API endpoints.

Donation checkout against the Razorpay gateway:
- POST /payments/order    create a gateway order and a PENDING donation
- POST /payments/qr       create a PENDING donation and a single-use UPI QR code
- POST /payments/verify   verify the checkout callback and confirm the donation
- GET  /payments/status   poll a donation's payment status
- POST /payments/webhook  gateway-initiated confirmation/failure
"""

import asyncio
import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import WebhookEvent, settings
from app.core.auth import OptionalSession
from app.core.database import get_db
from app.core.logging import get_logger
from app.models.donation import Donations, PaymentMethod
from app.models.hierarchy import Batches
from app.schemas.donations import DonationCreate, DonationResponse
from app.schemas.payments import (
    OrderResponse,
    PaymentFailureResponse,
    PaymentStatusResponse,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
    QRCodeResponse,
    WebhookAck,
)
from app.services.ledger import (
    DonationNotFoundError,
    PaymentStateError,
    UnknownReferenceError,
    attach_order_id,
    confirm_payment,
    create_pending_donation,
    ensure_references_exist,
    mark_payment_failed,
    verify_payment_signature,
)
from app.services.razorpay import (
    GatewayError,
    RazorpayClient,
    get_payment_gateway,
    to_paise,
    verify_webhook_signature,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

Gateway = Annotated[RazorpayClient, Depends(get_payment_gateway)]


async def _check_references(db: AsyncSession, body: DonationCreate) -> None:
    try:
        await ensure_references_exist(db, body)
    except UnknownReferenceError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e


@router.post("/order", response_model=OrderResponse)
async def create_order(
    body: DonationCreate,
    gateway: Gateway,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderResponse:
    """
    Start a gateway checkout.

    Creates the gateway order first, then records a PENDING donation carrying
    the order id. The checkout widget needs the returned order id and key_id.
    """
    await _check_references(db, body)

    try:
        order = await gateway.create_order(body.amount)
    except GatewayError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating order",
        ) from e

    donation = await create_pending_donation(db, body, external_order_id=order["id"])
    assert donation.id is not None

    return OrderResponse(
        id=order["id"],
        amount=order.get("amount", to_paise(body.amount)),
        currency=order.get("currency", settings.CURRENCY),
        receipt=order.get("receipt"),
        status=order.get("status"),
        key_id=settings.RAZORPAY_KEY_ID,
        donation_id=donation.id,
    )


@router.post("/qr", response_model=QRCodeResponse)
async def create_qr_code(
    body: DonationCreate,
    gateway: Gateway,
    session: OptionalSession,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QRCodeResponse:
    """
    Start a UPI QR payment.

    The donation is created first so its id can travel in the QR code's notes;
    the capture webhook uses it to find the donation. A signed-in collector is
    recorded on the donation.
    """
    await _check_references(db, body)

    donation = await create_pending_donation(
        db,
        body,
        external_order_id=None,
        payment_method=PaymentMethod.QR,
        collected_by_id=session.user_id if session else None,
    )
    assert donation.id is not None

    try:
        qr = await gateway.create_upi_qr(
            body.amount,
            donation_id=donation.id,
            description=f"Donation by {body.name or 'Anonymous'}",
        )
    except GatewayError as e:
        await mark_payment_failed(db, donation_id=donation.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating QR code",
        ) from e

    await attach_order_id(db, donation, qr["id"])

    upi = (qr.get("payload") or {}).get("upi") or {}
    qr_string = upi.get("string") or qr.get("qr_string") or qr.get("image_url")

    return QRCodeResponse(
        qr_id=qr["id"],
        donation_id=donation.id,
        amount=qr.get("payment_amount", to_paise(body.amount)),
        qr_image_url=qr.get("image_url"),
        qr_string=qr_string,
    )


@router.post(
    "/verify",
    response_model=PaymentVerifyResponse,
    responses={400: {"model": PaymentFailureResponse}},
)
async def verify_payment(
    body: PaymentVerifyRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PaymentVerifyResponse | JSONResponse:
    """
    Verify a checkout callback and confirm the donation.

    The signature is HMAC-SHA256(key_secret, "order_id|payment_id") in hex.
    On a match the donation moves PENDING -> SUCCESS and its batch total grows
    by the donation amount, in one transaction. Repeating the call for a
    confirmed donation returns it unchanged.
    """
    if not verify_payment_signature(body.order_id, body.payment_id, body.signature):
        logger.warning("payment_signature_mismatch", order_id=body.order_id)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=PaymentFailureResponse(message="Invalid signature").model_dump(),
        )

    try:
        result = await asyncio.wait_for(
            confirm_payment(db, payment_id=body.payment_id, order_id=body.order_id),
            timeout=settings.STORE_TIMEOUT_SECONDS,
        )
    except DonationNotFoundError as e:
        # Gateway vouched for an order we never recorded
        logger.error(
            "payment_reconciliation_error",
            order_id=body.order_id,
            payment_id=body.payment_id,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment could not be matched to a donation",
        ) from e
    except PaymentStateError as e:
        logger.warning(
            "payment_verify_conflict",
            donation_id=e.donation_id,
            status=e.status.value,
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Donation is already {e.status.value}",
        ) from e
    except (asyncio.TimeoutError, OperationalError) as e:
        logger.error("payment_verify_store_unavailable", order_id=body.order_id, error=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment store temporarily unavailable, please retry",
        ) from e
    except SQLAlchemyError as e:
        logger.error("payment_verify_store_error", order_id=body.order_id, error=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment verification failed",
        ) from e

    donation = result.donation
    batch_name = None
    if donation.batch_id is not None:
        batch_name = (
            await db.execute(select(Batches.name).where(Batches.id == donation.batch_id))  # type: ignore[call-overload]
        ).scalar_one_or_none()

    return PaymentVerifyResponse(donation=DonationResponse.from_model(donation, batch_name))


@router.get("/status", response_model=PaymentStatusResponse)
async def get_payment_status(
    donation_id: Annotated[int, Query(alias="donationId", description="Donation ID")],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PaymentStatusResponse:
    """Current payment status of a donation, for clients waiting on a QR payment."""
    result = await db.execute(
        select(Donations.payment_status).where(Donations.id == donation_id)  # type: ignore[call-overload]
    )
    payment_status = result.scalar_one_or_none()

    if payment_status is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donation not found")

    return PaymentStatusResponse(status=payment_status)


def _note_donation_id(entity: dict[str, Any]) -> int | None:
    notes = entity.get("notes") or {}
    if not isinstance(notes, dict):
        return None
    try:
        return int(notes.get("donationId"))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


async def _confirm_from_webhook(
    db: AsyncSession, payment_id: str, order_id: str | None, donation_id: int | None
) -> None:
    if donation_id is not None:
        try:
            await confirm_payment(db, payment_id=payment_id, donation_id=donation_id)
            return
        except DonationNotFoundError:
            if not order_id:
                raise
    await confirm_payment(db, payment_id=payment_id, order_id=order_id)


async def _fail_from_webhook(
    db: AsyncSession, payment_id: str | None, order_id: str | None, donation_id: int | None
) -> None:
    if donation_id is not None:
        try:
            await mark_payment_failed(db, donation_id=donation_id, payment_id=payment_id)
            return
        except DonationNotFoundError:
            if not order_id:
                raise
    await mark_payment_failed(db, order_id=order_id, payment_id=payment_id)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    x_razorpay_signature: Annotated[str | None, Header()] = None,
) -> WebhookAck:
    """
    Handle gateway events.

    The raw body is authenticated with the webhook secret. Captured payments
    confirm the donation (found by notes.donationId, then by order id);
    failed payments mark it FAILED. Events for unknown donations are
    acknowledged so the gateway stops retrying.
    """
    if settings.RAZORPAY_WEBHOOK_SECRET is None:
        logger.error("webhook_secret_not_configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Configuration error",
        )

    if not x_razorpay_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")

    raw_body = await request.body()
    if not verify_webhook_signature(
        raw_body, x_razorpay_signature, settings.RAZORPAY_WEBHOOK_SECRET.get_secret_value()
    ):
        logger.warning("webhook_signature_mismatch")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    try:
        event = json.loads(raw_body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed payload") from e

    event_name = event.get("event")
    entity = ((event.get("payload") or {}).get("payment") or {}).get("entity") or {}
    payment_id = entity.get("id")
    order_id = entity.get("order_id")
    donation_id = _note_donation_id(entity)

    logger.info(
        "webhook_received",
        event_name=event_name,
        payment_id=payment_id,
        order_id=order_id,
        donation_id=donation_id,
    )

    if donation_id is None and not order_id:
        return WebhookAck()

    try:
        if event_name in WebhookEvent.CONFIRMING and payment_id:
            await _confirm_from_webhook(db, payment_id, order_id, donation_id)
        elif event_name == WebhookEvent.PAYMENT_FAILED:
            await _fail_from_webhook(db, payment_id, order_id, donation_id)
    except DonationNotFoundError:
        logger.warning("webhook_donation_not_found", order_id=order_id, donation_id=donation_id)
    except PaymentStateError as e:
        logger.warning("webhook_state_conflict", donation_id=e.donation_id, status=e.status.value)

    return WebhookAck()

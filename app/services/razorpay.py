"""Razorpay payment gateway client."""

import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx

from app.config import settings
from app.core.logging import get_logger
from app.services.ledger import compute_signature, signatures_match

logger = get_logger(__name__)


class GatewayError(Exception):
    """The payment gateway could not be reached or rejected the request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def to_paise(amount: Decimal) -> int:
    """Convert a rupee amount to the gateway's smallest currency unit."""
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def verify_webhook_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check the X-Razorpay-Signature header against the raw request body."""
    return signatures_match(compute_signature(body, secret), signature)


class RazorpayClient:
    """
    Thin async wrapper over the Razorpay REST API.

    Only the two calls the donation flow needs: orders and UPI QR codes.
    Every request is bounded by GATEWAY_TIMEOUT_SECONDS.
    """

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self._key_secret = key_secret or settings.RAZORPAY_KEY_SECRET.get_secret_value()
        self.base_url = (base_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.key_id, self._key_secret),
                timeout=self.timeout,
            ) as client:
                response = await client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.error("gateway_request_failed", path=path, error=type(e).__name__)
            raise GatewayError("Payment gateway unavailable") from e

        if response.is_error:
            # Gateway error bodies carry a code/description, never our credentials
            try:
                error = response.json().get("error", {})
            except ValueError:
                error = {}
            logger.error(
                "gateway_request_rejected",
                path=path,
                status_code=response.status_code,
                code=error.get("code"),
                description=error.get("description"),
            )
            raise GatewayError("Payment gateway rejected the request", response.status_code)

        data: dict[str, Any] = response.json()
        return data

    async def create_order(self, amount: Decimal, receipt: str | None = None) -> dict[str, Any]:
        """
        Create a gateway order for amount (in rupees).

        Returns the gateway's order object (id, amount in paise, currency, receipt, status).
        """
        payload = {
            "amount": to_paise(amount),
            "currency": settings.CURRENCY,
            "receipt": receipt or f"receipt_{int(time.time() * 1000)}",
        }
        order = await self._post("/orders", payload)
        logger.info("gateway_order_created", order_id=order.get("id"), amount=payload["amount"])
        return order

    async def create_upi_qr(
        self, amount: Decimal, donation_id: int, description: str
    ) -> dict[str, Any]:
        """
        Create a single-use, fixed-amount UPI QR code.

        The donation id travels in notes so the capture webhook can find the
        donation without an order id.
        """
        payload = {
            "type": "upi_qr",
            "name": settings.QR_DISPLAY_NAME,
            "usage": "single_use",
            "fixed_amount": True,
            "payment_amount": to_paise(amount),
            "description": description,
            "notes": {"donationId": str(donation_id)},
        }
        qr = await self._post("/payments/qr_codes", payload)
        logger.info("gateway_qr_created", qr_id=qr.get("id"), donation_id=donation_id)
        return qr


def get_payment_gateway() -> RazorpayClient:
    """Dependency for the payment gateway client."""
    return RazorpayClient()

"""
Test doubles and helpers shared by the test modules.

Imported by conftest.py after the test environment is set up.
"""

from decimal import Decimal
from typing import Any

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import create_session_token, get_password_hash
from app.models.donation import Donations, PaymentMethod, PaymentStatus
from app.models.user import UserRole, Users
from app.services.ledger import compute_payment_signature
from app.services.razorpay import GatewayError, to_paise

TEST_PASSWORD = "TestPassword123!"

# Golden vector: HMAC-SHA256("test_key_secret", "order_abc|pay_123")
GOLDEN_SIGNATURE = "aba246955ff7ef54d1583781e3ac8479326ddde95daf546a3c53793b286b4b82"


class FakeRedis:
    """Dict-backed stand-in for the handful of Redis commands the app uses."""

    def __init__(self) -> None:
        self.store: dict[str, Any] = {}
        self.expirations: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return self.store.get(key)

    async def incr(self, key: str) -> int:
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]

    async def expire(self, key: str, ttl: Any) -> bool:
        self.expirations[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            removed += self.store.pop(key, None) is not None
        return removed


class UnavailableRedis:
    """Redis client whose every command fails as if the server were down."""

    async def get(self, key: str) -> Any:
        raise redis.ConnectionError("connection refused")

    async def incr(self, key: str) -> int:
        raise redis.ConnectionError("connection refused")

    async def expire(self, key: str, ttl: Any) -> bool:
        raise redis.ConnectionError("connection refused")

    async def delete(self, *keys: str) -> int:
        raise redis.ConnectionError("connection refused")


class FakeGateway:
    """
    In-process payment gateway.

    Orders get ids from order_ids (order_abc first); set fail=True to make
    every call raise GatewayError.
    """

    def __init__(self) -> None:
        self.order_ids = ["order_abc", "order_def", "order_ghi"]
        self.fail = False
        self.orders: list[dict[str, Any]] = []
        self.qr_codes: list[dict[str, Any]] = []

    async def create_order(self, amount: Decimal, receipt: str | None = None) -> dict[str, Any]:
        if self.fail:
            raise GatewayError("Payment gateway unavailable")
        order = {
            "id": self.order_ids[len(self.orders)],
            "entity": "order",
            "amount": to_paise(amount),
            "currency": settings.CURRENCY,
            "receipt": receipt or "receipt_1700000000000",
            "status": "created",
        }
        self.orders.append(order)
        return order

    async def create_upi_qr(
        self, amount: Decimal, donation_id: int, description: str
    ) -> dict[str, Any]:
        if self.fail:
            raise GatewayError("Payment gateway unavailable")
        qr = {
            "id": f"qr_{len(self.qr_codes) + 1}",
            "entity": "qr_code",
            "payment_amount": to_paise(amount),
            "image_url": "https://rzp.io/i/qr-image",
            "payload": {"upi": {"string": "upi://pay?pa=jariya@upi&am=500.00"}},
            "notes": {"donationId": str(donation_id)},
            "description": description,
        }
        self.qr_codes.append(qr)
        return qr


async def make_user(
    db_session: AsyncSession,
    role: UserRole,
    email: str,
    batch_id: int | None = None,
    password: str = TEST_PASSWORD,
) -> Users:
    user = Users(
        name=f"{role.value.title()} User",
        username=email.split("@")[0],
        email=email,
        password=get_password_hash(password),
        role=role,
        batch_id=batch_id,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def session_cookie(user: Users) -> dict[str, str]:
    """Cookie jar entry for a signed-in user."""
    assert user.id is not None
    return {settings.AUTH_COOKIE_NAME: create_session_token(user.id, user.role)}


def verify_payload(order_id: str, payment_id: str, signature: str | None = None) -> dict[str, str]:
    """Checkout callback body, signed with the test key secret unless overridden."""
    return {
        "order_id": order_id,
        "payment_id": payment_id,
        "signature": signature or compute_payment_signature(order_id, payment_id),
    }


async def make_donation(
    db_session: AsyncSession,
    amount: str | Decimal,
    status: PaymentStatus = PaymentStatus.SUCCESS,
    method: PaymentMethod = PaymentMethod.RAZORPAY,
    **fields: Any,
) -> Donations:
    """
    Insert a donation directly, bypassing the ledger.

    Batch totals are not touched; tests that need them consistent go through
    the API or app.services.ledger.
    """
    donation = Donations(
        amount=Decimal(str(amount)),
        payment_status=status,
        payment_method=method,
        **fields,
    )
    db_session.add(donation)
    await db_session.commit()
    await db_session.refresh(donation)
    return donation


async def reload(db_session: AsyncSession, model: Any, pk: Any) -> Any:
    """Re-read a row, discarding state cached by the session's identity map."""
    return await db_session.get(model, pk, populate_existing=True)

"""
Tests for payment API endpoints.

These tests cover the /api/v1/payments endpoints including:
- Order creation (pending donation)
- Signature verification and exactly-once batch crediting
- Status polling
- UPI QR codes
- Gateway webhooks
"""

import asyncio
import json
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1 import payments as payments_api
from app.config import settings
from app.models.donation import Donations, PaymentMethod, PaymentStatus
from app.models.hierarchy import Batches
from app.services.ledger import compute_signature
from tests.helpers import GOLDEN_SIGNATURE, reload, session_cookie, verify_payload


async def donation_count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(Donations.id)))).scalar_one()


async def start_checkout(client: AsyncClient, batch_id: int | None, amount=500) -> dict:
    response = await client.post(
        "/api/v1/payments/order",
        json={"amount": amount, "name": "Asha", "mobile": "9999999999", "batch_id": batch_id},
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.api
class TestCreateOrder:
    """Tests for POST /api/v1/payments/order endpoint."""

    async def test_creates_order_and_pending_donation(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches, gateway
    ):
        order = await start_checkout(client, batch.id)

        assert order["id"] == "order_abc"
        assert order["amount"] == 50000
        assert order["currency"] == "INR"
        assert order["key_id"] == settings.RAZORPAY_KEY_ID
        assert gateway.orders[0]["amount"] == 50000

        donation = await reload(db_session, Donations, order["donation_id"])
        assert donation.payment_status == PaymentStatus.PENDING
        assert donation.payment_method == PaymentMethod.RAZORPAY
        assert donation.external_order_id == "order_abc"
        assert donation.amount == Decimal("500.00")
        assert donation.batch_id == batch.id

        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("0")

    async def test_gateway_failure_creates_nothing(
        self, client: AsyncClient, db_session: AsyncSession, gateway
    ):
        gateway.fail = True

        response = await client.post("/api/v1/payments/order", json={"amount": 500})

        assert response.status_code == 500
        assert response.json()["detail"] == "Error creating order"
        assert await donation_count(db_session) == 0

    @pytest.mark.parametrize("amount", [0, -5, 500.123, 100000001])
    async def test_rejects_bad_amounts(self, client: AsyncClient, amount, gateway):
        response = await client.post("/api/v1/payments/order", json={"amount": amount})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "amount"
        assert gateway.orders == []

    async def test_rejects_unknown_batch(self, client: AsyncClient, gateway):
        response = await client.post(
            "/api/v1/payments/order", json={"amount": 100, "batch_id": 999}
        )

        assert response.status_code == 400
        assert "batch_id" in response.json()["detail"]
        assert gateway.orders == []


@pytest.mark.api
class TestVerifyPayment:
    """Tests for POST /api/v1/payments/verify endpoint."""

    async def test_golden_checkout_credits_batch_once(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        """Order 500 -> verify order_abc/pay_123 -> SUCCESS and batch total 500."""
        order = await start_checkout(client, batch.id)

        response = await client.post(
            "/api/v1/payments/verify",
            json={"order_id": "order_abc", "payment_id": "pay_123", "signature": GOLDEN_SIGNATURE},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["donation"]["id"] == order["donation_id"]
        assert data["donation"]["payment_status"] == "SUCCESS"
        assert data["donation"]["transaction_id"] == "pay_123"
        assert data["donation"]["amount"] == 500.0
        assert data["donation"]["batch_name"] == batch.name

        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("500.00")

    async def test_duplicate_verification_is_idempotent(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        await start_checkout(client, batch.id)
        body = verify_payload("order_abc", "pay_123")

        first = await client.post("/api/v1/payments/verify", json=body)
        second = await client.post("/api/v1/payments/verify", json=body)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["donation"] == first.json()["donation"]

        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("500.00")

    async def test_prefixed_field_names_accepted(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        await start_checkout(client, batch.id)

        response = await client.post(
            "/api/v1/payments/verify",
            json={
                "razorpay_order_id": "order_abc",
                "razorpay_payment_id": "pay_123",
                "razorpay_signature": GOLDEN_SIGNATURE,
            },
        )

        assert response.status_code == 200

    async def test_tampered_signature_changes_nothing(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        order = await start_checkout(client, batch.id)
        tampered = GOLDEN_SIGNATURE[:-1] + ("0" if GOLDEN_SIGNATURE[-1] != "0" else "1")

        response = await client.post(
            "/api/v1/payments/verify",
            json={"order_id": "order_abc", "payment_id": "pay_123", "signature": tampered},
        )

        assert response.status_code == 400
        assert response.json() == {"status": "failure", "message": "Invalid signature"}

        donation = await reload(db_session, Donations, order["donation_id"])
        assert donation.payment_status == PaymentStatus.PENDING
        assert donation.external_payment_id is None
        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("0")

    @pytest.mark.parametrize(
        "body",
        [
            {"order_id": "order_abc", "payment_id": "pay_123", "signature": GOLDEN_SIGNATURE.upper()},
            {"order_id": "order_abc", "payment_id": "pay_124", "signature": GOLDEN_SIGNATURE},
            {"order_id": "order_abd", "payment_id": "pay_123", "signature": GOLDEN_SIGNATURE},
            {"order_id": "order_abc", "payment_id": "pay_123", "signature": GOLDEN_SIGNATURE + " "},
        ],
        ids=["uppercase", "payment_id_changed", "order_id_changed", "trailing_space"],
    )
    async def test_any_change_fails_verification(
        self, client: AsyncClient, batch: Batches, body
    ):
        await start_checkout(client, batch.id)

        response = await client.post("/api/v1/payments/verify", json=body)

        assert response.status_code == 400
        assert response.json()["status"] == "failure"

    async def test_valid_signature_for_unknown_order(self, client: AsyncClient):
        """A correctly signed callback for an order we never stored is a server-side error."""
        response = await client.post(
            "/api/v1/payments/verify", json=verify_payload("order_missing", "pay_1")
        )

        assert response.status_code == 500

    async def test_failed_donation_conflicts(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        order = await start_checkout(client, batch.id)
        donation = await reload(db_session, Donations, order["donation_id"])
        donation.payment_status = PaymentStatus.FAILED
        db_session.add(donation)
        await db_session.commit()

        response = await client.post(
            "/api/v1/payments/verify", json=verify_payload("order_abc", "pay_123")
        )

        assert response.status_code == 409
        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("0")

    async def test_missing_fields_are_validation_errors(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/payments/verify", json={"order_id": "order_abc", "signature": "x"}
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "payment_id"

    async def test_store_timeout_is_retryable(self, client: AsyncClient, monkeypatch):
        async def slow_confirm(*args, **kwargs):
            await asyncio.sleep(1)

        monkeypatch.setattr(payments_api, "confirm_payment", slow_confirm)
        monkeypatch.setattr(settings, "STORE_TIMEOUT_SECONDS", 0.01)

        response = await client.post(
            "/api/v1/payments/verify", json=verify_payload("order_abc", "pay_123")
        )

        assert response.status_code == 503

    async def test_store_connection_loss_is_retryable(self, client: AsyncClient, monkeypatch):
        async def broken_confirm(*args, **kwargs):
            raise OperationalError("UPDATE donations", {}, Exception("server has gone away"))

        monkeypatch.setattr(payments_api, "confirm_payment", broken_confirm)

        response = await client.post(
            "/api/v1/payments/verify", json=verify_payload("order_abc", "pay_123")
        )

        assert response.status_code == 503
        assert "gone away" not in response.text

    async def test_secret_never_echoed(self, client: AsyncClient, batch: Batches):
        await start_checkout(client, batch.id)

        ok = await client.post("/api/v1/payments/verify", json=verify_payload("order_abc", "p"))
        bad = await client.post(
            "/api/v1/payments/verify",
            json={"order_id": "order_abc", "payment_id": "p", "signature": "nope"},
        )

        secret = settings.RAZORPAY_KEY_SECRET.get_secret_value()
        assert secret not in ok.text
        assert secret not in bad.text


@pytest.mark.api
class TestPaymentStatus:
    """Tests for GET /api/v1/payments/status endpoint."""

    async def test_reports_status(self, client: AsyncClient, batch: Batches):
        order = await start_checkout(client, batch.id)

        response = await client.get(
            "/api/v1/payments/status", params={"donationId": order["donation_id"]}
        )

        assert response.status_code == 200
        assert response.json() == {"status": "PENDING"}

    async def test_follows_confirmation(self, client: AsyncClient, batch: Batches):
        order = await start_checkout(client, batch.id)
        await client.post("/api/v1/payments/verify", json=verify_payload("order_abc", "pay_123"))

        response = await client.get(
            "/api/v1/payments/status", params={"donationId": order["donation_id"]}
        )

        assert response.json() == {"status": "SUCCESS"}

    async def test_unknown_donation(self, client: AsyncClient):
        response = await client.get("/api/v1/payments/status", params={"donationId": 424242})

        assert response.status_code == 404

    @pytest.mark.parametrize("params", [{}, {"donationId": "abc"}])
    async def test_missing_or_malformed_id(self, client: AsyncClient, params):
        response = await client.get("/api/v1/payments/status", params=params)

        assert response.status_code == 400


@pytest.mark.api
class TestQRCode:
    """Tests for POST /api/v1/payments/qr endpoint."""

    async def test_creates_pending_qr_donation(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches, gateway
    ):
        response = await client.post(
            "/api/v1/payments/qr", json={"amount": 250, "name": "Ravi", "batch_id": batch.id}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["qr_id"] == "qr_1"
        assert data["amount"] == 25000
        assert data["qr_string"].startswith("upi://pay")
        assert gateway.qr_codes[0]["notes"] == {"donationId": str(data["donation_id"])}

        donation = await reload(db_session, Donations, data["donation_id"])
        assert donation.payment_method == PaymentMethod.QR
        assert donation.payment_status == PaymentStatus.PENDING
        assert donation.external_order_id == "qr_1"
        assert donation.collected_by_id is None

    async def test_records_collector_when_signed_in(
        self, client: AsyncClient, db_session: AsyncSession, coordinator_user
    ):
        client.cookies.update(session_cookie(coordinator_user))

        response = await client.post("/api/v1/payments/qr", json={"amount": 100})

        donation = await reload(db_session, Donations, response.json()["donation_id"])
        assert donation.collected_by_id == coordinator_user.id

    async def test_gateway_failure_marks_donation_failed(
        self, client: AsyncClient, db_session: AsyncSession, gateway
    ):
        gateway.fail = True

        response = await client.post("/api/v1/payments/qr", json={"amount": 100})

        assert response.status_code == 500
        donations = (await db_session.execute(select(Donations))).scalars().all()
        assert [d.payment_status for d in donations] == [PaymentStatus.FAILED]


def webhook_headers(body: bytes, secret: str = "whsec") -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Razorpay-Signature": compute_signature(body, secret),
    }


def payment_event(event: str, payment_id: str, order_id=None, donation_id=None) -> bytes:
    entity = {"id": payment_id, "order_id": order_id, "notes": {}}
    if donation_id is not None:
        entity["notes"] = {"donationId": str(donation_id)}
    return json.dumps({"event": event, "payload": {"payment": {"entity": entity}}}).encode()


@pytest.mark.api
class TestWebhook:
    """Tests for POST /api/v1/payments/webhook endpoint."""

    async def test_golden_signature_acknowledged(self, client: AsyncClient):
        body = b'{"event":"payment.captured"}'

        response = await client.post(
            "/api/v1/payments/webhook",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Razorpay-Signature": (
                    "4673dd707ef4c41b987cb7fefe1583142dc702388c93145b7814b9ad3d3c183e"
                ),
            },
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_missing_signature(self, client: AsyncClient):
        response = await client.post("/api/v1/payments/webhook", content=b"{}")

        assert response.status_code == 400

    async def test_invalid_signature(self, client: AsyncClient):
        body = payment_event("payment.captured", "pay_1", order_id="order_abc")

        response = await client.post(
            "/api/v1/payments/webhook", content=body, headers=webhook_headers(body, "wrong")
        )

        assert response.status_code == 400

    async def test_unconfigured_secret(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", None)
        body = payment_event("payment.captured", "pay_1", order_id="order_abc")

        response = await client.post(
            "/api/v1/payments/webhook", content=body, headers=webhook_headers(body)
        )

        assert response.status_code == 500

    async def test_capture_by_order_id(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        order = await start_checkout(client, batch.id)
        body = payment_event("payment.captured", "pay_123", order_id="order_abc")

        response = await client.post(
            "/api/v1/payments/webhook", content=body, headers=webhook_headers(body)
        )

        assert response.json() == {"status": "ok"}
        donation = await reload(db_session, Donations, order["donation_id"])
        assert donation.payment_status == PaymentStatus.SUCCESS
        assert donation.external_payment_id == "pay_123"
        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("500.00")

    async def test_qr_capture_by_donation_id_is_idempotent(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        qr = (
            await client.post("/api/v1/payments/qr", json={"amount": 300, "batch_id": batch.id})
        ).json()
        body = payment_event("payment.captured", "pay_qr", donation_id=qr["donation_id"])

        for _ in range(2):
            response = await client.post(
                "/api/v1/payments/webhook", content=body, headers=webhook_headers(body)
            )
            assert response.status_code == 200

        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("300.00")

    async def test_webhook_then_verify_credits_once(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        await start_checkout(client, batch.id)
        body = payment_event("order.paid", "pay_123", order_id="order_abc")
        await client.post("/api/v1/payments/webhook", content=body, headers=webhook_headers(body))

        response = await client.post(
            "/api/v1/payments/verify", json=verify_payload("order_abc", "pay_123")
        )

        assert response.status_code == 200
        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("500.00")

    async def test_payment_failed(
        self, client: AsyncClient, db_session: AsyncSession, batch: Batches
    ):
        order = await start_checkout(client, batch.id)
        body = payment_event("payment.failed", "pay_9", order_id="order_abc")

        response = await client.post(
            "/api/v1/payments/webhook", content=body, headers=webhook_headers(body)
        )

        assert response.status_code == 200
        donation = await reload(db_session, Donations, order["donation_id"])
        assert donation.payment_status == PaymentStatus.FAILED
        refreshed = await reload(db_session, Batches, batch.id)
        assert refreshed.total_amount == Decimal("0")

    async def test_unknown_donation_acknowledged(self, client: AsyncClient):
        body = payment_event("payment.captured", "pay_1", order_id="order_nope", donation_id=999)

        response = await client.post(
            "/api/v1/payments/webhook", content=body, headers=webhook_headers(body)
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

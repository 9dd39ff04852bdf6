"""
Donation ledger service.

Owns every write that touches Batches.total_amount so the batch total stays
equal to the sum of SUCCESS donations referencing it:

- Gateway signature verification (HMAC-SHA256 over "order_id|payment_id")
- PENDING -> SUCCESS confirmation with the batch increment in one transaction
- PENDING -> FAILED transition
- Manual (console) donations, edits and deletions, which revert the old
  contribution and apply the new one
- Reconciliation of stored totals against the donations table

Status transitions are conditional UPDATEs guarded by payment_status = PENDING.
The batch total is only touched when that UPDATE changed a row, so a
duplicate callback or webhook retry cannot apply the same donation twice.
"""

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.config import settings
from app.core.logging import get_logger
from app.models.donation import Donations, PaymentMethod, PaymentStatus
from app.models.hierarchy import Batches, Districts, Places, Sections, Units
from app.schemas.donations import AdminDonationCreate, AdminDonationUpdate, DonationFields

logger = get_logger(__name__)

CENT = Decimal("0.01")


class LedgerError(Exception):
    """Base class for ledger failures."""


class DonationNotFoundError(LedgerError):
    """No donation matches the given id or gateway order id."""


class PaymentStateError(LedgerError):
    """The donation is in a terminal state that forbids the transition."""

    def __init__(self, donation_id: int | None, status: PaymentStatus) -> None:
        super().__init__(f"Donation {donation_id} is already {status.value}")
        self.donation_id = donation_id
        self.status = status


class UnknownReferenceError(LedgerError):
    """A donation references a batch/unit/place/district/section that does not exist."""

    def __init__(self, field: str, value: int) -> None:
        super().__init__(f"Unknown {field}: {value}")
        self.field = field
        self.value = value


@dataclass
class LedgerResult:
    """Outcome of a status transition."""

    donation: Donations
    # False when the call was a no-op because the transition had already happened
    applied: bool


# ===== Signatures =====


def compute_signature(message: str | bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of message under secret."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, supplied: str) -> bool:
    """Exact, case-sensitive comparison in constant time."""
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def compute_payment_signature(order_id: str, payment_id: str, secret: str | None = None) -> str:
    """
    Signature the gateway attaches to a checkout callback.

    Args:
        order_id: Gateway order id
        payment_id: Gateway payment id
        secret: Shared key secret (defaults to RAZORPAY_KEY_SECRET)
    """
    if secret is None:
        secret = settings.RAZORPAY_KEY_SECRET.get_secret_value()
    return compute_signature(f"{order_id}|{payment_id}", secret)


def verify_payment_signature(
    order_id: str, payment_id: str, signature: str, secret: str | None = None
) -> bool:
    """
    Check a checkout callback signature.

    Any change to order_id, payment_id or signature, including case or
    surrounding whitespace, fails verification.
    """
    return signatures_match(compute_payment_signature(order_id, payment_id, secret), signature)


# ===== Helpers =====


async def _adjust_batch_total(db: AsyncSession, batch_id: int | None, delta: Decimal) -> None:
    """Add delta to a batch total in the current transaction."""
    if batch_id is None or delta == 0:
        return
    await db.execute(
        update(Batches)
        .where(Batches.id == batch_id)  # type: ignore[arg-type]
        .values(total_amount=Batches.total_amount + delta)
        .execution_options(synchronize_session=False)
    )


async def _load_donation(
    db: AsyncSession, criterion: ColumnElement[bool], for_update: bool = False
) -> Donations | None:
    query = select(Donations).where(criterion).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


def _donation_criterion(order_id: str | None, donation_id: int | None) -> ColumnElement[bool]:
    if donation_id is not None:
        return Donations.id == donation_id  # type: ignore[return-value]
    if order_id:
        return Donations.external_order_id == order_id  # type: ignore[return-value]
    raise ValueError("order_id or donation_id is required")


async def _transition_from_pending(
    db: AsyncSession,
    criterion: ColumnElement[bool],
    target: PaymentStatus,
    **values: Any,
) -> tuple[Donations, bool]:
    """
    Move a PENDING donation to target.

    Returns the refreshed donation and whether this call performed the move.
    Raises DonationNotFoundError when nothing matches criterion.
    """
    result = await db.execute(
        update(Donations)
        .where(criterion, Donations.payment_status == PaymentStatus.PENDING)  # type: ignore[arg-type]
        .values(payment_status=target, **values)
        .execution_options(synchronize_session=False)
    )
    donation = await _load_donation(db, criterion)
    if donation is None:
        raise DonationNotFoundError("No donation matches the payment reference")
    return donation, result.rowcount == 1  # type: ignore[attr-defined]


async def ensure_references_exist(db: AsyncSession, fields: DonationFields | dict[str, Any]) -> None:
    """
    Raise UnknownReferenceError for attribution ids that do not exist.

    Accepts a donation form or a dict of changed fields.
    """
    values = fields if isinstance(fields, dict) else fields.model_dump()
    lookups = (
        ("batch_id", Batches),
        ("unit_id", Units),
        ("place_id", Places),
        ("district_id", Districts),
        ("section_id", Sections),
    )
    for field, model in lookups:
        value = values.get(field)
        if value is None:
            continue
        found = await db.execute(select(model.id).where(model.id == value))  # type: ignore[attr-defined]
        if found.scalar_one_or_none() is None:
            raise UnknownReferenceError(field, value)


# ===== Gateway-driven transitions =====


async def create_pending_donation(
    db: AsyncSession,
    fields: DonationFields,
    external_order_id: str | None,
    payment_method: PaymentMethod = PaymentMethod.RAZORPAY,
    collected_by_id: int | None = None,
) -> Donations:
    """
    Persist a PENDING donation tied to a gateway order id.

    The order id may be None when the gateway reference is only known after
    the donation id exists (QR codes); attach it with attach_order_id().
    """
    donation = Donations(
        **fields.model_dump(),
        payment_method=payment_method,
        payment_status=PaymentStatus.PENDING,
        external_order_id=external_order_id,
        collected_by_id=collected_by_id,
    )
    db.add(donation)
    await db.commit()
    await db.refresh(donation)
    logger.info(
        "donation_pending_created",
        donation_id=donation.id,
        order_id=external_order_id,
        amount=str(donation.amount),
    )
    return donation


async def attach_order_id(db: AsyncSession, donation: Donations, external_order_id: str) -> None:
    """Record the gateway reference issued for an existing pending donation."""
    donation.external_order_id = external_order_id
    db.add(donation)
    await db.commit()


async def confirm_payment(
    db: AsyncSession,
    payment_id: str,
    order_id: str | None = None,
    donation_id: int | None = None,
) -> LedgerResult:
    """
    Confirm a captured payment and credit the donation's batch.

    The donation is located by donation_id when given, otherwise by its
    gateway order id. The status change and the batch increment are committed
    together; repeated calls for an already confirmed donation are no-ops.

    Raises:
        DonationNotFoundError: nothing matches the reference
        PaymentStateError: the donation has already FAILED
    """
    criterion = _donation_criterion(order_id, donation_id)
    try:
        donation, applied = await _transition_from_pending(
            db, criterion, PaymentStatus.SUCCESS, external_payment_id=payment_id
        )
        if applied:
            await _adjust_batch_total(db, donation.batch_id, donation.amount)
        elif donation.payment_status != PaymentStatus.SUCCESS:
            raise PaymentStateError(donation.id, donation.payment_status)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if applied:
        logger.info(
            "donation_confirmed",
            donation_id=donation.id,
            batch_id=donation.batch_id,
            amount=str(donation.amount),
        )
    else:
        logger.info("donation_confirm_duplicate", donation_id=donation.id)
    return LedgerResult(donation=donation, applied=applied)


async def mark_payment_failed(
    db: AsyncSession,
    order_id: str | None = None,
    donation_id: int | None = None,
    payment_id: str | None = None,
) -> LedgerResult:
    """
    Move a PENDING donation to FAILED. No batch change.

    A donation that already left PENDING is returned untouched.
    """
    criterion = _donation_criterion(order_id, donation_id)
    values: dict[str, Any] = {}
    if payment_id:
        values["external_payment_id"] = payment_id
    try:
        donation, applied = await _transition_from_pending(
            db, criterion, PaymentStatus.FAILED, **values
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("donation_failed", donation_id=donation.id, applied=applied)
    return LedgerResult(donation=donation, applied=applied)


# ===== Console-driven changes =====


def _manual_reference() -> str:
    return f"ADMIN-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


async def record_manual_donation(
    db: AsyncSession,
    body: AdminDonationCreate,
    collected_by_id: int | None = None,
) -> Donations:
    """
    Record a donation collected outside the gateway as SUCCESS and credit its batch.
    """
    fields = body.model_dump(exclude={"payment_method", "transaction_id"})
    donation = Donations(
        **fields,
        payment_method=body.payment_method,
        payment_status=PaymentStatus.SUCCESS,
        external_payment_id=body.transaction_id or _manual_reference(),
        collected_by_id=collected_by_id,
    )
    try:
        db.add(donation)
        await db.flush()
        await _adjust_batch_total(db, donation.batch_id, donation.amount)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(donation)

    logger.info(
        "donation_recorded_manually",
        donation_id=donation.id,
        batch_id=donation.batch_id,
        collected_by_id=collected_by_id,
    )
    return donation


def _contribution(donation: Donations) -> tuple[int | None, Decimal]:
    """(batch_id, amount) this donation currently adds to a batch total."""
    if donation.payment_status == PaymentStatus.SUCCESS and donation.batch_id is not None:
        return donation.batch_id, donation.amount
    return None, Decimal("0")


async def update_donation(
    db: AsyncSession, donation_id: int, body: AdminDonationUpdate
) -> Donations:
    """
    Apply a console edit and move the donation's contribution accordingly.

    The old contribution (if SUCCESS with a batch) is reverted and the new one
    applied in the same transaction, covering status, amount and batch changes.
    """
    changes = body.model_dump(exclude_unset=True)
    try:
        donation = await _load_donation(db, Donations.id == donation_id, for_update=True)  # type: ignore[arg-type]
        if donation is None:
            raise DonationNotFoundError(f"Donation {donation_id} not found")

        old_batch_id, old_amount = _contribution(donation)

        if "transaction_id" in changes:
            donation.external_payment_id = changes.pop("transaction_id")
        for key, value in changes.items():
            setattr(donation, key, value)

        new_batch_id, new_amount = _contribution(donation)

        db.add(donation)
        await db.flush()
        await _adjust_batch_total(db, old_batch_id, -old_amount)
        await _adjust_batch_total(db, new_batch_id, new_amount)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(donation)

    logger.info(
        "donation_updated",
        donation_id=donation_id,
        fields=sorted(body.model_fields_set),
        old_batch_id=old_batch_id,
        new_batch_id=new_batch_id,
    )
    return donation


async def delete_donation(db: AsyncSession, donation_id: int) -> None:
    """Delete a donation, reverting its contribution to the batch total."""
    try:
        donation = await _load_donation(db, Donations.id == donation_id, for_update=True)  # type: ignore[arg-type]
        if donation is None:
            raise DonationNotFoundError(f"Donation {donation_id} not found")
        batch_id, amount = _contribution(donation)
        await _adjust_batch_total(db, batch_id, -amount)
        await db.delete(donation)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("donation_deleted", donation_id=donation_id, batch_id=batch_id)


# ===== Reconciliation =====


@dataclass
class BatchDrift:
    batch_id: int
    name: str
    stored: Decimal
    actual: Decimal


def _success_total() -> Any:
    """Correlated SUM of a batch's SUCCESS donations, evaluated per Batches row."""
    return (
        select(func.coalesce(func.sum(Donations.amount), 0))
        .where(
            Donations.batch_id == Batches.id,  # type: ignore[arg-type]
            Donations.payment_status == PaymentStatus.SUCCESS,  # type: ignore[arg-type]
        )
        .correlate(Batches)
        .scalar_subquery()
    )


async def find_batch_drift(db: AsyncSession) -> list[BatchDrift]:
    """Batches whose stored total differs from the sum of their SUCCESS donations."""
    result = await db.execute(
        select(Batches.id, Batches.name, Batches.total_amount, _success_total()).order_by(Batches.id)  # type: ignore[arg-type]
    )
    drift = []
    for batch_id, name, stored, actual in result.all():
        stored = Decimal(str(stored or 0)).quantize(CENT)
        actual = Decimal(str(actual or 0)).quantize(CENT)
        if stored != actual:
            drift.append(BatchDrift(batch_id=batch_id, name=name, stored=stored, actual=actual))
    return drift


async def reconcile_batch_totals(db: AsyncSession, apply: bool = False) -> list[BatchDrift]:
    """
    Report (and optionally repair) batch totals that drifted from the donations table.

    The repair recomputes the sum inside the UPDATE itself, so a confirmation
    committed after the report is included rather than overwritten.
    """
    drift = await find_batch_drift(db)
    for item in drift:
        logger.warning(
            "batch_total_drift",
            batch_id=item.batch_id,
            stored=str(item.stored),
            actual=str(item.actual),
        )
    if apply and drift:
        try:
            await db.execute(
                update(Batches)
                .where(Batches.id.in_([item.batch_id for item in drift]))  # type: ignore[union-attr]
                .values(total_amount=_success_total())
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("batch_totals_repaired", batch_ids=[item.batch_id for item in drift])
    return drift

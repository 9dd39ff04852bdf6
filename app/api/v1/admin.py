"""
Admin API endpoints.

Console management of donations, restricted to SUPERADMIN and STAFF:
- List/filter donations
- Record manual (cash, UPI) donations
- Edit and delete donations, keeping batch totals consistent
- Coordinator accounts
- Dashboard statistics
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import PaginationParams
from app.core.auth import AdminUser
from app.core.database import get_db
from app.core.logging import get_logger
from app.models.donation import Donations, PaymentStatus
from app.models.hierarchy import Batches
from app.models.user import UserRole, Users
from app.schemas.auth import MessageResponse
from app.schemas.donations import (
    AdminDonationCreate,
    AdminDonationUpdate,
    DonationListResponse,
    DonationResponse,
)
from app.schemas.stats import AdminStatsResponse
from app.schemas.user import CoordinatorCreate, CoordinatorResponse, CoordinatorUpdate
from app.services import accounts
from app.services import stats as stats_service
from app.services.ledger import (
    DonationNotFoundError,
    UnknownReferenceError,
    delete_donation,
    ensure_references_exist,
    record_manual_donation,
    update_donation,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _not_found(donation_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Donation {donation_id} not found",
    )


def _bad_reference(e: UnknownReferenceError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _reference_in_use() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Transaction reference already in use",
    )


async def _batch_name(db: AsyncSession, batch_id: int | None) -> str | None:
    if batch_id is None:
        return None
    result = await db.execute(select(Batches.name).where(Batches.id == batch_id))  # type: ignore[call-overload]
    return result.scalar_one_or_none()


# ===== Donations =====


@router.get("/donations", response_model=DonationListResponse)
async def list_donations(
    _: AdminUser,
    pagination: Annotated[PaginationParams, Depends()],
    db: Annotated[AsyncSession, Depends(get_db)],
    batch_id: Annotated[int | None, Query(description="Filter by batch")] = None,
    unit_id: Annotated[int | None, Query(description="Filter by unit")] = None,
    payment_status: Annotated[
        PaymentStatus | None,
        Query(alias="status", description="Filter by payment status (default SUCCESS)"),
    ] = None,
    search: Annotated[
        str | None, Query(max_length=100, description="Donor name, mobile or transaction id")
    ] = None,
) -> DonationListResponse:
    """
    List donations, newest first.

    Without a status filter only SUCCESS donations are listed.
    """
    query = select(Donations, Batches.name).outerjoin(  # type: ignore[call-overload]
        Batches, Batches.id == Donations.batch_id
    )
    query = query.where(Donations.payment_status == (payment_status or PaymentStatus.SUCCESS))
    if batch_id is not None:
        query = query.where(Donations.batch_id == batch_id)
    if unit_id is not None:
        query = query.where(Donations.unit_id == unit_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            Donations.name.ilike(pattern)  # type: ignore[union-attr]
            | Donations.mobile.ilike(pattern)  # type: ignore[union-attr]
            | Donations.external_payment_id.ilike(pattern)  # type: ignore[union-attr]
            | Donations.external_order_id.ilike(pattern)  # type: ignore[union-attr]
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    query = (
        query.order_by(desc(Donations.created_at), desc(Donations.id))
        .offset(pagination.offset)
        .limit(pagination.per_page)
    )
    rows = (await db.execute(query)).all()

    return DonationListResponse(
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        donations=[DonationResponse.from_model(donation, name) for donation, name in rows],
    )


@router.post(
    "/donations", response_model=DonationResponse, status_code=status.HTTP_201_CREATED
)
async def create_donation(
    body: AdminDonationCreate,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DonationResponse:
    """
    Record a donation collected outside the gateway.

    The donation is stored as SUCCESS and its batch total is credited in the
    same transaction.
    """
    try:
        await ensure_references_exist(db, body)
    except UnknownReferenceError as e:
        raise _bad_reference(e) from e

    admin_id = current_user.id
    try:
        donation = await record_manual_donation(db, body, collected_by_id=admin_id)
    except IntegrityError as e:
        logger.info("admin_donation_reference_conflict", admin_id=admin_id)
        raise _reference_in_use() from e
    return DonationResponse.from_model(donation, await _batch_name(db, donation.batch_id))


@router.put("/donations/{donation_id}", response_model=DonationResponse)
async def edit_donation(
    donation_id: Annotated[int, Path(description="Donation ID")],
    body: AdminDonationUpdate,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DonationResponse:
    """
    Edit a donation.

    Amount, batch and status changes move the donation's contribution between
    batch totals: the old contribution is reverted and the new one applied.
    """
    admin_id = current_user.id
    try:
        await ensure_references_exist(db, body.model_dump(exclude_unset=True))
        donation = await update_donation(db, donation_id, body)
    except UnknownReferenceError as e:
        raise _bad_reference(e) from e
    except DonationNotFoundError as e:
        raise _not_found(donation_id) from e
    except IntegrityError as e:
        logger.info(
            "admin_donation_reference_conflict", donation_id=donation_id, admin_id=admin_id
        )
        raise _reference_in_use() from e

    logger.info("admin_donation_edited", donation_id=donation_id, admin_id=admin_id)
    return DonationResponse.from_model(donation, await _batch_name(db, donation.batch_id))


@router.delete("/donations/{donation_id}", response_model=MessageResponse)
async def remove_donation(
    donation_id: Annotated[int, Path(description="Donation ID")],
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """Delete a donation, reverting its contribution if it was SUCCESS."""
    try:
        await delete_donation(db, donation_id)
    except DonationNotFoundError as e:
        raise _not_found(donation_id) from e

    logger.info("admin_donation_deleted", donation_id=donation_id, admin_id=current_user.id)
    return MessageResponse(message="Donation deleted")


# ===== Coordinators =====


def _coordinator_not_found(user_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Coordinator {user_id} not found",
    )


def _account_conflict(e: accounts.AccountConflictError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


async def _ensure_batch(db: AsyncSession, batch_id: int) -> str:
    name = await _batch_name(db, batch_id)
    if name is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown batch_id: {batch_id}"
        )
    return name


@router.get("/coordinators", response_model=list[CoordinatorResponse])
async def list_coordinators(
    _: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[CoordinatorResponse]:
    """List coordinator accounts with their batch, newest first."""
    query = (
        select(Users, Batches.name)  # type: ignore[call-overload]
        .outerjoin(Batches, Batches.id == Users.batch_id)
        .where(Users.role == UserRole.COORDINATOR)
        .order_by(desc(Users.created_at), desc(Users.id))
    )
    rows = (await db.execute(query)).all()
    return [CoordinatorResponse.from_model(user, name) for user, name in rows]


@router.post(
    "/coordinators", response_model=CoordinatorResponse, status_code=status.HTTP_201_CREATED
)
async def create_coordinator(
    body: CoordinatorCreate,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CoordinatorResponse:
    """
    Create a coordinator account bound to a batch.

    The coordinator can sign in right away with the given password.
    """
    batch_name = await _ensure_batch(db, body.batch_id)
    try:
        user = await accounts.create_coordinator(
            db,
            name=body.name,
            email=body.email,
            username=body.username,
            password=body.password,
            batch_id=body.batch_id,
        )
    except accounts.AccountConflictError as e:
        raise _account_conflict(e) from e

    logger.info("admin_coordinator_created", user_id=user.id, admin_id=current_user.id)
    return CoordinatorResponse.from_model(user, batch_name)


@router.put("/coordinators/{user_id}", response_model=CoordinatorResponse)
async def edit_coordinator(
    user_id: Annotated[int, Path(description="Coordinator user ID")],
    body: CoordinatorUpdate,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CoordinatorResponse:
    """Edit a coordinator. A new password is re-hashed; omitted fields are kept."""
    user = await accounts.get_coordinator(db, user_id)
    if user is None:
        raise _coordinator_not_found(user_id)

    changes = body.model_dump(exclude_unset=True)
    if "batch_id" in changes:
        await _ensure_batch(db, changes["batch_id"])
    try:
        user = await accounts.apply_account_changes(db, user, changes)
    except accounts.AccountConflictError as e:
        raise _account_conflict(e) from e

    logger.info(
        "admin_coordinator_edited",
        user_id=user_id,
        admin_id=current_user.id,
        fields=sorted(body.model_fields_set),
    )
    return CoordinatorResponse.from_model(user, await _batch_name(db, user.batch_id))


@router.delete("/coordinators/{user_id}", response_model=MessageResponse)
async def remove_coordinator(
    user_id: Annotated[int, Path(description="Coordinator user ID")],
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """Delete a coordinator account. Donations they collected are kept."""
    user = await accounts.get_coordinator(db, user_id)
    if user is None:
        raise _coordinator_not_found(user_id)

    await accounts.delete_coordinator(db, user)

    logger.info("admin_coordinator_deleted", user_id=user_id, admin_id=current_user.id)
    return MessageResponse(message="Coordinator deleted")


# ===== Dashboard =====


@router.get("/stats", response_model=AdminStatsResponse)
async def get_admin_stats(
    _: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AdminStatsResponse:
    """Revenue, counts, per-method totals, top batches and recent donations."""
    return await stats_service.admin_dashboard(db)

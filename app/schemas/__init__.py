"""
Pydantic schemas for API responses and requests
"""
from app.models.hierarchy import BatchBase  # Re-export from models
from app.schemas.auth import LoginRequest, LoginResponse, MessageResponse, SessionStatusResponse
from app.schemas.donations import (
    AdminDonationCreate,
    AdminDonationUpdate,
    DonationCreate,
    DonationListResponse,
    DonationResponse,
    TransactionFeedItem,
)
from app.schemas.payments import (
    OrderResponse,
    PaymentStatusResponse,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
    QRCodeResponse,
)
from app.schemas.stats import LeaderboardEntry, StatsResponse
from app.schemas.user import (
    CoordinatorCreate,
    CoordinatorResponse,
    CoordinatorUpdate,
    ProfileResponse,
    ProfileUpdate,
)

__all__ = [
    # Auth schemas
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "SessionStatusResponse",
    # Donation schemas
    "DonationCreate",
    "AdminDonationCreate",
    "AdminDonationUpdate",
    "DonationResponse",
    "DonationListResponse",
    "TransactionFeedItem",
    # Payment schemas
    "OrderResponse",
    "QRCodeResponse",
    "PaymentVerifyRequest",
    "PaymentVerifyResponse",
    "PaymentStatusResponse",
    # Statistics schemas
    "BatchBase",
    "LeaderboardEntry",
    "StatsResponse",
    # Account schemas
    "CoordinatorCreate",
    "CoordinatorUpdate",
    "CoordinatorResponse",
    "ProfileResponse",
    "ProfileUpdate",
]

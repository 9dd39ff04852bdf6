"""
API v1 Router
"""

from fastapi import APIRouter

from app.api.v1 import admin, auth, coordinator, payments, profile, stats

router = APIRouter()

# Include all endpoint routers
router.include_router(auth.router)
router.include_router(payments.router)
router.include_router(stats.router)
router.include_router(admin.router)
router.include_router(coordinator.router)
router.include_router(profile.router)

__all__ = ["router"]

"""
Common query parameter models for API endpoints.

These Pydantic models are used with FastAPI's Depends() to provide reusable
query parameter sets, reducing code duplication across routes.
"""

from pydantic import BaseModel, Field, computed_field

from app.config import settings


class PaginationParams(BaseModel):
    """Common pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number")
    per_page: int = Field(
        default=settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="Items per page",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def offset(self) -> int:
        """Calculate offset from page and per_page."""
        return (self.page - 1) * self.per_page

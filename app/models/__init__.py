"""
SQLModel models - Database schema models.

For modifications:
1. Edit the appropriate model file in app/models/
2. Create an Alembic migration to reflect the changes
3. Use Alembic to manage all schema changes going forward
"""

from app.models.donation import Donations, PaymentMethod, PaymentStatus
from app.models.hierarchy import Batches, Districts, Places, Sections, Units
from app.models.user import UserRole, Users

__all__ = [
    # Ledger
    "Donations",
    "Batches",
    "PaymentMethod",
    "PaymentStatus",
    # Attribution lookups
    "Sections",
    "Districts",
    "Places",
    "Units",
    # Console users
    "Users",
    "UserRole",
]

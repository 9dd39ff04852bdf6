"""
Base schema types with stable JSON serialization.

UTCDatetime serializes datetime objects with a Z suffix indicating UTC.
Money serializes Decimal amounts as JSON numbers instead of strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer

# Custom datetime type that serializes with Z suffix for UTC
# Usage: date: UTCDatetime instead of date: datetime
UTCDatetime = Annotated[
    datetime,
    PlainSerializer(
        lambda dt: dt.strftime("%Y-%m-%dT%H:%M:%SZ") if dt else None,
        return_type=str,
    ),
]

# Optional version for nullable datetime fields
UTCDatetimeOptional = Annotated[
    datetime | None,
    PlainSerializer(
        lambda dt: dt.strftime("%Y-%m-%dT%H:%M:%SZ") if dt else None,
        return_type=str | None,
    ),
]

# Decimal amount rendered as a number (500.0, not "500.00")
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]

"""
Pydantic schemas package.
"""

from subtrack.schemas.subscription import (
    SubscriptionResponse,
    RefreshResponse,
)

__all__ = [
    "SubscriptionResponse",
    "RefreshResponse",
]

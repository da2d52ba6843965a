"""Pydantic schemas for subscriptions."""

from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from subtrack.models.subscription import SubscriptionStatus


class SubscriptionResponse(BaseModel):
    id: str
    merchant: str
    avg_amount: Decimal
    last_paid_date: date
    next_due_date: date
    status: SubscriptionStatus
    created_at: datetime
    updated_at: datetime

    # Computed field added by API
    days_until_due: Optional[int] = None

    model_config = {"from_attributes": True}


class RefreshResponse(BaseModel):
    """Detection result and the due-soon window read from the same state."""
    subscriptions: List[SubscriptionResponse]
    due_soon: List[SubscriptionResponse]
    days: int

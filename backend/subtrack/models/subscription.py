"""
Subscription database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Date, Numeric, Enum, Index, UniqueConstraint
import enum
from subtrack.database import Base


class SubscriptionStatus(str, enum.Enum):
    """Subscription status enumeration."""
    ACTIVE = "ACTIVE"
    IGNORED = "IGNORED"


class Subscription(Base):
    """Recurring charge derived from a user's expense history."""

    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False)
    merchant = Column(String(100), nullable=False)
    merchant_key = Column(String(100), nullable=False)  # Case-folded merchant
    avg_amount = Column(Numeric(12, 2), nullable=False)
    last_paid_date = Column(Date, nullable=False)
    next_due_date = Column(Date, nullable=False)
    status = Column(Enum(SubscriptionStatus), default=SubscriptionStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "merchant_key", name="uq_subscriptions_user_merchant"),
        Index("idx_subscriptions_due_date", "user_id", "next_due_date"),
    )

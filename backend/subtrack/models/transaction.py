"""
Transaction database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Numeric, Float, Enum, JSON, Index
import enum
from subtrack.database import Base


class TransactionType(str, enum.Enum):
    """Transaction type enumeration."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class RiskLevel(str, enum.Enum):
    """Fraud risk level attached by the scoring service."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Transaction(Base):
    """Transaction model. Rows are written once by the transaction store and never updated."""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Always positive, direction comes from type
    type = Column(String(20), nullable=False)  # INCOME, EXPENSE
    category = Column(String(50), nullable=False)
    description = Column(String(255), nullable=True)
    location = Column(String(100), nullable=True)
    transaction_date = Column(DateTime, nullable=False)

    # Fraud attributes, precomputed elsewhere and opaque here
    fraudulent = Column(Boolean, default=False, nullable=False)
    fraud_score = Column(Float, nullable=True)  # 0-100
    risk_level = Column(Enum(RiskLevel), nullable=True)
    fraud_reasons = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Indexes for common queries
    __table_args__ = (
        Index("idx_transactions_user_date", "user_id", "transaction_date"),
        Index("idx_transactions_category", "user_id", "category"),
    )

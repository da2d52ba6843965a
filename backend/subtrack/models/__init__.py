"""
Database models package.
"""

from subtrack.models.transaction import Transaction, TransactionType, RiskLevel
from subtrack.models.subscription import Subscription, SubscriptionStatus
from subtrack.models.audit_log import AuditLog

__all__ = [
    "Transaction",
    "TransactionType",
    "RiskLevel",
    "Subscription",
    "SubscriptionStatus",
    "AuditLog",
]

"""Read side of the transaction store consumed by subscription detection."""

import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtrack.exceptions import StoreUnavailableError
from subtrack.models.transaction import Transaction, TransactionType

logger = logging.getLogger(__name__)


def list_expense_transactions(db: Session, user_id: str) -> List[Transaction]:
    """
    Get every EXPENSE transaction for a user, oldest first.

    The type match is case-insensitive and rows without a category are
    skipped, since they can never join a category series.
    """
    try:
        return db.query(Transaction).filter(
            Transaction.user_id == user_id,
            func.upper(Transaction.type) == TransactionType.EXPENSE.value,
            func.trim(Transaction.category) != "",
        ).order_by(
            Transaction.transaction_date.asc(),
            Transaction.id.asc()
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read expense transactions for user {user_id}: {e}")
        raise StoreUnavailableError(
            "Transaction store unavailable",
            user_id=user_id,
            operation="list_expense_transactions",
        ) from e

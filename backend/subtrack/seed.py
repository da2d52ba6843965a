"""
Seed script for demo transactions.

Generates a year of transactions for a user so detection has something to
find: everyday spending at random plus a few fixed monthly charges.
"""

import random
import sys
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from subtrack.database import SessionLocal, create_tables
from subtrack.models import Transaction, TransactionType
from subtrack.services.scheduler import add_months, local_today

DEMO_MONTHS = 12

# (category, low, high) in whole currency units
EVERYDAY_CATEGORIES = [
    ("groceries", 20, 150),
    ("utilities", 50, 300),
    ("entertainment", 10, 100),
    ("transport", 10, 80),
]

# (category, amount, day of month)
MONTHLY_CHARGES = [
    ("Netflix", Decimal("15.49"), 15),
    ("Spotify", Decimal("10.99"), 3),
    ("Gym", Decimal("39.00"), 28),
]


def generate_demo_transactions(user_id: str, today: Optional[date] = None) -> List[Transaction]:
    """Build demo transactions for the months up to and including today's month."""
    today = today or local_today()
    rng = random.Random(user_id)
    transactions = []

    for months_back in range(DEMO_MONTHS - 1, -1, -1):
        month_start = add_months(date(today.year, today.month, 1), -months_back)
        last_day = add_months(month_start, 1).toordinal() - month_start.toordinal()

        # Current month only gets charges that already happened
        max_day = today.day if months_back == 0 else last_day

        for _ in range(rng.randint(8, 16)):
            category, low, high = rng.choice(EVERYDAY_CATEGORIES)
            day = rng.randint(1, max_day)
            transactions.append(_demo_transaction(
                user_id,
                category=category,
                amount=Decimal(rng.randint(low, high)),
                txn_type=TransactionType.EXPENSE,
                when=datetime(month_start.year, month_start.month, day, rng.randint(8, 21), rng.randint(0, 59)),
            ))

        for category, amount, day in MONTHLY_CHARGES:
            day = min(day, last_day)
            if day > max_day:
                continue
            transactions.append(_demo_transaction(
                user_id,
                category=category,
                amount=amount,
                txn_type=TransactionType.EXPENSE,
                when=datetime(month_start.year, month_start.month, day, 6, 0),
            ))

        if max_day >= 25:
            transactions.append(_demo_transaction(
                user_id,
                category="salary",
                amount=Decimal(rng.randint(2000, 5000)),
                txn_type=TransactionType.INCOME,
                when=datetime(month_start.year, month_start.month, 25, 9, 0),
            ))

    return transactions


def _demo_transaction(
    user_id: str,
    category: str,
    amount: Decimal,
    txn_type: TransactionType,
    when: datetime
) -> Transaction:
    return Transaction(
        id=str(uuid.uuid4()),
        user_id=user_id,
        amount=amount,
        type=txn_type.value,
        category=category,
        description=f"Demo {category}",
        location="Demo Location",
        transaction_date=when,
    )


def seed_user_if_empty(db: Session, user_id: str, today: Optional[date] = None) -> int:
    """Insert demo transactions for a user with none. Returns the number created."""
    existing_count = db.query(Transaction).filter(Transaction.user_id == user_id).count()
    if existing_count > 0:
        return 0

    transactions = generate_demo_transactions(user_id, today)
    db.add_all(transactions)
    db.commit()
    return len(transactions)


def seed_demo_user(user_id: str) -> None:
    """Seed demo transactions into the configured database."""
    create_tables()
    db = SessionLocal()

    try:
        created = seed_user_if_empty(db, user_id)
        if created == 0:
            print(f"User {user_id} already has transactions, skipping demo data")
        else:
            print(f"Seeded {created} demo transactions for user {user_id}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python -m subtrack.seed <user_id>")
        sys.exit(1)
    seed_demo_user(sys.argv[1])

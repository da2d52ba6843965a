"""
Pattern matching for recurring expense series.

A category becomes a candidate series when a user has been charged under it
in at least two distinct calendar months. Amounts are not compared and gaps
between months are not checked: the repeated category across months is the
whole signal.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Tuple

from sqlalchemy.orm import Session

from subtrack.services.scheduler import calculate_next_due
from subtrack.services.transaction_store import list_expense_transactions

logger = logging.getLogger(__name__)

MIN_DISTINCT_MONTHS = 2
CENT = Decimal("0.01")


@dataclass(frozen=True)
class CandidateSeries:
    """A not-yet-persisted recurring series for one user and one category."""
    user_id: str
    merchant: str
    merchant_key: str
    transaction_ids: Tuple[str, ...]
    months: Tuple[str, ...]  # "YYYY-MM", ascending
    avg_amount: Decimal
    last_paid_date: date
    next_due_date: date

    @property
    def transaction_count(self) -> int:
        return len(self.transaction_ids)


def to_calendar_date(value: Any) -> date:
    """
    Extract the calendar date from a stored transaction date.

    Datetimes keep their own wall-clock date, aware ones are not converted to
    another zone. Strings use their leading YYYY-MM-DD part, so "2024-03-01"
    and "2024-03-01T23:30:00Z" are both March 1.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Unsupported transaction date: {value!r}")


def merchant_key(category: str) -> str:
    """Case-insensitive grouping key for a category."""
    return category.strip().casefold()


def display_name(category: str) -> str:
    """Display form of the first-seen category, capitalized when it is all lower-case."""
    name = category.strip()
    if name.islower():
        return name[0].upper() + name[1:]
    return name


def average_amount(amounts: List[Decimal]) -> Decimal:
    """Arithmetic mean rounded half-up to cents."""
    total = sum(amounts, Decimal("0"))
    return (total / len(amounts)).quantize(CENT, rounding=ROUND_HALF_UP)


def _time_of_day(value: Any) -> time:
    if isinstance(value, datetime):
        return value.time().replace(tzinfo=None)
    return time.min


def _sort_key(txn: Any) -> Tuple[date, time, str]:
    return (
        to_calendar_date(txn.transaction_date),
        _time_of_day(txn.transaction_date),
        str(txn.id),
    )


def find_candidate_series(user_id: str, transactions: Iterable[Any]) -> List[CandidateSeries]:
    """
    Group expense transactions into candidate recurring series.

    Transactions only need ``id``, ``amount``, ``category`` and
    ``transaction_date`` attributes. The result is ordered by merchant key and
    does not depend on the order transactions are given in.
    """
    ordered = sorted(
        (t for t in transactions if t.category and t.category.strip()),
        key=_sort_key
    )

    groups: Dict[str, List[Any]] = {}
    display: Dict[str, str] = {}
    for txn in ordered:
        amount = Decimal(str(txn.amount))
        if amount <= 0:
            logger.debug(f"Skipping non-positive amount on transaction {txn.id}")
            continue
        key = merchant_key(txn.category)
        if key not in groups:
            groups[key] = []
            display[key] = display_name(txn.category)
        groups[key].append(txn)

    candidates = []
    for key in sorted(groups):
        txns = groups[key]
        months = sorted({to_calendar_date(t.transaction_date).strftime("%Y-%m") for t in txns})

        if len(months) < MIN_DISTINCT_MONTHS:
            logger.debug(f"Category '{key}' charged in {len(months)} month(s), not recurring")
            continue

        last_paid = max(to_calendar_date(t.transaction_date) for t in txns)
        candidates.append(CandidateSeries(
            user_id=user_id,
            merchant=display[key],
            merchant_key=key,
            transaction_ids=tuple(str(t.id) for t in txns),
            months=tuple(months),
            avg_amount=average_amount([Decimal(str(t.amount)) for t in txns]),
            last_paid_date=last_paid,
            next_due_date=calculate_next_due(last_paid),
        ))

    return candidates


def detect_candidates(db: Session, user_id: str) -> List[CandidateSeries]:
    """Scan a user's full expense history for recurring series."""
    transactions = list_expense_transactions(db, user_id)
    candidates = find_candidate_series(user_id, transactions)

    logger.info(
        f"User {user_id}: {len(transactions)} expense transactions, "
        f"{len(candidates)} recurring candidate(s)"
    )
    return candidates

"""Service for due-date calculation and due-soon queries."""

import calendar
import logging
from typing import List, Optional
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtrack.config import settings
from subtrack.exceptions import EngineError, StoreUnavailableError, ValidationError
from subtrack.models.subscription import Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)


def local_today(now: Optional[datetime] = None) -> date:
    """
    Calendar date of "today" in the configured zone, or the process-local date.

    ``now`` is an aware instant to read the date from instead of the clock.
    """
    if settings.local_timezone:
        try:
            zone = ZoneInfo(settings.local_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise EngineError(
                f"Unknown time zone configured: {settings.local_timezone!r}",
                operation="local_today",
            ) from e
        return now.astimezone(zone).date() if now else datetime.now(zone).date()
    return now.astimezone().date() if now else date.today()


def add_months(value: date, months: int) -> date:
    """
    Move a date by whole calendar months.

    The day of month is kept when the target month has it, otherwise it is
    clamped to the target month's last day (Jan 31 + 1 month -> Feb 29/28).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def calculate_next_due(last_paid_date: date) -> date:
    """Next expected charge for a monthly cadence."""
    return add_months(last_paid_date, 1)


def days_until(due_date: date, today: date) -> int:
    """Whole calendar days from today to the due date (negative when overdue)."""
    return (due_date - today).days


def validate_window(days: int, user_id: Optional[str] = None) -> int:
    """Check a due-soon window length."""
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValidationError("days must be an integer", user_id=user_id, operation="due_soon")
    if days < 0:
        raise ValidationError("days must be >= 0", user_id=user_id, operation="due_soon")
    return days


def due_soon(
    db: Session,
    user_id: str,
    days: int,
    today: Optional[date] = None
) -> List[Subscription]:
    """
    Get ACTIVE subscriptions due within [today, today + days], both ends inclusive.

    Only calendar dates are compared. Results are ordered by due date, then
    merchant.
    """
    validate_window(days, user_id)
    start = today or local_today()
    try:
        end = start + timedelta(days=days)
    except OverflowError:
        end = date.max

    try:
        return db.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.next_due_date >= start,
            Subscription.next_due_date <= end,
        ).order_by(
            Subscription.next_due_date.asc(),
            Subscription.merchant_key.asc(),
            Subscription.merchant.asc()
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Due-soon query failed for user {user_id}: {e}")
        raise StoreUnavailableError(
            "Subscription repository unavailable",
            user_id=user_id,
            operation="due_soon",
        ) from e

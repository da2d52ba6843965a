"""
Detection orchestration.

Runs pattern matching and reconciliation for one user as a single committed
unit. Runs for the same user are serialized in-process; the unique
(user_id, merchant_key) constraint catches runs racing from other processes.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from subtrack.exceptions import StoreUnavailableError
from subtrack.models.subscription import Subscription
from subtrack.services import scheduler
from subtrack.services.pattern_matcher import detect_candidates
from subtrack.services.subscription_repository import get_user_subscriptions, reconcile
from subtrack.services.user_locks import user_lock

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


@dataclass
class RefreshResult:
    """Subscriptions after a detection run plus the due-soon view of the same state."""
    subscriptions: List[Subscription]
    due_soon: List[Subscription]


def _detect_and_commit(db: Session, user_id: str) -> List[Subscription]:
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            candidates = detect_candidates(db, user_id)
            reconcile(db, user_id, candidates)
            db.commit()
            return get_user_subscriptions(db, user_id)
        except IntegrityError as e:
            db.rollback()
            if attempt < MAX_ATTEMPTS:
                logger.warning(
                    f"User {user_id}: concurrent detection wrote the same merchant, retrying"
                )
                continue
            logger.error(f"Detection failed for user {user_id} after {attempt} attempts: {e}")
            raise StoreUnavailableError(
                "Subscription repository rejected the detection run",
                user_id=user_id,
                operation="run_detection",
            ) from e
        except StoreUnavailableError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Detection failed for user {user_id}: {e}")
            raise StoreUnavailableError(
                "Subscription repository unavailable",
                user_id=user_id,
                operation="run_detection",
            ) from e
        except Exception:
            db.rollback()
            raise


def run_detection(db: Session, user_id: str) -> List[Subscription]:
    """
    Detect and persist a user's subscriptions.

    Every write is committed before this returns, so a due-soon query issued
    afterwards on the same database sees the reconciled state. Returns all of
    the user's subscriptions, ACTIVE and IGNORED, ordered by merchant.
    """
    with user_lock(user_id):
        return _detect_and_commit(db, user_id)


def refresh(
    db: Session,
    user_id: str,
    days: int,
    today: Optional[date] = None
) -> RefreshResult:
    """
    Run detection and the due-soon query as one step.

    Both happen under the user's lock, so no other detection run can land
    between the write and the read.
    """
    scheduler.validate_window(days, user_id)
    with user_lock(user_id):
        subscriptions = _detect_and_commit(db, user_id)
        upcoming = scheduler.due_soon(db, user_id, days, today=today)
    return RefreshResult(subscriptions=subscriptions, due_soon=upcoming)

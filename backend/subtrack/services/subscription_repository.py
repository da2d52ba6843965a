"""Service for persisting detected subscriptions and user overrides."""

import logging
import uuid
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtrack.exceptions import NotFoundError, StoreUnavailableError
from subtrack.models.subscription import Subscription, SubscriptionStatus
from subtrack.services import audit_service
from subtrack.services.pattern_matcher import CandidateSeries
from subtrack.services.user_locks import user_lock

logger = logging.getLogger(__name__)


def get_user_subscriptions(db: Session, user_id: str) -> List[Subscription]:
    """Get all subscriptions for a user, ACTIVE and IGNORED, ordered by merchant."""
    return db.query(Subscription).filter(
        Subscription.user_id == user_id
    ).order_by(Subscription.merchant_key.asc()).all()


def list_subscriptions(db: Session, user_id: str) -> List[Subscription]:
    """Read stored subscriptions without running detection."""
    try:
        return get_user_subscriptions(db, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Listing subscriptions failed for user {user_id}: {e}")
        raise StoreUnavailableError(
            "Subscription repository unavailable",
            user_id=user_id,
            operation="list_subscriptions",
        ) from e


def reconcile(
    db: Session,
    user_id: str,
    candidates: List[CandidateSeries]
) -> List[Subscription]:
    """
    Upsert one subscription per candidate, keyed by (user_id, merchant_key).

    New merchants are created ACTIVE. Existing rows get the freshly computed
    amount and dates whatever their status, so an IGNORED subscription keeps
    tracking charges but stays IGNORED. Subscriptions without a candidate are
    left alone.

    Changes are flushed but not committed; the caller owns the transaction.
    Database errors propagate unchanged so the caller can roll back.
    """
    existing = {s.merchant_key: s for s in get_user_subscriptions(db, user_id)}

    reconciled = []
    created = updated = 0
    for candidate in candidates:
        if candidate.user_id != user_id:
            raise ValueError(
                f"Candidate for user {candidate.user_id} reconciled under user {user_id}"
            )

        subscription = existing.get(candidate.merchant_key)
        if subscription is None:
            subscription = Subscription(
                id=str(uuid.uuid4()),
                user_id=user_id,
                merchant=candidate.merchant,
                merchant_key=candidate.merchant_key,
                avg_amount=candidate.avg_amount,
                last_paid_date=candidate.last_paid_date,
                next_due_date=candidate.next_due_date,
                status=SubscriptionStatus.ACTIVE,
            )
            db.add(subscription)
            existing[candidate.merchant_key] = subscription
            created += 1
            audit_service.log_action(
                db,
                user_id=user_id,
                action="SUBSCRIPTION_DETECTED",
                entity_type="subscription",
                entity_id=subscription.id,
                details={"merchant": candidate.merchant, "months": list(candidate.months)},
            )
            logger.info(
                f"New subscription '{candidate.merchant}' for user {user_id}: "
                f"amount={candidate.avg_amount}, next_due={candidate.next_due_date}"
            )
        elif (
            subscription.avg_amount != candidate.avg_amount
            or subscription.last_paid_date != candidate.last_paid_date
            or subscription.next_due_date != candidate.next_due_date
        ):
            # Status is deliberately not touched here
            subscription.avg_amount = candidate.avg_amount
            subscription.last_paid_date = candidate.last_paid_date
            subscription.next_due_date = candidate.next_due_date
            updated += 1
            logger.info(
                f"Updated subscription '{subscription.merchant}' for user {user_id}: "
                f"amount={candidate.avg_amount}, next_due={candidate.next_due_date}, "
                f"status={subscription.status.value}"
            )

        reconciled.append(subscription)

    db.flush()
    logger.info(
        f"User {user_id}: reconciled {len(reconciled)} subscription(s) "
        f"({created} created, {updated} updated)"
    )
    return reconciled


def ignore_subscription(db: Session, subscription_id: str, user_id: str) -> Subscription:
    """
    Mark a user's subscription as IGNORED.

    Raises NotFoundError when the subscription does not exist or belongs to
    someone else. Ignoring an already-ignored subscription is a no-op.
    """
    with user_lock(user_id):
        try:
            subscription = db.query(Subscription).filter(
                Subscription.id == subscription_id,
                Subscription.user_id == user_id
            ).first()
            if not subscription:
                raise NotFoundError(
                    f"Subscription {subscription_id} not found",
                    user_id=user_id,
                    operation="ignore",
                )

            if subscription.status == SubscriptionStatus.IGNORED:
                return subscription

            subscription.status = SubscriptionStatus.IGNORED
            audit_service.log_action(
                db,
                user_id=user_id,
                action="SUBSCRIPTION_IGNORED",
                entity_type="subscription",
                entity_id=subscription.id,
                details={"merchant": subscription.merchant},
            )
            db.commit()
            db.refresh(subscription)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Ignoring subscription {subscription_id} failed for user {user_id}: {e}")
            raise StoreUnavailableError(
                "Subscription repository unavailable",
                user_id=user_id,
                operation="ignore",
            ) from e

    logger.info(f"User {user_id} ignored subscription '{subscription.merchant}'")
    return subscription

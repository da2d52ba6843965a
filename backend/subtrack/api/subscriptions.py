"""API endpoints for subscription detection and due-date queries."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from subtrack.config import settings
from subtrack.dependencies import get_db, get_today
from subtrack.models.subscription import Subscription
from subtrack.schemas.subscription import SubscriptionResponse, RefreshResponse
from subtrack.services import detection_service, scheduler, subscription_repository

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def to_response(subscription: Subscription, today: date) -> SubscriptionResponse:
    response = SubscriptionResponse.model_validate(subscription)
    response.days_until_due = scheduler.days_until(subscription.next_due_date, today)
    return response


@router.get("", response_model=List[SubscriptionResponse])
def get_subscriptions(
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    today: date = Depends(get_today)
):
    """Get stored subscriptions without re-running detection."""
    subscriptions = subscription_repository.list_subscriptions(db, user_id)
    return [to_response(s, today) for s in subscriptions]


@router.post("/detect", response_model=List[SubscriptionResponse])
def detect_subscriptions(
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    today: date = Depends(get_today)
):
    """
    Detect recurring charges from the user's expense history and persist them.
    Safe to repeat; returns ACTIVE and IGNORED subscriptions.
    """
    subscriptions = detection_service.run_detection(db, user_id)
    return [to_response(s, today) for s in subscriptions]


@router.get("/due-soon", response_model=List[SubscriptionResponse])
def get_due_soon(
    user_id: str = Query(...),
    days: Optional[int] = Query(None, description="Window length in days, inclusive"),
    db: Session = Depends(get_db),
    today: date = Depends(get_today)
):
    """Get ACTIVE subscriptions due between today and today + days."""
    if days is None:
        days = settings.due_soon_default_days
    subscriptions = scheduler.due_soon(db, user_id, days, today=today)
    return [to_response(s, today) for s in subscriptions]


@router.post("/refresh", response_model=RefreshResponse)
def refresh_subscriptions(
    user_id: str = Query(...),
    days: Optional[int] = Query(None, description="Window length in days, inclusive"),
    db: Session = Depends(get_db),
    today: date = Depends(get_today)
):
    """
    Run detection, then read the due-soon window from the freshly committed state.
    """
    if days is None:
        days = settings.due_soon_default_days
    result = detection_service.refresh(db, user_id, days, today=today)
    return RefreshResponse(
        subscriptions=[to_response(s, today) for s in result.subscriptions],
        due_soon=[to_response(s, today) for s in result.due_soon],
        days=days,
    )


@router.put("/{subscription_id}/ignore", response_model=SubscriptionResponse)
def ignore_subscription(
    subscription_id: str,
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    today: date = Depends(get_today)
):
    """Stop tracking a subscription. Future detection runs keep it IGNORED."""
    subscription = subscription_repository.ignore_subscription(db, subscription_id, user_id)
    return to_response(subscription, today)

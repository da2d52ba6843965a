"""Shared test fixtures."""

import os

# Keep the app's own engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date, datetime
from decimal import Decimal
import uuid

from subtrack.database import Base, get_db
from subtrack.dependencies import get_today
from subtrack.main import app
from subtrack.models.transaction import Transaction, TransactionType
from subtrack.models.subscription import Subscription, SubscriptionStatus

TODAY = date(2024, 3, 9)


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite engine shared by every connection in a test."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    """Create a fresh database session for each test."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database and clock overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user_id():
    return "user-1"


@pytest.fixture
def add_transaction(db_session):
    """Factory inserting a committed transaction."""
    def _add(
        user_id,
        category,
        when,
        amount="10.00",
        txn_type=TransactionType.EXPENSE.value,
    ):
        if isinstance(when, date) and not isinstance(when, datetime):
            when = datetime(when.year, when.month, when.day, 12, 0)
        txn = Transaction(
            id=str(uuid.uuid4()),
            user_id=user_id,
            amount=Decimal(amount),
            type=txn_type,
            category=category,
            description=f"{category} charge",
            transaction_date=when,
        )
        db_session.add(txn)
        db_session.commit()
        return txn
    return _add


@pytest.fixture
def netflix_history(add_transaction, user_id):
    """Two monthly Netflix charges, January and February 2024."""
    return [
        add_transaction(user_id, "Netflix", date(2024, 1, 15), "15.00"),
        add_transaction(user_id, "Netflix", date(2024, 2, 15), "15.49"),
    ]


@pytest.fixture
def sample_subscription(db_session, user_id):
    """Create a stored ACTIVE subscription."""
    subscription = Subscription(
        id=str(uuid.uuid4()),
        user_id=user_id,
        merchant="Spotify",
        merchant_key="spotify",
        avg_amount=Decimal("10.99"),
        last_paid_date=date(2024, 2, 12),
        next_due_date=date(2024, 3, 12),
        status=SubscriptionStatus.ACTIVE,
    )
    db_session.add(subscription)
    db_session.commit()
    db_session.refresh(subscription)
    return subscription

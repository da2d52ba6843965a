"""Tests for detection orchestration."""

import pytest
import threading
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from subtrack.database import Base
from subtrack.exceptions import StoreUnavailableError, ValidationError
from subtrack.models.audit_log import AuditLog
from subtrack.models.subscription import Subscription, SubscriptionStatus
from subtrack.models.transaction import Transaction, TransactionType
from subtrack.services import detection_service
from subtrack.services.scheduler import due_soon
from subtrack.services.subscription_repository import ignore_subscription, reconcile
from subtrack.services.user_locks import is_locked, registered_users, user_lock


def snapshot(subscriptions):
    return [
        (s.id, s.merchant, s.avg_amount, s.last_paid_date, s.next_due_date, s.status)
        for s in subscriptions
    ]


class TestRunDetection:
    """Test the detect -> reconcile -> commit sequence."""

    def test_scenario_netflix(self, db_session, user_id, netflix_history):
        """Jan and Feb Netflix charges produce one ACTIVE subscription."""
        result = detection_service.run_detection(db_session, user_id)

        assert len(result) == 1
        subscription = result[0]
        assert subscription.merchant == "Netflix"
        assert subscription.avg_amount == Decimal("15.25")
        assert subscription.last_paid_date == date(2024, 2, 15)
        assert subscription.next_due_date == date(2024, 3, 15)
        assert subscription.status == SubscriptionStatus.ACTIVE

    def test_idempotent(self, db_session, user_id, netflix_history):
        """Running twice on the same data yields identical values."""
        first = snapshot(detection_service.run_detection(db_session, user_id))
        second = snapshot(detection_service.run_detection(db_session, user_id))

        assert first == second
        assert db_session.query(Subscription).count() == 1

    def test_single_month_produces_nothing(self, db_session, add_transaction, user_id):
        add_transaction(user_id, "Groceries", date(2024, 1, 3))
        add_transaction(user_id, "Groceries", date(2024, 1, 20))
        assert detection_service.run_detection(db_session, user_id) == []

    def test_sticky_ignore(self, db_session, add_transaction, user_id, netflix_history):
        """After ignore, a new March charge updates dates but status stays IGNORED."""
        subscription = detection_service.run_detection(db_session, user_id)[0]
        ignore_subscription(db_session, subscription.id, user_id)

        add_transaction(user_id, "Netflix", date(2024, 3, 15), "15.49")
        result = detection_service.run_detection(db_session, user_id)

        assert len(result) == 1
        assert result[0].status == SubscriptionStatus.IGNORED
        assert result[0].last_paid_date == date(2024, 3, 15)
        assert result[0].next_due_date == date(2024, 4, 15)

    def test_returns_ignored_and_stale(self, db_session, user_id, sample_subscription, netflix_history):
        """The result includes every stored subscription, not only fresh ones."""
        ignore_subscription(db_session, sample_subscription.id, user_id)
        result = detection_service.run_detection(db_session, user_id)
        assert [s.merchant for s in result] == ["Netflix", "Spotify"]

    def test_due_soon_sees_committed_state(self, db_session, user_id, netflix_history):
        """A due-soon read right after detection observes the new subscription."""
        detection_service.run_detection(db_session, user_id)
        assert len(due_soon(db_session, user_id, 7, today=date(2024, 3, 9))) == 1
        assert due_soon(db_session, user_id, 7, today=date(2024, 3, 7)) == []

    def test_store_failure_rolls_back(self, db_session, user_id, netflix_history, monkeypatch):
        """A failure after reconciling leaves nothing committed."""
        def failing_reconcile(db, uid, candidates):
            reconcile(db, uid, candidates)
            raise OperationalError("UPDATE subscriptions", {}, Exception("disk I/O error"))

        monkeypatch.setattr(detection_service, "reconcile", failing_reconcile)

        with pytest.raises(StoreUnavailableError) as exc_info:
            detection_service.run_detection(db_session, user_id)

        assert exc_info.value.user_id == user_id
        assert exc_info.value.operation == "run_detection"
        assert db_session.query(Subscription).count() == 0

    def test_unexpected_error_rolls_back(self, db_session, user_id, netflix_history, monkeypatch):
        """Errors outside the store also discard the flushed rows."""
        def broken_reconcile(db, uid, candidates):
            reconcile(db, uid, candidates)
            raise ValueError("candidate belongs to another user")

        monkeypatch.setattr(detection_service, "reconcile", broken_reconcile)

        with pytest.raises(ValueError):
            detection_service.run_detection(db_session, user_id)

        assert not db_session.new
        assert not db_session.in_transaction()
        assert db_session.query(Subscription).count() == 0
        assert db_session.query(AuditLog).count() == 0
        assert registered_users() == 0

    def test_unique_conflict_retried(self, db_session, user_id, netflix_history, monkeypatch):
        """A uniqueness race is rolled back and the run retried."""
        calls = []

        def racing_reconcile(db, uid, candidates):
            calls.append(uid)
            if len(calls) == 1:
                raise IntegrityError("INSERT INTO subscriptions", {}, Exception("UNIQUE constraint failed"))
            return reconcile(db, uid, candidates)

        monkeypatch.setattr(detection_service, "reconcile", racing_reconcile)

        result = detection_service.run_detection(db_session, user_id)
        assert len(calls) == 2
        assert len(result) == 1

    def test_persistent_conflict_surfaces(self, db_session, user_id, netflix_history, monkeypatch):
        def always_conflicts(db, uid, candidates):
            raise IntegrityError("INSERT INTO subscriptions", {}, Exception("UNIQUE constraint failed"))

        monkeypatch.setattr(detection_service, "reconcile", always_conflicts)

        with pytest.raises(StoreUnavailableError):
            detection_service.run_detection(db_session, user_id)

    def test_holds_user_lock(self, db_session, user_id, monkeypatch):
        """Detection runs while holding the user's lock."""
        seen = []

        def fake_detect(db, uid):
            seen.append(is_locked(uid))
            return []

        monkeypatch.setattr(detection_service, "detect_candidates", fake_detect)
        detection_service.run_detection(db_session, user_id)

        assert seen == [True]
        assert not is_locked(user_id)
        assert registered_users() == 0


class TestUserLocks:
    """Test the per-user lock registry."""

    def test_registry_empty_after_exit(self):
        """An entry lives only while the lock is held."""
        with user_lock("a"):
            assert is_locked("a")
            assert registered_users() == 1
        assert not is_locked("a")
        assert registered_users() == 0

    def test_released_on_error(self):
        with pytest.raises(RuntimeError):
            with user_lock("a"):
                raise RuntimeError("boom")
        assert registered_users() == 0

    def test_many_users_leave_no_entries(self):
        for n in range(100):
            with user_lock(f"user-{n}"):
                pass
        assert registered_users() == 0

    def test_same_user_waits(self):
        """A second holder for the same user blocks until the first leaves."""
        acquired = threading.Event()

        def contender():
            with user_lock("a"):
                acquired.set()

        with user_lock("a"):
            thread = threading.Thread(target=contender)
            thread.start()
            assert not acquired.wait(0.2)
            assert registered_users() == 1

        thread.join(5)
        assert acquired.is_set()
        assert registered_users() == 0

    def test_different_users_independent(self):
        acquired = threading.Event()

        def other_user():
            with user_lock("b"):
                acquired.set()

        with user_lock("a"):
            thread = threading.Thread(target=other_user)
            thread.start()
            assert acquired.wait(5)
            thread.join(5)

        assert registered_users() == 0


class TestRefresh:
    """Test detection plus due-soon as one step."""

    def test_scenario_due_in_six_days(self, db_session, user_id, netflix_history):
        result = detection_service.refresh(db_session, user_id, 7, today=date(2024, 3, 9))
        assert len(result.subscriptions) == 1
        assert [s.merchant for s in result.due_soon] == ["Netflix"]

    def test_scenario_due_outside_window(self, db_session, user_id, netflix_history):
        result = detection_service.refresh(db_session, user_id, 7, today=date(2024, 3, 7))
        assert len(result.subscriptions) == 1
        assert result.due_soon == []

    def test_invalid_window_runs_nothing(self, db_session, user_id, netflix_history):
        """Validation happens before any write."""
        with pytest.raises(ValidationError):
            detection_service.refresh(db_session, user_id, -1)
        assert db_session.query(Subscription).count() == 0


class TestConcurrentDetection:
    """Test parallel runs against a shared file database."""

    THREADS = 8

    @pytest.fixture
    def file_sessions(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'subtrack.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        try:
            yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
        finally:
            engine.dispose()

    def test_one_row_per_merchant(self, file_sessions, user_id):
        """Runs for the same user from several sessions create a single subscription."""
        setup = file_sessions()
        for when, amount in [(datetime(2024, 1, 15, 12), "15.00"), (datetime(2024, 2, 15, 12), "15.49")]:
            setup.add(Transaction(
                id=str(uuid.uuid4()),
                user_id=user_id,
                amount=Decimal(amount),
                type=TransactionType.EXPENSE.value,
                category="Netflix",
                transaction_date=when,
            ))
        setup.commit()
        setup.close()

        start = threading.Barrier(self.THREADS)
        errors = []
        counts = []

        def worker():
            session = file_sessions()
            try:
                start.wait()
                counts.append(len(detection_service.run_detection(session, user_id)))
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(self.THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(30)

        assert errors == []
        assert counts == [1] * self.THREADS

        check = file_sessions()
        try:
            assert check.query(Subscription).filter(Subscription.user_id == user_id).count() == 1
            assert check.query(AuditLog).filter(AuditLog.action == "SUBSCRIPTION_DETECTED").count() == 1
        finally:
            check.close()
        assert registered_users() == 0

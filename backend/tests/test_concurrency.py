"""
Concurrency tests.

Two writers on the same order must not both commit against the same
stale status. The same holds for two approvers deciding at once and for
two orders drawing the same order number. These tests use a file-backed
SQLite database so a rival session can commit on its own connection
between the loser's read and write.
"""

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from portal import create_app
from portal.errors import IllegalTransitionError, OrderNotPendingApprovalError
from portal.extensions import db
from portal.models import ApprovalStatus, Order, OrderStatus as S, Product, Role, User
from portal.services.approval_service import ApprovalWorkflow
from portal.services.concurrency import run_with_retry
from portal.services.order_service import OrderLifecycleEngine


class _RecordingSession:
    def __init__(self):
        self.rollbacks = 0

    def rollback(self):
        self.rollbacks += 1


class TestRunWithRetry:
    def test_retries_stale_writes(self):
        session = _RecordingSession()
        calls = []

        def op():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("stale")
            return "done"

        assert run_with_retry(session, op, attempts=3, backoff_base=0) == "done"
        assert len(calls) == 3
        assert session.rollbacks == 2

    def test_gives_up_after_last_attempt(self):
        session = _RecordingSession()

        def op():
            raise StaleDataError("stale")

        with pytest.raises(StaleDataError):
            run_with_retry(session, op, attempts=2, backoff_base=0)
        assert session.rollbacks == 2

    def test_domain_errors_are_not_retried(self):
        session = _RecordingSession()
        calls = []

        def op():
            calls.append(1)
            raise IllegalTransitionError(S.NEW, S.COMPLETED)

        with pytest.raises(IllegalTransitionError):
            run_with_retry(session, op, attempts=3, backoff_base=0)
        assert len(calls) == 1
        assert session.rollbacks == 0


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def race(file_app):
    """An order in NEW plus a rival engine on its own session."""
    requester = User(email="user@bund.de", name="User", role=Role.REQUESTER, department="Marketing")
    staff = User(email="it@bund.de", name="IT", role=Role.IT_SUPPORT, department="IT")
    admin = User(email="admin@bund.de", name="Admin", role=Role.ADMIN, department="IT")
    webcam = Product(name="Logitech C270 HD-Webcam")
    db.session.add_all([requester, staff, admin, webcam])
    db.session.commit()

    engine = OrderLifecycleEngine(db.session, retry_backoff=0)
    order = engine.create_order(requester, "CC-001", [{"product_id": webcam.id, "quantity": 1}])

    rival_session = Session(db.engine)
    rival = OrderLifecycleEngine(rival_session, retry_backoff=0)

    yield engine, rival, order.id, staff.id, admin.id

    rival_session.close()


def _interfere_once(engine, rival_move):
    """Let the rival commit right after the engine's first read."""
    original = engine.load_order
    calls = []

    def load_then_interfere(order_id, *, for_update=False):
        order = original(order_id, for_update=for_update)
        calls.append(order.status)
        if len(calls) == 1:
            rival_move(order_id)
        return order

    engine.load_order = load_then_interfere
    return calls


class TestLostUpdate:
    def test_loser_is_evaluated_against_winner_status(self, race):
        engine, rival, order_id, staff_id, admin_id = race
        calls = _interfere_once(
            engine,
            lambda oid: rival.transition_status(oid, S.REJECTED, Role.ADMIN, admin_id),
        )

        with pytest.raises(IllegalTransitionError) as exc_info:
            engine.transition_status(order_id, S.IN_REVIEW, Role.IT_SUPPORT, staff_id)

        assert exc_info.value.from_status == S.REJECTED
        assert calls == [S.NEW, S.REJECTED]

        order = engine.load_order(order_id)
        assert order.status == S.REJECTED
        assert [entry.to_status for entry in order.status_history] == [S.NEW, S.REJECTED]

    def test_loser_succeeds_when_still_compatible(self, race):
        engine, rival, order_id, staff_id, admin_id = race
        _interfere_once(
            engine,
            lambda oid: rival.transition_status(oid, S.IN_REVIEW, Role.IT_SUPPORT, staff_id),
        )

        order = engine.transition_status(order_id, S.REJECTED, Role.ADMIN, admin_id)

        assert order.status == S.REJECTED
        assert [(e.from_status, e.to_status) for e in order.status_history] == [
            (None, S.NEW),
            (S.NEW, S.IN_REVIEW),
            (S.IN_REVIEW, S.REJECTED),
        ]
        assert order.version_id == 3


class TestOrderNumberRace:
    def test_number_taken_between_check_and_commit_is_retried(self, race):
        _, rival, _, _, _ = race
        requester = db.session.query(User).filter_by(email="user@bund.de").one()
        webcam = db.session.query(Product).one()
        line = [{"product_id": webcam.id, "quantity": 1}]

        numbers = iter(["BEST-20240314-0001", "BEST-20240314-0002"])
        engine = OrderLifecycleEngine(db.session, order_numbers=lambda now: next(numbers), retry_backoff=0)
        rival = OrderLifecycleEngine(rival.session, order_numbers=lambda now: "BEST-20240314-0001")

        allocate = engine._allocate_order_number

        def allocate_then_interfere(now):
            number = allocate(now)
            if number == "BEST-20240314-0001":
                rival.create_order(requester, "CC-001", line)
            return number

        engine._allocate_order_number = allocate_then_interfere

        order = engine.create_order(requester, "CC-001", line)

        assert order.order_number == "BEST-20240314-0002"
        assert order.status == S.NEW
        assert len(order.status_history) == 1
        taken = {number for (number,) in db.session.query(Order.order_number)}
        assert {"BEST-20240314-0001", "BEST-20240314-0002"} <= taken
        assert len(taken) == 3


@pytest.fixture
def approval_race(file_app):
    """A chair order awaiting two Marketing approvers plus a rival engine."""
    requester = User(email="user@bund.de", name="User", role=Role.REQUESTER, department="Marketing")
    head = User(email="head@bund.de", name="Head", role=Role.APPROVER, department="Marketing")
    deputy = User(email="deputy@bund.de", name="Deputy", role=Role.APPROVER, department="Marketing")
    chair = Product(name="Office Chair", requires_approval=True)
    db.session.add_all([requester, head, deputy, chair])
    db.session.commit()

    engine = OrderLifecycleEngine(db.session, retry_backoff=0)
    order = engine.create_order(requester, "CC-001", [{"product_id": chair.id, "quantity": 1}])

    rival_session = Session(db.engine)
    rival = OrderLifecycleEngine(rival_session, retry_backoff=0)

    yield engine, rival, order.id, head.id, deputy.id

    rival_session.close()


class TestApprovalRace:
    def test_late_approver_keeps_decision_but_not_the_order(self, approval_race):
        engine, rival, order_id, head_id, deputy_id = approval_race
        calls = _interfere_once(
            engine,
            lambda oid: ApprovalWorkflow(rival).decide_approval(oid, head_id, True, "fine"),
        )

        with pytest.raises(OrderNotPendingApprovalError) as exc_info:
            ApprovalWorkflow(engine).decide_approval(order_id, deputy_id, False, "too late")

        assert exc_info.value.to_dict()["status"] == "APPROVED"
        assert calls == [S.PENDING_APPROVAL, S.APPROVED]

        order = engine.load_order(order_id)
        assert order.status == S.APPROVED
        assert [(e.from_status, e.to_status) for e in order.status_history] == [
            (None, S.NEW),
            (S.NEW, S.PENDING_APPROVAL),
            (S.PENDING_APPROVAL, S.APPROVED),
        ]
        assert order.status_history[-1].changed_by_user_id == head_id
        assert {a.approver_id: (a.status, a.comment) for a in order.approvals} == {
            head_id: (ApprovalStatus.APPROVED, "fine"),
            deputy_id: (ApprovalStatus.REJECTED, "too late"),
        }

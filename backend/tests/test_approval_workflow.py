"""
Approval sub-workflow tests.

Verifies:
- The full request -> approval -> fulfilment scenario
- Rejection closes the order
- First decision wins; a late sibling decision is kept but reported (409)
- Decisions need a PENDING approval held by the caller
- Status moves out of PENDING_APPROVAL resolve the mover's own approval
"""

import pytest

from portal.errors import (
    ApprovalNotFoundError,
    OrderNotPendingApprovalError,
    UnauthorizedTransitionError,
    ValidationError,
)
from portal.models import Approval, ApprovalStatus, OrderStatus as S, Role, SecurityEvent


def _history(order):
    return [(entry.from_status, entry.to_status) for entry in order.status_history]


class TestEndToEnd:
    def test_chair_order_through_approval_and_ordering(
        self, engine, workflow, requester, approver, it_support, chair
    ):
        order = engine.create_order(requester, "CC-001", [{"product_id": chair.id, "quantity": 1}])

        assert order.status == S.PENDING_APPROVAL
        assert _history(order) == [(None, S.NEW), (S.NEW, S.PENDING_APPROVAL)]
        assert len(order.approvals) == 1
        assert order.approvals[0].approver_id == approver.id
        assert order.approvals[0].status == ApprovalStatus.PENDING

        approval = workflow.decide_approval(order.id, approver.id, True, "ok")

        assert approval.status == ApprovalStatus.APPROVED
        assert approval.comment == "ok"
        assert approval.decided_at is not None
        order = engine.load_order(order.id)
        assert order.status == S.APPROVED
        assert _history(order)[-1] == (S.PENDING_APPROVAL, S.APPROVED)
        assert len(order.status_history) == 3
        assert order.status_history[-1].changed_by_user_id == approver.id
        assert order.status_history[-1].note == "ok"

        ordered = engine.transition_status(order.id, "ORDERED", "IT_SUPPORT", it_support.id)
        assert ordered.status == S.ORDERED

        with pytest.raises(UnauthorizedTransitionError):
            engine.transition_status(order.id, S.ORDER_CONFIRMED, "REQUESTER", requester.id)
        assert engine.load_order(order.id).status == S.ORDERED

    def test_rejection_closes_the_order(self, engine, workflow, requester, approver, chair):
        order = engine.create_order(requester, "CC-001", [{"product_id": chair.id, "quantity": 1}])

        approval = workflow.decide_approval(order.id, approver.id, False, "  Budget exhausted ")

        assert approval.status == ApprovalStatus.REJECTED
        assert approval.comment == "Budget exhausted"
        order = engine.load_order(order.id)
        assert order.status == S.REJECTED
        assert _history(order)[-1] == (S.PENDING_APPROVAL, S.REJECTED)

    def test_approval_without_comment(self, engine, workflow, requester, approver, chair):
        order = engine.create_order(requester, "CC-001", [{"product_id": chair.id, "quantity": 1}])
        approval = workflow.decide_approval(order.id, approver.id, True)
        assert approval.comment is None
        assert engine.load_order(order.id).status_history[-1].note is None


class TestSiblingApprovals:
    @pytest.fixture
    def approvers(self, make_user):
        return (
            make_user("head@bund.de", Role.APPROVER),
            make_user("deputy@bund.de", Role.APPROVER),
        )

    def test_first_decision_wins(self, engine, workflow, db_session, requester, approvers, chair):
        head, deputy = approvers
        order = engine.create_order(requester, "CC-001", [{"product_id": chair.id, "quantity": 1}])
        assert len(order.approvals) == 2

        workflow.decide_approval(order.id, head.id, True, "fine")

        with pytest.raises(OrderNotPendingApprovalError) as exc_info:
            workflow.decide_approval(order.id, deputy.id, False, "too late")
        assert exc_info.value.status_code == 409
        assert exc_info.value.to_dict()["status"] == "APPROVED"

        # The late decision is kept, the order is untouched
        late = db_session.query(Approval).filter_by(order_id=order.id, approver_id=deputy.id).one()
        assert late.status == ApprovalStatus.REJECTED
        assert late.comment == "too late"
        assert late.decided_at is not None

        order = engine.load_order(order.id)
        assert order.status == S.APPROVED
        assert len(order.status_history) == 3

    def test_pending_queue_per_approver(self, engine, workflow, requester, approvers, chair, webcam):
        head, deputy = approvers
        first = engine.create_order(requester, "CC-001", [{"product_id": chair.id, "quantity": 1}])
        second = engine.create_order(
            requester, "CC-001", [{"product_id": webcam.id, "quantity": 1}], special_request="Blue"
        )
        engine.create_order(requester, "CC-001", [{"product_id": webcam.id, "quantity": 1}])

        assert [a.order_id for a in workflow.list_pending(head.id)] == [first.id, second.id]

        workflow.decide_approval(first.id, head.id, True)
        assert [a.order_id for a in workflow.list_pending(head.id)] == [second.id]
        # The deputy's sibling on the decided order can no longer move it
        assert [a.order_id for a in workflow.list_pending(deputy.id)] == [second.id]


class TestDecisionPreconditions:
    @pytest.fixture
    def order(self, engine, requester, approver, chair):
        return engine.create_order(requester, "CC-001", [{"product_id": chair.id, "quantity": 1}])

    def test_second_decision_by_same_approver(self, workflow, order, approver):
        workflow.decide_approval(order.id, approver.id, True)
        with pytest.raises(ApprovalNotFoundError) as exc_info:
            workflow.decide_approval(order.id, approver.id, False)
        assert exc_info.value.status_code == 404
        assert exc_info.value.to_dict()["approver_id"] == approver.id

    def test_unassigned_approver(self, engine, workflow, order, make_user):
        outsider = make_user("finance-head@bund.de", Role.APPROVER, department="Finance")
        with pytest.raises(ApprovalNotFoundError):
            workflow.decide_approval(order.id, outsider.id, True)
        assert engine.load_order(order.id).status == S.PENDING_APPROVAL

    def test_unknown_order(self, workflow, approver):
        with pytest.raises(ApprovalNotFoundError):
            workflow.decide_approval(4242, approver.id, True)

    @pytest.mark.parametrize("approved", [None, "yes", 1])
    def test_approved_must_be_boolean(self, engine, workflow, order, approver, approved):
        with pytest.raises(ValidationError):
            workflow.decide_approval(order.id, approver.id, approved)
        assert engine.load_order(order.id).approvals[0].status == ApprovalStatus.PENDING

    def test_order_moved_on_by_staff(self, engine, workflow, order, approver, it_support):
        engine.transition_status(order.id, S.ON_HOLD, Role.IT_SUPPORT, it_support.id)

        with pytest.raises(OrderNotPendingApprovalError):
            workflow.decide_approval(order.id, approver.id, True)

        order = engine.load_order(order.id)
        assert order.status == S.ON_HOLD
        assert order.approvals[0].status == ApprovalStatus.APPROVED


class TestDecisionsThroughStatusMoves:
    @pytest.fixture
    def order(self, engine, requester, approver, chair):
        return engine.create_order(requester, "CC-001", [{"product_id": chair.id, "quantity": 1}])

    def test_approver_from_another_department_cannot_approve(
        self, engine, workflow, db_session, order, approver, make_user
    ):
        outsider = make_user("finance-head@bund.de", Role.APPROVER, department="Finance")

        with pytest.raises(ApprovalNotFoundError) as exc_info:
            engine.transition_status(order.id, S.APPROVED, Role.APPROVER, outsider.id)
        assert exc_info.value.status_code == 404

        order = engine.load_order(order.id)
        assert order.status == S.PENDING_APPROVAL
        assert [(a.approver_id, a.status) for a in order.approvals] == [(approver.id, ApprovalStatus.PENDING)]
        assert [a.order_id for a in workflow.list_pending(approver.id)] == [order.id]

        denied = db_session.query(SecurityEvent).filter_by(event_type="TRANSITION_DENIED").one()
        assert denied.user_id == outsider.id
        assert denied.action == "TRANSITION:PENDING_APPROVAL->APPROVED"

    @pytest.mark.parametrize("target,decision", [
        (S.APPROVED, ApprovalStatus.APPROVED),
        (S.REJECTED, ApprovalStatus.REJECTED),
    ])
    def test_assigned_approver_resolves_own_approval(
        self, engine, workflow, order, approver, target, decision
    ):
        updated = engine.transition_status(order.id, target, Role.APPROVER, approver.id, note=" checked ")

        assert updated.status == target
        approval = updated.approvals[0]
        assert approval.status == decision
        assert approval.comment == "checked"
        assert approval.decided_at is not None
        assert workflow.list_pending(approver.id) == []

    def test_admin_may_overrule_open_approvals(self, engine, workflow, order, approver, admin):
        updated = engine.transition_status(order.id, S.REJECTED, Role.ADMIN, admin.id, note="Budget freeze")

        assert updated.status == S.REJECTED
        assert updated.status_history[-1].changed_by_user_id == admin.id
        assert workflow.list_pending(approver.id) == []

    def test_open_approvals_still_bind_after_hold(self, engine, order, it_support, make_user):
        outsider = make_user("finance-head@bund.de", Role.APPROVER, department="Finance")
        engine.transition_status(order.id, S.ON_HOLD, Role.IT_SUPPORT, it_support.id)
        engine.transition_status(order.id, S.IN_REVIEW, Role.IT_SUPPORT, it_support.id)

        with pytest.raises(ApprovalNotFoundError):
            engine.transition_status(order.id, S.APPROVED, Role.APPROVER, outsider.id)
        assert engine.load_order(order.id).status == S.IN_REVIEW

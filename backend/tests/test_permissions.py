"""
Role permission matrix tests.

Verifies:
- Each role's permitted target set
- can_user_transition holds only when the edge exists AND the role is permitted
- Illegal edges are reported before missing permissions
- Terminal statuses reject every role with IllegalTransitionError
"""

import itertools

import pytest

from portal.errors import IllegalTransitionError, UnauthorizedTransitionError, ValidationError
from portal.models import OrderStatus as S, Role
from portal.permissions import ROLE_TARGET_STATUSES, get_role, get_target_statuses, validate_role
from portal.services import permission_service
from portal.services.lifecycle_service import TERMINAL_STATUSES, is_legal_transition


OPERATIONAL = {
    S.IN_REVIEW, S.ORDERED, S.ORDER_CONFIRMED, S.IN_TRANSIT, S.DELIVERED,
    S.NOTIFIED, S.INVOICE_VERIFIED, S.COMPLETED, S.CANCELLED, S.ON_HOLD,
}


class TestRoleMatrix:
    def test_requester_cannot_drive_transitions(self):
        assert get_target_statuses(Role.REQUESTER) == frozenset()

    @pytest.mark.parametrize("role", [Role.IT_SUPPORT, Role.EMPFANG])
    def test_operational_roles(self, role):
        assert get_target_statuses(role) == OPERATIONAL
        assert not permission_service.is_authorized(role, S.APPROVED)
        assert not permission_service.is_authorized(role, S.REJECTED)

    def test_approver_only_resolves_approvals(self):
        assert get_target_statuses(Role.APPROVER) == {S.APPROVED, S.REJECTED}

    def test_admin_may_target_everything(self):
        assert get_target_statuses(Role.ADMIN) == set(S)

    def test_every_role_is_mapped(self):
        assert set(ROLE_TARGET_STATUSES) == set(Role)

    def test_role_coercion(self):
        assert get_role("it_support") is Role.IT_SUPPORT
        assert validate_role("EMPFANG")
        assert not validate_role("JANITOR")
        with pytest.raises(ValidationError):
            get_role("JANITOR")


class TestRoleGatingIndependence:
    def test_both_checks_must_hold(self):
        for role, from_status, to_status in itertools.product(Role, S, S):
            legal = is_legal_transition(from_status, to_status)
            authorized = permission_service.is_authorized(role, to_status)
            assert permission_service.can_user_transition(role, from_status, to_status) is (
                legal and authorized
            ), f"{role.value}: {from_status.value} -> {to_status.value}"

    def test_approver_cannot_park_order_in_review(self):
        # Structurally reachable, but not an approver's target
        assert is_legal_transition(S.IN_REVIEW, S.ON_HOLD)
        assert not permission_service.can_user_transition(Role.APPROVER, S.IN_REVIEW, S.ON_HOLD)
        with pytest.raises(UnauthorizedTransitionError):
            permission_service.require_transition(Role.APPROVER, S.IN_REVIEW, S.ON_HOLD)

    def test_approver_may_approve_from_review(self):
        assert permission_service.can_user_transition(Role.APPROVER, S.IN_REVIEW, S.APPROVED)
        permission_service.require_transition(Role.APPROVER, S.IN_REVIEW, S.APPROVED)

    def test_illegal_edge_reported_before_permission(self):
        # REQUESTER has no targets at all, but a missing edge still wins
        with pytest.raises(IllegalTransitionError) as exc_info:
            permission_service.require_transition(Role.REQUESTER, S.NEW, S.COMPLETED)
        assert not isinstance(exc_info.value, UnauthorizedTransitionError)
        assert exc_info.value.details() == {"from_status": "NEW", "to_status": "COMPLETED"}

    def test_unauthorized_error_details(self):
        with pytest.raises(UnauthorizedTransitionError) as exc_info:
            permission_service.require_transition(Role.EMPFANG, S.PENDING_APPROVAL, S.APPROVED)
        assert exc_info.value.status_code == 403
        assert exc_info.value.to_dict()["role"] == "EMPFANG"
        assert exc_info.value.to_dict()["to_status"] == "APPROVED"

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_reject_every_role(self, terminal):
        for role, target in itertools.product(Role, S):
            with pytest.raises(IllegalTransitionError):
                permission_service.require_transition(role, terminal, target)


class TestAvailableTransitions:
    def test_it_support_from_review(self):
        assert permission_service.available_transitions(Role.IT_SUPPORT, S.IN_REVIEW) == [S.ON_HOLD]

    def test_admin_from_review(self):
        assert permission_service.available_transitions(Role.ADMIN, S.IN_REVIEW) == [
            S.APPROVED, S.ON_HOLD, S.PENDING_APPROVAL, S.REJECTED,
        ]

    def test_requester_gets_nothing(self):
        for status in S:
            assert permission_service.available_transitions(Role.REQUESTER, status) == []


class TestInternalComments:
    @pytest.mark.parametrize("role", [Role.IT_SUPPORT, Role.EMPFANG, Role.APPROVER, Role.ADMIN])
    def test_staff_may_write_internal_comments(self, role):
        assert permission_service.can_write_internal_comment(role)

    def test_requester_may_not(self):
        assert not permission_service.can_write_internal_comment(Role.REQUESTER)

# Overview: Service-layer operations for approvals; resolves decisions and syncs the order.

"""
Approval Sub-workflow

LIFECYCLE:
    Approval: PENDING -> APPROVED | REJECTED (exactly once)
    Order:    PENDING_APPROVAL -> APPROVED | REJECTED (first decision wins)

A decision is only possible while the approver holds a PENDING approval
for the order. The first decision moves the order. Sibling approvals
(other approvers in the same department) stay PENDING; if one of them
decides later, that decision is still recorded but the order is left
alone and OrderNotPendingApprovalError is raised. Siblings drop out of
list_pending() as soon as the order leaves PENDING_APPROVAL.

Role gating happens at the boundary (APPROVER/ADMIN only). Holding a
pending approval is what entitles the caller to decide, so the role
matrix is not consulted again here.
"""

from __future__ import annotations

from ..errors import ApprovalNotFoundError, OrderNotPendingApprovalError, ValidationError
from ..models import Approval, ApprovalStatus, Order, OrderStatus
from .concurrency import lock_for_update
from .order_service import OrderLifecycleEngine


class ApprovalWorkflow:
    def __init__(self, engine: OrderLifecycleEngine):
        self.engine = engine

    @property
    def session(self):
        return self.engine.session

    def decide_approval(
        self,
        order_id: int,
        approver_id: int,
        approved: bool,
        comment: str | None = None,
    ) -> Approval:
        """
        Record an approver's decision and move the order accordingly.

        Args:
            order_id: Order being decided
            approver_id: Deciding user (must hold a PENDING approval)
            approved: True to approve, False to reject
            comment: Optional note, also used as the history note

        Returns:
            The decided Approval

        Raises:
            ValidationError: approved is not a boolean
            ApprovalNotFoundError: No PENDING approval for (order, approver)
            OrderNotPendingApprovalError: Decision recorded, but the order
                already left PENDING_APPROVAL
        """
        if not isinstance(approved, bool):
            raise ValidationError("approved must be a boolean")

        def _op():
            approval = lock_for_update(
                self.session.query(Approval).filter(
                    Approval.order_id == order_id,
                    Approval.approver_id == approver_id,
                    Approval.status == ApprovalStatus.PENDING,
                )
            ).first()
            if approval is None:
                raise ApprovalNotFoundError(order_id, approver_id)

            order = self.engine.load_order(order_id, for_update=True)

            approval.status = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
            approval.comment = (comment or "").strip() or None
            approval.decided_at = self.engine.clock()

            if order.status != OrderStatus.PENDING_APPROVAL:
                # Lost the race: keep this decision, leave the order alone
                current = order.status
                self.session.commit()
                raise OrderNotPendingApprovalError(order_id, current)

            target = OrderStatus.APPROVED if approved else OrderStatus.REJECTED
            self.engine.record_transition(order, target, approver_id, approval.comment)
            self.session.commit()
            return approval

        return self.engine.run(_op)

    def list_pending(self, approver_id: int, *, limit: int = 200) -> list[Approval]:
        """
        PENDING approvals assigned to an approver, oldest first.

        Only orders still waiting in PENDING_APPROVAL are listed; siblings
        of an already decided order can no longer move it.
        """
        return (
            self.session.query(Approval)
            .join(Order, Approval.order_id == Order.id)
            .filter(
                Approval.approver_id == approver_id,
                Approval.status == ApprovalStatus.PENDING,
                Order.status == OrderStatus.PENDING_APPROVAL,
            )
            .order_by(Approval.created_at.asc(), Approval.id.asc())
            .limit(limit)
            .all()
        )

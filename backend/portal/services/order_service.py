# Overview: Service-layer operations for orders; the order lifecycle engine.

"""
Order Lifecycle Engine

================================================================================
PURPOSE: Sole mutator of Order.status and sole writer of StatusHistory
================================================================================

Every status change goes through record_transition(), which updates the
order and appends exactly one history row in the same unit of work. The
caller commits; nothing here commits half a transition.

CREATE:
    NEW is written with a creation history row (from_status NULL).
    If the order needs approval, one PENDING Approval is opened per
    approver and the order is routed NEW -> PENDING_APPROVAL (second
    history row). If nobody can approve, NoApproverFoundError is raised
    and nothing is persisted.
    An order number taken by a concurrent commit is retried with a
    fresh number.

TRANSITION:
    load (locked) -> legality -> role permission -> approval gate
    -> resolve the actor's approval -> update + append -> commit
    While approvals are open, APPROVED/REJECTED need an assigned approver
    (whose approval is decided in the same commit) or an ADMIN override.
    Stale writes (version_id mismatch) are retried from the load step,
    so a losing writer is evaluated against the winner's status.

COLLABORATORS (constructor-injected, no module globals):
    session         SQLAlchemy session
    clock           () -> datetime
    order_numbers   (datetime) -> str
    find_products   (session, ids) -> {id: Product}
    find_approvers  (session, department, fallback_to_admin=..., exclude_user_id=...) -> [User]
================================================================================
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError

from ..errors import (
    ApprovalNotFoundError,
    ApprovalRequiredError,
    ConflictError,
    EmptyOrderError,
    IllegalTransitionError,
    NoApproverFoundError,
    OrderAccessDeniedError,
    OrderNotFoundError,
    ProductNotFoundError,
    UnauthorizedCommentError,
    UnauthorizedTransitionError,
    ValidationError,
    WorkflowError,
)
from ..models import (
    Approval,
    ApprovalStatus,
    Comment,
    Order,
    OrderItem,
    OrderStatus,
    Role,
    StatusHistory,
)
from ..permissions import STAFF_ROLES, get_role
from ..time_utils import utcnow
from . import catalog_service, directory_service, permission_service
from .approval_rules import products_require_approval
from .concurrency import lock_for_update, run_with_retry
from .identifier_service import generate_order_number
from .lifecycle_service import get_status, is_legal_transition


APPROVAL_ROUTING_NOTE = "Approval required"

APPROVAL_DECISIONS = {
    OrderStatus.APPROVED: ApprovalStatus.APPROVED,
    OrderStatus.REJECTED: ApprovalStatus.REJECTED,
}


class OrderLifecycleEngine:
    def __init__(
        self,
        session,
        *,
        clock=utcnow,
        order_numbers=generate_order_number,
        find_products=catalog_service.find_active_products,
        find_approvers=directory_service.find_approvers,
        fallback_to_admin: bool = True,
        order_number_attempts: int = 5,
        retry_attempts: int = 3,
        retry_backoff: float = 0.1,
    ):
        self.session = session
        self.clock = clock
        self._order_numbers = order_numbers
        self._find_products = find_products
        self._find_approvers = find_approvers
        self._fallback_to_admin = fallback_to_admin
        self._order_number_attempts = order_number_attempts
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff

    @classmethod
    def from_config(cls, session, config, **overrides) -> "OrderLifecycleEngine":
        """Build an engine from a Flask config mapping."""
        options = {
            "fallback_to_admin": config.get("APPROVER_FALLBACK_TO_ADMIN", True),
            "order_number_attempts": config.get("ORDER_NUMBER_ATTEMPTS", 5),
            "retry_attempts": config.get("TRANSITION_RETRY_ATTEMPTS", 3),
        }
        options.update(overrides)
        return cls(session, **options)

    # ------------------------------------------------------------------
    # Unit-of-work helpers
    # ------------------------------------------------------------------

    def run(self, func):
        """
        Run func as one retryable unit of work.

        Domain errors roll back whatever func staged and propagate
        unchanged; concurrency failures are retried.
        """
        def _guarded():
            try:
                return func()
            except WorkflowError:
                self.session.rollback()
                raise

        return run_with_retry(
            self.session,
            _guarded,
            attempts=self._retry_attempts,
            backoff_base=self._retry_backoff,
        )

    def load_order(self, order_id: int, *, for_update: bool = False) -> Order:
        query = self.session.query(Order).filter(Order.id == order_id)
        if for_update:
            query = lock_for_update(query)
        order = query.first()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(
        self,
        requester,
        cost_center: str,
        items: Iterable[Any],
        special_request: str | None = None,
        justification: str | None = None,
    ) -> Order:
        """
        Persist a new order in NEW and route it for approval if needed.

        Args:
            requester: User placing the order (needs .id and .department)
            cost_center: Cost center to book against (required)
            items: Sequence of {"product_id": int, "quantity": int}
            special_request: Optional free text; non-blank forces approval
            justification: Optional free text for the approver

        Returns:
            The committed Order (NEW, or PENDING_APPROVAL)

        Raises:
            EmptyOrderError: No items
            ValidationError: Malformed item or missing cost center
            ProductNotFoundError: Unknown or inactive products
            NoApproverFoundError: Approval needed but nobody to route it to
        """
        lines = _normalize_items(items)
        cost_center = (cost_center or "").strip()
        if not cost_center:
            raise ValidationError("cost_center is required")

        product_ids = [product_id for product_id, _ in lines]
        products = self._find_products(self.session, product_ids)
        missing = [product_id for product_id in product_ids if product_id not in products]
        if missing:
            raise ProductNotFoundError(missing)

        needs_approval = products_require_approval(
            (products[product_id] for product_id in product_ids),
            special_request,
        )
        approvers = self._approvers_for(requester) if needs_approval else []

        for attempt in range(1, self._order_number_attempts + 1):
            order = self._stage_order(
                requester, cost_center, lines, special_request, justification, needs_approval, approvers
            )
            try:
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                if not _is_order_number_collision(exc):
                    raise
                if attempt == self._order_number_attempts:
                    raise ConflictError(
                        f"Could not allocate a free order number after {attempt} attempts"
                    ) from exc
            except Exception:
                self.session.rollback()
                raise
            else:
                return order

    def _stage_order(
        self, requester, cost_center, lines, special_request, justification, needs_approval, approvers
    ) -> Order:
        now = self.clock()
        order = Order(
            order_number=self._allocate_order_number(now),
            status=OrderStatus.NEW,
            requester_id=requester.id,
            cost_center=cost_center,
            special_request=_clean_text(special_request),
            justification=_clean_text(justification),
            requires_approval=needs_approval,
            created_at=now,
            updated_at=now,
        )
        self.session.add(order)
        for product_id, quantity in lines:
            self.session.add(OrderItem(order=order, product_id=product_id, quantity=quantity))

        self._append_history(order, None, OrderStatus.NEW, requester.id, None, now)

        if needs_approval:
            self._open_approvals(order, approvers, now)
            order.status = OrderStatus.PENDING_APPROVAL
            self._append_history(
                order,
                OrderStatus.NEW,
                OrderStatus.PENDING_APPROVAL,
                requester.id,
                APPROVAL_ROUTING_NOTE,
                now,
            )
        return order

    def _allocate_order_number(self, now) -> str:
        for _ in range(self._order_number_attempts):
            candidate = self._order_numbers(now)
            taken = (
                self.session.query(Order.id)
                .filter(Order.order_number == candidate)
                .first()
            )
            if taken is None:
                return candidate
        raise ConflictError(
            f"Could not allocate a free order number after {self._order_number_attempts} attempts"
        )

    def _approvers_for(self, requester) -> list:
        approvers = self._find_approvers(
            self.session,
            requester.department,
            fallback_to_admin=self._fallback_to_admin,
            exclude_user_id=requester.id,
        )
        if not approvers:
            raise NoApproverFoundError(requester.department)
        return approvers

    def _open_approvals(self, order: Order, approvers, now) -> list[Approval]:
        opened = []
        for approver in approvers:
            approval = Approval(
                order=order,
                approver_id=approver.id,
                status=ApprovalStatus.PENDING,
                created_at=now,
            )
            self.session.add(approval)
            opened.append(approval)
        return opened

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def transition_status(
        self,
        order_id: int,
        target_status,
        actor_role,
        actor_id: int,
        note: str | None = None,
    ) -> Order:
        """
        Move an order to target_status on behalf of a staff member.

        Raises:
            ValidationError: Unknown status or role
            OrderNotFoundError: No such order
            IllegalTransitionError: Edge not in the transition table
            ApprovalRequiredError: Approval-gated order skipping PENDING_APPROVAL
            UnauthorizedTransitionError: Role may not drive orders into target
            ApprovalNotFoundError: Deciding open approvals without holding one
            NoApproverFoundError: Entering PENDING_APPROVAL with nobody to approve
        """
        target = get_status(target_status)
        role = get_role(actor_role)

        def _op():
            order = self.load_order(order_id, for_update=True)
            from_status = order.status
            try:
                permission_service.require_transition(role, from_status, target)
                if target in APPROVAL_DECISIONS:
                    self._resolve_own_approval(order, role, actor_id, target, note)
            except (UnauthorizedTransitionError, ApprovalNotFoundError) as exc:
                self.session.rollback()
                permission_service.log_security_event(
                    actor_id,
                    "TRANSITION_DENIED",
                    False,
                    resource=f"order:{order_id}",
                    action=f"TRANSITION:{from_status.value}->{target.value}",
                    reason=str(exc),
                    session=self.session,
                )
                raise

            if target == OrderStatus.PENDING_APPROVAL:
                self._ensure_pending_approvals(order)

            self.record_transition(order, target, actor_id, note)
            self.session.commit()
            return order

        return self.run(_op)

    def record_transition(
        self,
        order: Order,
        to_status,
        actor_id: int,
        note: str | None = None,
    ) -> StatusHistory:
        """
        Apply one legal status change and append its history row.

        Does NOT check role permissions and does NOT commit: callers
        authorize first and commit the surrounding unit of work.

        Raises:
            IllegalTransitionError: Edge not in the transition table
            ApprovalRequiredError: Approval-gated order skipping PENDING_APPROVAL
        """
        to_status = get_status(to_status)
        from_status = order.status
        if not is_legal_transition(from_status, to_status):
            raise IllegalTransitionError(from_status, to_status)
        self._check_approval_gate(order, to_status)

        now = self.clock()
        order.status = to_status
        order.updated_at = now
        return self._append_history(order, from_status, to_status, actor_id, note, now)

    def _append_history(self, order, from_status, to_status, actor_id, note, now) -> StatusHistory:
        entry = StatusHistory(
            order=order,
            from_status=from_status,
            to_status=to_status,
            changed_by_user_id=actor_id,
            note=_clean_text(note),
            changed_at=now,
        )
        self.session.add(entry)
        return entry

    def _check_approval_gate(self, order: Order, to_status: OrderStatus) -> None:
        # Approval-gated orders reach APPROVED only through PENDING_APPROVAL
        if to_status != OrderStatus.APPROVED or not order.requires_approval:
            return
        if order.status == OrderStatus.PENDING_APPROVAL:
            return
        if any(entry.to_status == OrderStatus.PENDING_APPROVAL for entry in order.status_history):
            return
        raise ApprovalRequiredError(order.status, to_status)

    def _resolve_own_approval(self, order: Order, role: Role, actor_id: int, target, note) -> None:
        # Open approvals are closed by an assigned approver or overruled by ADMIN
        pending = [approval for approval in order.approvals if approval.status == ApprovalStatus.PENDING]
        if not pending and order.status != OrderStatus.PENDING_APPROVAL:
            return
        own = next((approval for approval in pending if approval.approver_id == actor_id), None)
        if own is None:
            if role == Role.ADMIN:
                return
            raise ApprovalNotFoundError(order.id, actor_id)
        own.status = APPROVAL_DECISIONS[target]
        own.comment = _clean_text(note)
        own.decided_at = self.clock()

    def _ensure_pending_approvals(self, order: Order) -> None:
        has_pending = any(
            approval.status == ApprovalStatus.PENDING for approval in order.approvals
        )
        if not has_pending:
            self._open_approvals(order, self._approvers_for(order.requester), self.clock())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int, viewer) -> Order:
        """Load an order; requesters may only see their own."""
        order = self.load_order(order_id)
        _require_access(order, viewer)
        return order

    def list_orders(self, viewer, status=None, *, limit: int = 200) -> list[Order]:
        """Newest first. Requesters only see their own orders."""
        query = self.session.query(Order)
        if get_role(viewer.role) not in STAFF_ROLES:
            query = query.filter(Order.requester_id == viewer.id)
        if status:
            query = query.filter(Order.status == get_status(status))
        return (
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .all()
        )

    def available_transitions(self, order: Order, role) -> list[OrderStatus]:
        return permission_service.available_transitions(role, order.status)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(self, order_id: int, author, content: str, is_internal: bool = False) -> Comment:
        """
        Attach a comment to an order.

        Raises:
            ValidationError: Blank content or non-boolean is_internal
            OrderNotFoundError: No such order
            OrderAccessDeniedError: Requester commenting on someone else's order
            UnauthorizedCommentError: Non-staff writing an internal comment
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("content is required")
        if not isinstance(is_internal, bool):
            raise ValidationError("is_internal must be a boolean")

        order = self.load_order(order_id)
        _require_access(order, author)

        if is_internal and not permission_service.can_write_internal_comment(author.role):
            permission_service.log_security_event(
                author.id,
                "COMMENT_DENIED",
                False,
                resource=f"order:{order_id}",
                action="INTERNAL_COMMENT",
                reason="Role may not create internal comments",
                session=self.session,
            )
            raise UnauthorizedCommentError(get_role(author.role))

        comment = Comment(
            order=order,
            author_id=author.id,
            content=content,
            is_internal=is_internal,
            created_at=self.clock(),
        )
        self.session.add(comment)
        self.session.commit()
        return comment


def _is_order_number_collision(exc: IntegrityError) -> bool:
    return "order_number" in str(exc.orig)


def _require_access(order: Order, viewer) -> None:
    if get_role(viewer.role) == Role.REQUESTER and order.requester_id != viewer.id:
        raise OrderAccessDeniedError(order.id)


def _normalize_items(items) -> list[tuple[int, int]]:
    if not items:
        raise EmptyOrderError()
    if isinstance(items, (str, bytes, dict)):
        raise ValidationError("items must be a list")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = _strict_int(item.get("product_id"), f"items[{index}].product_id")
        quantity = _strict_int(item.get("quantity"), f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be a positive integer")
        lines.append((product_id, quantity))
    return lines


def _strict_int(value, field: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    return value


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None

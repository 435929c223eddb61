# Overview: Domain error taxonomy for the order workflow.

"""
Order Workflow Errors

Every error raised by the workflow core derives from WorkflowError and carries:
- status_code: the HTTP status the boundary should answer with
- kind: a stable machine-readable error name
- to_dict(): the error kind plus the identifiers involved

The boundary renders to_dict() as-is, so payloads must never contain
storage internals (SQL, driver messages).

HTTP MAPPING:
    400  input validation, unknown products, illegal transitions
    403  role not permitted for the target status
    404  order or pending approval not found
    409  concurrent change (order left PENDING_APPROVAL, number exhaustion)
    422  approval required but nobody to route it to
"""

from __future__ import annotations

from typing import Any, Iterable


class WorkflowError(Exception):
    """Base class for all order workflow errors."""

    status_code = 400
    kind = "workflow_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        payload = {"error": self.kind, "message": self.message}
        payload.update(self.details())
        return payload


class ValidationError(WorkflowError):
    """400-level input problem."""

    kind = "validation_error"


class EmptyOrderError(ValidationError):
    kind = "empty_order"

    def __init__(self):
        super().__init__("Order must contain at least one item")


class ProductNotFoundError(WorkflowError):
    """One or more referenced products are missing or inactive."""

    kind = "product_not_found"

    def __init__(self, product_ids: Iterable[int]):
        self.product_ids = sorted(set(product_ids))
        super().__init__(
            f"Products not found: {', '.join(str(p) for p in self.product_ids)}"
        )

    def details(self) -> dict[str, Any]:
        return {"product_ids": self.product_ids}


class OrderNotFoundError(WorkflowError):
    status_code = 404
    kind = "order_not_found"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")

    def details(self) -> dict[str, Any]:
        return {"order_id": self.order_id}


class ApprovalNotFoundError(WorkflowError):
    """
    No PENDING approval exists for (order, approver).

    Covers both "already decided" and "never assigned to this approver".
    """

    status_code = 404
    kind = "approval_not_found"

    def __init__(self, order_id: int, approver_id: int):
        self.order_id = order_id
        self.approver_id = approver_id
        super().__init__(
            f"No pending approval for order {order_id} and approver {approver_id}"
        )

    def details(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "approver_id": self.approver_id}


class IllegalTransitionError(WorkflowError):
    """The requested edge does not exist in the transition table."""

    kind = "illegal_transition"

    def __init__(self, from_status, to_status, message: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message
            or f"Cannot transition from {_value(from_status)} to {_value(to_status)}"
        )

    def details(self) -> dict[str, Any]:
        return {
            "from_status": _value(self.from_status),
            "to_status": _value(self.to_status),
        }


class ApprovalRequiredError(IllegalTransitionError):
    """Order requires approval but has never been through PENDING_APPROVAL."""

    kind = "approval_required"

    def __init__(self, from_status, to_status):
        super().__init__(
            from_status,
            to_status,
            f"Order requires approval before it can move to {_value(to_status)}",
        )


class UnauthorizedTransitionError(WorkflowError):
    """The edge is legal but the acting role may not drive orders into it."""

    status_code = 403
    kind = "unauthorized_transition"

    def __init__(self, role, to_status):
        self.role = role
        self.to_status = to_status
        super().__init__(
            f"Role {_value(role)} may not move orders to {_value(to_status)}"
        )

    def details(self) -> dict[str, Any]:
        return {"role": _value(self.role), "to_status": _value(self.to_status)}


class UnauthorizedCommentError(WorkflowError):
    status_code = 403
    kind = "unauthorized_comment"

    def __init__(self, role):
        self.role = role
        super().__init__(f"Role {_value(role)} may not create internal comments")

    def details(self) -> dict[str, Any]:
        return {"role": _value(self.role)}


class OrderAccessDeniedError(WorkflowError):
    status_code = 403
    kind = "order_access_denied"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Access to order {order_id} denied")

    def details(self) -> dict[str, Any]:
        return {"order_id": self.order_id}


class OrderNotPendingApprovalError(WorkflowError):
    """
    An approval decision arrived after the order already left PENDING_APPROVAL.

    The decision itself is persisted; only the order transition is refused.
    """

    status_code = 409
    kind = "order_not_pending_approval"

    def __init__(self, order_id: int, status):
        self.order_id = order_id
        self.status = status
        super().__init__(
            f"Order {order_id} is no longer pending approval (status {_value(status)})"
        )

    def details(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "status": _value(self.status)}


class NoApproverFoundError(WorkflowError):
    status_code = 422
    kind = "no_approver_found"

    def __init__(self, department: str | None):
        self.department = department
        super().__init__(f"No approver found for department {department!r}")

    def details(self) -> dict[str, Any]:
        return {"department": self.department}


class ConflictError(WorkflowError):
    """409-level business rule conflict (e.g., order number exhaustion)."""

    status_code = 409
    kind = "conflict"


def _value(v):
    return getattr(v, "value", v)

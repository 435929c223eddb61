# backend/portal/routes/orders.py
"""
Order API Routes

These routes expose the order workflow:
- POST /api/orders                      - Create an order (NEW or PENDING_APPROVAL)
- GET  /api/orders                      - List orders (requesters see their own)
- GET  /api/orders/:id                  - Order with items, history, approvals, comments
- GET  /api/orders/:id/transitions      - Targets the caller may choose right now
- PUT  /api/orders/:id/status           - Staff status transition
- POST /api/orders/:id/approve          - Approver decision (APPROVER/ADMIN)
- POST /api/orders/:id/comments         - Add a comment

SECURITY:
- All routes require authentication
- Actor identity and role come from the authenticated session (g.current_user),
  NOT from the request body. This prevents spoofing of the audit trail.
- Role gating for status changes happens in the engine, so the 400/403
  distinction (illegal edge vs. missing permission) is preserved.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import WorkflowError
from ..extensions import db
from ..models import Role
from ..permissions import get_role
from ..services.approval_service import ApprovalWorkflow
from ..services.order_service import OrderLifecycleEngine
from ..decorators import require_auth, require_roles


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _engine() -> OrderLifecycleEngine:
    return OrderLifecycleEngine.from_config(db.session, current_app.config)


def _error(exc: WorkflowError):
    return jsonify(exc.to_dict()), exc.status_code


def _order_payload(order):
    is_staff = get_role(g.current_user.role) != Role.REQUESTER
    return order.to_dict(include_details=True, include_internal=is_staff)


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order for the authenticated user.

    Request body:
        {
            "items": [{"product_id": 1, "quantity": 2}, ...],
            "cost_center": "CC-001",
            "special_request": "optional",
            "justification": "optional"
        }

    Error responses:
        400: Empty order, malformed items, missing cost center, unknown products
        409: No free order number
        422: Approval required but no approver available
    """
    data = request.get_json(silent=True) or {}
    try:
        order = _engine().create_order(
            g.current_user,
            data.get("cost_center"),
            data.get("items"),
            special_request=data.get("special_request"),
            justification=data.get("justification"),
        )
        current_app.logger.info(
            "Order %s created by user %s with status %s",
            order.order_number, g.current_user.id, order.status.value,
        )
        return jsonify({"order": _order_payload(order)}), 201

    except WorkflowError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List orders, newest first.

    Query parameters:
        status (optional): Filter by status
        limit (optional): Max results (default 200)
    """
    try:
        limit = request.args.get("limit", type=int, default=200)
        orders = _engine().list_orders(
            g.current_user,
            status=request.args.get("status"),
            limit=limit,
        )
        return jsonify({
            "orders": [order.to_dict() for order in orders],
            "count": len(orders),
        }), 200

    except WorkflowError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = _engine().get_order(order_id, g.current_user)
        return jsonify({"order": _order_payload(order)}), 200

    except WorkflowError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/transitions")
@require_auth
def list_transitions_route(order_id: int):
    try:
        engine = _engine()
        order = engine.get_order(order_id, g.current_user)
        targets = engine.available_transitions(order, g.current_user.role)
        return jsonify({
            "order_id": order.id,
            "status": order.status.value,
            "transitions": [target.value for target in targets],
        }), 200

    except WorkflowError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list transitions")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/status")
@require_auth
def transition_status_route(order_id: int):
    """
    Move an order to a new status.

    Request body:
        {"status": "ORDERED", "note": "optional"}

    Error responses:
        400: Missing/unknown status, or edge not in the transition table
        403: Role may not move orders into the requested status
        404: Order not found, or APPROVED/REJECTED while the caller holds
             none of the order's open approvals (ADMIN excepted)
    """
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return jsonify({"error": "validation_error", "message": "status is required"}), 400

    try:
        user = g.current_user
        order = _engine().transition_status(
            order_id,
            data["status"],
            user.role,
            user.id,
            note=data.get("note"),
        )
        current_app.logger.info(
            "Order %s moved to %s by user %s",
            order.order_number, order.status.value, user.id,
        )
        return jsonify({"order": _order_payload(order)}), 200

    except WorkflowError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/approve")
@require_auth
@require_roles(Role.APPROVER, Role.ADMIN)
def decide_approval_route(order_id: int):
    """
    Approve or reject an order as the authenticated approver.

    Request body:
        {"approved": true, "comment": "optional"}

    Error responses:
        400: approved missing or not a boolean
        403: Not an APPROVER/ADMIN
        404: No pending approval for this order and approver
        409: Decision recorded but the order already left PENDING_APPROVAL
    """
    data = request.get_json(silent=True) or {}
    try:
        workflow = ApprovalWorkflow(_engine())
        approval = workflow.decide_approval(
            order_id,
            g.current_user.id,
            data.get("approved"),
            comment=data.get("comment"),
        )
        current_app.logger.info(
            "Approval %s on order %s decided %s by user %s",
            approval.id, order_id, approval.status.value, g.current_user.id,
        )
        return jsonify({"approval": approval.to_dict()}), 200

    except WorkflowError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to process approval")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/comments")
@require_auth
def add_comment_route(order_id: int):
    """
    Request body:
        {"content": "text", "is_internal": false}
    """
    data = request.get_json(silent=True) or {}
    try:
        comment = _engine().add_comment(
            order_id,
            g.current_user,
            data.get("content"),
            is_internal=data.get("is_internal", False),
        )
        return jsonify({"comment": comment.to_dict()}), 201

    except WorkflowError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create comment")
        return jsonify({"error": "Internal server error"}), 500

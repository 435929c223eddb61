# backend/portal/routes/approvals.py
"""
Approval queue for the authenticated approver.

- GET /api/approvals/pending - PENDING approvals assigned to the caller
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import Role
from ..services.approval_service import ApprovalWorkflow
from ..services.order_service import OrderLifecycleEngine
from ..decorators import require_auth, require_roles


approvals_bp = Blueprint("approvals", __name__, url_prefix="/api/approvals")


@approvals_bp.get("/pending")
@require_auth
@require_roles(Role.APPROVER, Role.ADMIN)
def list_pending_approvals_route():
    try:
        limit = request.args.get("limit", type=int, default=200)
        workflow = ApprovalWorkflow(OrderLifecycleEngine.from_config(db.session, current_app.config))
        approvals = workflow.list_pending(g.current_user.id, limit=limit)
        return jsonify({
            "approvals": [
                {**approval.to_dict(), "order": approval.order.to_dict()}
                for approval in approvals
            ],
            "count": len(approvals),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to list pending approvals")
        return jsonify({"error": "Internal server error"}), 500

# backend/portal/routes/workflow.py
"""
Static workflow metadata for clients (status labels, edges, terminal flags).

Public: contains no order data.
"""

from flask import Blueprint, jsonify

from ..services.lifecycle_service import describe_statuses


workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/workflow")


@workflow_bp.get("/statuses")
def list_statuses_route():
    return jsonify({"statuses": describe_statuses()}), 200

# backend/portal/routes/logs.py
"""
Client log ingestion.

- POST /api/logs - Browser clients ship log entries (public)
- GET  /api/logs - Recent entries (ADMIN only)
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import WorkflowError
from ..models import Role
from ..services import client_log_service
from ..decorators import require_auth, require_roles


logs_bp = Blueprint("logs", __name__, url_prefix="/api/logs")


@logs_bp.post("")
def ingest_log_route():
    data = request.get_json(silent=True) or {}
    try:
        entry = client_log_service.get_buffer(current_app).append(
            data.get("level"),
            data.get("message"),
            details=data.get("details"),
            session_id=data.get("session_id"),
        )
        current_app.logger.info("Client log [%s]: %s", entry["level"].upper(), entry["message"])
        return jsonify({"success": True}), 200

    except WorkflowError as e:
        return jsonify(e.to_dict()), e.status_code


@logs_bp.get("")
@require_auth
@require_roles(Role.ADMIN)
def list_logs_route():
    limit = request.args.get("limit", type=int, default=100)
    level = request.args.get("level")
    return jsonify(client_log_service.get_buffer(current_app).query(level=level, limit=limit)), 200

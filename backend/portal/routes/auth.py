# backend/portal/routes/auth.py
"""
Authentication routes.

- POST /api/auth/login  - Email sign-in, returns a bearer token
- POST /api/auth/logout - Revoke the current token
- GET  /api/auth/me     - The authenticated user
"""

from datetime import timedelta

from flask import Blueprint, request, jsonify, g, current_app

from ..services import session_service, permission_service
from ..time_utils import to_utc_z
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Request body:
        {"email": "user@example.org"}

    Response:
        {"token": "...", "expires_at": "...", "user": {...}}

    Error responses:
        400: Missing email
        401: Unknown or disabled user
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    if not email:
        return jsonify({"error": "email is required"}), 400

    try:
        user = session_service.find_user_by_email(email)
        if user is None or not user.is_active:
            permission_service.log_security_event(
                user.id if user else None,
                "LOGIN_FAILED",
                False,
                resource="/api/auth/login",
                reason="Unknown or disabled user",
            )
            return jsonify({"error": "Invalid credentials"}), 401

        ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))
        session, token = session_service.create_session(user, ttl=ttl)
        permission_service.log_security_event(user.id, "LOGIN", True, resource="/api/auth/login")

        return jsonify({
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "user": user.to_dict(),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.token)
        permission_service.log_security_event(g.current_user.id, "LOGOUT", True, resource="/api/auth/logout")
        return jsonify({"message": "Logged out"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200

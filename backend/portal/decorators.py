# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import get_role
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip()


def require_auth(f):
    """
    Require authentication.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.token: The plaintext bearer token (for logout)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if user is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles):
    """
    Require the authenticated user to hold one of the given roles.

    Must be applied below @require_auth.
    """
    allowed = {get_role(role) for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            if get_role(g.current_user.role) not in allowed:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(role.value for role in allowed),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

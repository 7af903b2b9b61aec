# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import token_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer access token.

    Sets g.current_user to the authenticated, active User.

    SECURITY: Returns 401 if:
    - No Authorization header / token
    - Invalid or expired token
    - User no longer exists or has been deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        token = auth_header.split(" ", 1)[1].strip() if auth_header.startswith("Bearer ") else ""

        if not token:
            return jsonify({"success": False, "message": "Access token is required"}), 401

        if not token_service.decode_access_token(token):
            return jsonify({"success": False, "message": "Invalid or expired token"}), 401

        user = token_service.user_from_access_token(token)
        if not user:
            return jsonify({"success": False, "message": "Invalid token or user inactive"}), 401

        g.current_user = user

        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """Require the authenticated user to hold ``role``. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"success": False, "message": "Authentication required"}), 401

            if g.current_user.role != role:
                return jsonify({
                    "success": False,
                    "message": f"Access denied. {role} role required.",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


require_admin = require_role("admin")

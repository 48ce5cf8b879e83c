# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid session token.

    Sets g.current_user to the authenticated User.

    SECURITY: Returns 401 if the Authorization header is missing or the token
    is unknown, expired, idle or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require g.current_user.role to be one of roles (use after @require_auth)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_role": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator

# Overview: Flask API routes for auth operations; login, logout and current user.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, bearer_token
from clothpos.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info and session token on success.
    Token must be included in the Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not all([username, password]):
        return jsonify({"error": "username and password required"}), 400

    user = auth_service.authenticate(username, password)
    if not user:
        current_app.logger.info("Failed login for %s from %s", username, request.remote_addr)
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(user.id)
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token())
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200

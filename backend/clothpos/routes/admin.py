# Overview: Flask API routes for admin operations; user management.

"""
Admin routes for user management.

All endpoints require an admin session, except that any user may change
their own password.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..services.auth_service import LastAdminError, UsernameTakenError, UserNotFoundError
from ..validation import ValidationError
from ..decorators import require_auth, require_role

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_role("admin")
def list_users():
    users = auth_service.list_users()
    return jsonify({"users": users, "count": len(users)}), 200


@admin_bp.post("/users")
@require_auth
@require_role("admin")
def create_user():
    """Body: {username, password, role}."""
    data = request.get_json(silent=True) or {}

    try:
        user_id = auth_service.create_user(
            data.get("username"), data.get("password"), data.get("role", "cashier")
        )
    except UsernameTakenError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"user": auth_service.get_user(user_id)}), 201


@admin_bp.put("/users/<int:user_id>")
@require_auth
@require_role("admin")
def update_user(user_id: int):
    """Body: {username, role}. Demoting the last admin is refused."""
    data = request.get_json(silent=True) or {}

    try:
        user = auth_service.update_user(user_id, data.get("username"), data.get("role"))
    except (UsernameTakenError, LastAdminError) as e:
        return jsonify({"error": str(e)}), 409
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"user": user}), 200


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_role("admin")
def delete_user(user_id: int):
    try:
        auth_service.delete_user(user_id)
    except LastAdminError as e:
        return jsonify({"error": str(e)}), 409
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete user %s", user_id)
        return jsonify({"error": "Failed to delete user"}), 500

    return jsonify({"ok": True}), 200


@admin_bp.post("/users/<int:user_id>/password")
@require_auth
def change_password(user_id: int):
    """Body: {password}. Admins may reset anyone; other users only themselves."""
    if not g.current_user.is_admin and g.current_user.id != user_id:
        return jsonify({"error": "Permission denied"}), 403

    data = request.get_json(silent=True) or {}

    try:
        auth_service.change_password(user_id, data.get("password"))
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"ok": True}), 200

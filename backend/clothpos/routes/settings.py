# Overview: Flask API routes for settings; read for all roles, write for admins.

from flask import Blueprint, request, current_app

from ..services import settings_service
from ..validation import ValidationError
from ..decorators import require_auth, require_role

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    return {"items": settings_service.get_settings()}


@settings_bp.put("")
@require_auth
@require_role("admin")
def put_settings_route():
    """
    Upsert settings.

    Body: {"key": "...", "value": "..."} or a {key: value, ...} map.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or not payload:
        return {"error": "Invalid JSON payload"}, 400

    if set(payload) == {"key", "value"}:
        pairs = [(payload["key"], payload["value"])]
    else:
        pairs = list(payload.items())

    try:
        for key, value in pairs:
            settings_service.set_setting(key, value)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to save settings")
        return {"error": "Failed to save settings"}, 500

    return {"items": settings_service.get_settings()}, 200

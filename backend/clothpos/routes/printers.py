# Overview: Flask API routes for printer discovery; read-only, any role.

from flask import Blueprint

from ..services import receipt_service
from ..decorators import require_auth

printers_bp = Blueprint("printers", __name__, url_prefix="/api/printers")


@printers_bp.get("")
@require_auth
def list_printers_route():
    """Serial/USB ports and system printers the receipt gateway can target."""
    items = receipt_service.list_printers()
    return {"items": items, "count": len(items), "available": bool(items)}


@printers_bp.get("/status")
@require_auth
def printer_status_route():
    return {"available": receipt_service.printer_available()}

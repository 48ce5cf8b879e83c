# Overview: Flask API routes for system health; no authentication.

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, Sale, User
from ..services import schema_service

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """Row counts of the main tables plus schema version."""
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "sales": db.session.query(Sale).count(),
            "users": db.session.query(User).count(),
        }
        status = schema_service.schema_status()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy" if not status["pending"] else "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "schema_version": status["version"],
            "schema_latest": status["latest"],
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    code = 200 if database["status"] != "unhealthy" else 503
    return {"status": database["status"], "database": database}, code

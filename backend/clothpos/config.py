# backend/clothpos/config.py
from __future__ import annotations
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the process (cloth-pos.db)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cloth-pos.db", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Run schema_service.run_migrations() (Alembic upgrade to head) inside create_app()
    SCHEMA_AUTO_MIGRATE = _env_bool("SCHEMA_AUTO_MIGRATE", True)

    # Alembic scripts (env.py + versions/), backend/migrations by default
    MIGRATIONS_DIR = os.environ.get(
        "MIGRATIONS_DIR",
        os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations"),
    )

    # Overselling policy: False rejects a sale that would take stock below zero
    ALLOW_NEGATIVE_STOCK = _env_bool("ALLOW_NEGATIVE_STOCK", True)

    RECEIPT_PREFIX = os.environ.get("RECEIPT_PREFIX", "INV")
    RECEIPT_NUMBER_ATTEMPTS = int(os.environ.get("RECEIPT_NUMBER_ATTEMPTS", "5"))

    DEFAULT_ADMIN_USERNAME = "admin"
    DEFAULT_ADMIN_PASSWORD = os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin123")
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    SESSION_MAX_AGE_SECONDS = int(os.environ.get("SESSION_MAX_AGE_SECONDS", str(12 * 60 * 60)))
    SESSION_IDLE_SECONDS = int(os.environ.get("SESSION_IDLE_SECONDS", str(2 * 60 * 60)))

    RECEIPT_SERIAL_PORT = os.environ.get("RECEIPT_SERIAL_PORT", "/dev/usb/lp0")
    RECEIPT_SERIAL_BAUD = int(os.environ.get("RECEIPT_SERIAL_BAUD", "9600"))

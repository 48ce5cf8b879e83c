# Overview: Service-layer operations for settings; process-wide key/value store.

from __future__ import annotations

from ..extensions import db
from ..models import Setting
from ..validation import ValidationError


def get_settings() -> list[dict]:
    rows = db.session.query(Setting).order_by(Setting.key.asc()).all()
    return [row.to_dict() for row in rows]


def get_settings_map() -> dict[str, str | None]:
    return {row.key: row.value for row in db.session.query(Setting).all()}


def get_setting(key: str, default: str | None = None) -> str | None:
    row = db.session.get(Setting, key)
    if row is None:
        return default
    return row.value


def set_setting(key: str, value) -> None:
    """Upsert one key. Last write wins."""
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("key is required")
    key = key.strip()
    if len(key) > 128:
        raise ValidationError("key exceeds max length 128")
    if value is not None and not isinstance(value, str):
        value = str(value)

    try:
        row = db.session.get(Setting, key)
        if row is None:
            db.session.add(Setting(key=key, value=value))
        else:
            row.value = value
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

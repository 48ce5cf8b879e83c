from __future__ import annotations

from ..extensions import db


class Setting(db.Model):
    """
    Process-wide key-value settings (store name, printer, currency...).

    Upsert by key, last write wins.
    """
    __tablename__ = "settings"

    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            "key": self.key,
            "value": self.value,
        }

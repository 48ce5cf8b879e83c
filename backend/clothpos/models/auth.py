from __future__ import annotations

from ..extensions import db
from clothpos.time_utils import to_utc_z, utcnow

ROLES = ("admin", "cashier")


class User(db.Model):
    """
    User accounts for login and role checks.

    Only a bcrypt hash of the password is stored. At least one admin must
    exist at all times (enforced by auth_service).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'cashier')", name="ck_users_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False)
    created_at = db.Column(db.DateTime, nullable=True, default=utcnow, server_default=db.func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """
    Login session for one user.

    SECURITY NOTES:
    - Only the SHA-256 of the bearer token is stored
    - Absolute timeout (SESSION_MAX_AGE_SECONDS) and idle timeout (SESSION_IDLE_SECONDS)
    - Revocable on logout and on password change
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(64), nullable=False, unique=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", passive_deletes="all"))

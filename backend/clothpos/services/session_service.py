# Overview: Service-layer operations for session; bearer token issue, validation and revocation.

"""
Session Token Management Service

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (SESSION_MAX_AGE_SECONDS, default 12 hours)
- Idle timeout (SESSION_IDLE_SECONDS, default 2 hours); idle sessions are revoked
- Revocable on logout and password change
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from clothpos.time_utils import utcnow


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); sent to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create a session for user_id.

    Returns (session_record, plaintext_token).
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()
    max_age = current_app.config.get("SESSION_MAX_AGE_SECONDS", 12 * 60 * 60)

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + timedelta(seconds=max_age),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    The user behind a live token, or None.

    None when the token is unknown, revoked, past its absolute expiry, or
    idle for longer than SESSION_IDLE_SECONDS (which also revokes it).
    Updates last_used_at on success.
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    idle_limit = timedelta(seconds=current_app.config.get("SESSION_IDLE_SECONDS", 2 * 60 * 60))
    if now - session.last_used_at > idle_limit:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = "Idle timeout"
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return session.user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns True if a live session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every live session of a user. Returns the count revoked."""
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)

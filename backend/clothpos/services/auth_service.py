# Overview: Service-layer operations for auth; user accounts, password hashing and the last-admin guard.

"""
User accounts for the two POS roles (admin, cashier).

SECURITY NOTES:
- Passwords hashed with bcrypt (BCRYPT_ROUNDS, default 12)
- validate_user() never returns the hash
- At least one admin must exist: delete_user() and update_user() refuse to
  remove or demote the last one, checking inside the same transaction
"""

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, ROLES
from ..validation import ConflictError, NotFoundError, ValidationError
from .session_service import revoke_all_user_sessions

MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


class UsernameTakenError(ConflictError):
    def __init__(self, username: str):
        super().__init__("Username already exists")
        self.username = username


class LastAdminError(ConflictError):
    pass


class UserNotFoundError(NotFoundError):
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str, *, check_strength: bool = True) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing unless check_strength
    is False (legacy account conversion, seeded defaults).
    """
    if check_strength:
        validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _clean_username(username) -> str:
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("username is required")
    username = username.strip()
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    return username


def _check_role(role) -> str:
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    return role


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError("User not found")
    return user


def _admin_count() -> int:
    return db.session.query(User).filter(User.role == "admin").count()


def list_users() -> list[dict]:
    users = db.session.query(User).order_by(User.id.asc()).all()
    return [u.to_dict() for u in users]


def get_user(user_id: int) -> dict:
    return _get_user(user_id).to_dict()


def create_user(username: str, password: str, role: str) -> int:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad username/role, PasswordValidationError for weak passwords
        UsernameTakenError: username already exists
    """
    username = _clean_username(username)
    role = _check_role(role)
    password_hash = hash_password(password)

    user = User(username=username, password_hash=password_hash, role=role)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise UsernameTakenError(username)

    current_app.logger.info("Created %s user %s (id=%s)", role, username, user.id)
    return user.id


def update_user(user_id: int, username: str, role: str) -> dict:
    """Rename and/or change role; returns the updated user's to_dict()."""
    username = _clean_username(username)
    role = _check_role(role)

    try:
        user = _get_user(user_id)
        if user.role == "admin" and role != "admin" and _admin_count() <= 1:
            raise LastAdminError("Cannot demote the last admin user")

        user.username = username
        user.role = role
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise UsernameTakenError(username)
    except Exception:
        db.session.rollback()
        raise
    return user.to_dict()


def delete_user(user_id: int) -> None:
    """
    Delete a user account.

    The admin count, role check and delete share one transaction.
    NOTE: with several writer processes two deletes could still both pass the
    check under SQLite's deferred locking; this app runs a single writer.
    """
    try:
        user = _get_user(user_id)
        if user.role == "admin" and _admin_count() <= 1:
            raise LastAdminError("Cannot delete the last admin user")

        db.session.delete(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("Deleted user id=%s", user_id)


def change_password(user_id: int, new_password: str) -> None:
    """
    Unconditional overwrite; old-password verification is the caller's job.

    Every session of the user is revoked afterwards.
    """
    password_hash = hash_password(new_password)
    try:
        user = _get_user(user_id)
        user.password_hash = password_hash
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    revoke_all_user_sessions(user_id, reason="Password changed")


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username and password.

    Returns User if credentials valid, None otherwise.
    """
    if not username or not password:
        return None
    user = db.session.query(User).filter(User.username == username.strip()).first()
    if not user:
        return None
    if verify_password(password, user.password_hash):
        return user
    return None


def validate_user(username: str, password: str) -> dict | None:
    """Login check: the user (without credentials) or None."""
    user = authenticate(username, password)
    return user.to_dict() if user else None

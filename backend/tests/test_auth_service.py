import pytest

from clothpos.models import User, SessionToken
from clothpos.services import auth_service, session_service
from clothpos.services.auth_service import (
    LastAdminError,
    PasswordValidationError,
    UsernameTakenError,
    UserNotFoundError,
)
from clothpos.validation import ValidationError


def _admin(db_session):
    return db_session.query(User).filter_by(username="admin").one()


def test_validate_user(db_session):
    user = auth_service.validate_user("admin", "admin123")
    assert user["username"] == "admin"
    assert user["role"] == "admin"
    assert "password_hash" not in user
    assert "password" not in user

    assert auth_service.validate_user("admin", "wrong") is None
    assert auth_service.validate_user("nobody", "admin123") is None
    assert auth_service.validate_user("", "") is None


def test_create_user_hashes_password(db_session):
    user_id = auth_service.create_user("ama", "secret1", "cashier")
    user = db_session.get(User, user_id)
    assert user.password_hash != "secret1"
    assert auth_service.verify_password("secret1", user.password_hash)


def test_duplicate_username(db_session):
    auth_service.create_user("kofi", "secret1", "cashier")
    with pytest.raises(UsernameTakenError) as exc:
        auth_service.create_user("kofi", "secret2", "admin")
    assert str(exc.value) == "Username already exists"
    assert db_session.query(User).filter_by(username="kofi").count() == 1


def test_create_user_validation(db_session):
    with pytest.raises(PasswordValidationError):
        auth_service.create_user("esi", "123", "cashier")
    with pytest.raises(ValidationError):
        auth_service.create_user("esi", "secret1", "manager")
    with pytest.raises(ValidationError):
        auth_service.create_user("  ", "secret1", "cashier")


def test_cannot_delete_last_admin(db_session):
    admin = _admin(db_session)
    with pytest.raises(LastAdminError):
        auth_service.delete_user(admin.id)
    assert db_session.query(User).filter_by(role="admin").count() == 1


def test_can_delete_admin_when_another_exists(db_session):
    admin = _admin(db_session)
    auth_service.create_user("boss2", "secret1", "admin")
    auth_service.delete_user(admin.id)
    assert db_session.query(User).filter_by(role="admin").count() == 1


def test_delete_cashier_and_unknown(db_session):
    cashier_id = auth_service.create_user("yaw", "secret1", "cashier")
    auth_service.delete_user(cashier_id)
    assert db_session.get(User, cashier_id) is None

    with pytest.raises(UserNotFoundError):
        auth_service.delete_user(cashier_id)


def test_cannot_demote_last_admin(db_session):
    admin = _admin(db_session)
    with pytest.raises(LastAdminError):
        auth_service.update_user(admin.id, "admin", "cashier")

    db_session.expire_all()
    assert _admin(db_session).role == "admin"


def test_update_user_rename_and_duplicate(db_session):
    user_id = auth_service.create_user("abena", "secret1", "cashier")
    updated = auth_service.update_user(user_id, "abena2", "admin")
    assert updated["username"] == "abena2"
    assert updated["role"] == "admin"

    with pytest.raises(UsernameTakenError):
        auth_service.update_user(user_id, "admin", "admin")


def test_change_password_revokes_sessions(db_session):
    user_id = auth_service.create_user("kwame", "secret1", "cashier")
    _, token = session_service.create_session(user_id)
    assert session_service.validate_session(token).id == user_id

    auth_service.change_password(user_id, "newpass1")

    assert auth_service.validate_user("kwame", "secret1") is None
    assert auth_service.validate_user("kwame", "newpass1")["id"] == user_id
    assert session_service.validate_session(token) is None


def test_delete_user_removes_sessions(db_session):
    user_id = auth_service.create_user("efua", "secret1", "cashier")
    session_service.create_session(user_id)

    auth_service.delete_user(user_id)

    assert db_session.query(SessionToken).filter_by(user_id=user_id).count() == 0

import hashlib
from datetime import timedelta

from sqlalchemy import select

from stockdesk.app.core.security import is_legacy_hash
from stockdesk.app.db.models.core_types import Role
from stockdesk.app.db.models.models_v1 import ActivityLog, User, UserSession, utcnow
from stockdesk.services.auth import INVALID_CREDENTIALS

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME


def test_login_returns_public_user_and_token(bridge, admin_id):
    result = bridge.invoke("auth:login", ADMIN_USERNAME, ADMIN_PASSWORD)

    assert result["success"] is True
    assert result["user"] == {"id": admin_id, "username": ADMIN_USERNAME, "role": "admin"}
    assert "password" not in result["user"]
    assert bridge.auth.resolve_session(result["token"]) == admin_id


def test_login_stores_only_token_digest(bridge, database):
    token = bridge.auth.login(ADMIN_USERNAME, ADMIN_PASSWORD)["token"]

    with database.session() as s:
        stored = s.scalars(select(UserSession.token_hash)).all()
    assert token not in stored
    assert hashlib.sha256(token.encode()).hexdigest() in stored


def test_login_rejects_wrong_password_and_unknown_user(bridge):
    assert bridge.auth.login(ADMIN_USERNAME, "nope") == {"success": False, "message": INVALID_CREDENTIALS}
    assert bridge.auth.login("ghost", ADMIN_PASSWORD) == {"success": False, "message": INVALID_CREDENTIALS}


def test_inactive_account_cannot_log_in(bridge, make_secretary):
    make_secretary("sleepy", "sleepy-pass", is_active=False)

    result = bridge.auth.login("sleepy", "sleepy-pass")

    assert result == {"success": False, "message": INVALID_CREDENTIALS}


def test_login_is_logged(bridge, database, admin_id):
    bridge.auth.login(ADMIN_USERNAME, ADMIN_PASSWORD)

    with database.session() as s:
        log = s.scalars(select(ActivityLog).where(ActivityLog.action == "login")).one()
    assert log.user_id == admin_id
    assert log.details == "User logged in"


def test_legacy_sha256_hash_is_accepted_and_upgraded(bridge, database):
    """
    GIVEN an account whose password is a bare SHA-256 hex digest
    THEN login works and the stored hash is replaced by a salted one
    """
    with database.session() as s, s.begin():
        s.add(
            User(
                username="old-timer",
                password=hashlib.sha256(b"legacy-pass").hexdigest(),
                role=Role.secretary,
                is_active=True,
            )
        )

    result = bridge.auth.login("old-timer", "legacy-pass")
    assert result["success"] is True

    with database.session() as s:
        stored = s.scalar(select(User.password).where(User.username == "old-timer"))
    assert not is_legacy_hash(stored)
    assert bridge.auth.login("old-timer", "legacy-pass")["success"] is True


def test_logout_revokes_session(bridge, admin_token):
    assert bridge.invoke("auth:logout", admin_token)["success"] is True

    assert bridge.auth.resolve_session(admin_token) is None
    assert bridge.invoke("auth:logout", admin_token) == {"success": False, "message": "Session not found"}


def test_expired_session_does_not_resolve(bridge, database, admin_token):
    with database.session() as s, s.begin():
        for row in s.scalars(select(UserSession)):
            row.expires_at = utcnow() - timedelta(minutes=1)

    assert bridge.auth.resolve_session(admin_token) is None


def test_deactivated_user_session_stops_resolving(bridge, make_secretary, admin_id):
    sec_id = make_secretary("temp", "temp-password")
    token = bridge.auth.login("temp", "temp-password")["token"]
    assert bridge.auth.resolve_session(token) == sec_id

    bridge.users.update_secretary(admin_id, sec_id, False)

    assert bridge.auth.resolve_session(token) is None


def test_change_password(bridge, admin_id):
    wrong = bridge.auth.change_password(admin_id, "not-it", "brand-new-pass")
    assert wrong == {"success": False, "message": "Current password is incorrect"}

    short = bridge.auth.change_password(admin_id, ADMIN_PASSWORD, "short")
    assert short == {"success": False, "message": "Password must be at least 8 characters"}

    done = bridge.auth.change_password(admin_id, ADMIN_PASSWORD, "brand-new-pass")
    assert done == {"success": True, "message": "Password updated successfully"}

    assert bridge.auth.login(ADMIN_USERNAME, ADMIN_PASSWORD)["success"] is False
    assert bridge.auth.login(ADMIN_USERNAME, "brand-new-pass")["success"] is True


def test_get_user_profile(bridge, admin_id):
    result = bridge.auth.get_user_profile(admin_id)

    assert result["success"] is True
    assert result["user"]["username"] == ADMIN_USERNAME
    assert result["user"]["is_active"] is True
    assert bridge.auth.get_user_profile(9999) == {"success": False, "message": "User not found"}

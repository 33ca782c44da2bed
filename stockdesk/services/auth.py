"""
Authentication: login/logout, password changes and session tokens.

A successful login issues an opaque token; only its SHA-256 digest is
stored. Privileged bridge channels take the token and resolve it back to
the user id via resolve_session(), instead of trusting a caller-supplied id.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockdesk.app.core.config import settings
from stockdesk.app.core.exceptions import NotFound, Unauthorized, ValidationFailed, ok, fail, operation
from stockdesk.app.core.security import (
    hash_password,
    hash_token,
    is_legacy_hash,
    new_session_token,
    verify_password,
)
from stockdesk.app.db.models.models_v1 import User, UserSession, utcnow
from stockdesk.app.db.session import Database
from stockdesk.services.activity import record_activity

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials or account is inactive"


def validate_new_password(password: str | None) -> str:
    if not isinstance(password, str) or len(password) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
    return password


def public_user(user: User) -> dict:
    return {"id": user.id, "username": user.username, "role": user.role.value}


class AuthHandler:
    def __init__(self, db: Database):
        self.db = db

    def _open_session(self, session: Session, user: User) -> str:
        token = new_session_token()
        now = utcnow()
        session.add(
            UserSession(
                user_id=user.id,
                token_hash=hash_token(token),
                created_at=now,
                expires_at=now + timedelta(minutes=settings.SESSION_TTL_MINUTES),
            )
        )
        return token

    @operation("An error occurred during login")
    def login(self, username: str, password: str) -> dict:
        with self.db.session() as session, session.begin():
            user = session.scalar(select(User).where(User.username == username))
            if user is None or not user.is_active or not verify_password(password or "", user.password):
                raise Unauthorized(INVALID_CREDENTIALS)

            if is_legacy_hash(user.password):
                user.password = hash_password(password)
                logger.info("Migrated legacy password hash for user %s", user.id)

            token = self._open_session(session, user)
            record_activity(
                session,
                user_id=user.id,
                action="login",
                entity_type="user",
                entity_id=user.id,
                details="User logged in",
            )
            return ok(user=public_user(user), token=token)

    @operation("An error occurred during logout")
    def logout(self, token: str) -> dict:
        with self.db.session() as session, session.begin():
            row = session.scalar(
                select(UserSession).where(UserSession.token_hash == hash_token(token or ""))
            )
            if row is None or row.revoked_at is not None:
                return fail("Session not found")
            row.revoked_at = utcnow()
            record_activity(
                session,
                user_id=row.user_id,
                action="logout",
                entity_type="user",
                entity_id=row.user_id,
                details="User logged out",
            )
            return ok("Logged out successfully")

    def resolve_session(self, token: str | None) -> int | None:
        """Id of the active user owning `token`, or None."""
        if not token or not isinstance(token, str):
            return None
        with self.db.session() as session:
            row = session.execute(
                select(UserSession, User)
                .join(User, User.id == UserSession.user_id)
                .where(UserSession.token_hash == hash_token(token))
            ).first()
            if row is None:
                return None
            user_session, user = row
            if user_session.revoked_at is not None or user_session.expires_at <= utcnow():
                return None
            if not user.is_active:
                return None
            return user.id

    @operation("An error occurred while changing password")
    def change_password(self, user_id: int, current_password: str, new_password: str) -> dict:
        with self.db.session() as session, session.begin():
            user = session.get(User, user_id)
            if user is None or not verify_password(current_password or "", user.password):
                raise Unauthorized("Current password is incorrect")

            user.password = hash_password(validate_new_password(new_password))
            record_activity(
                session,
                user_id=user_id,
                action="update",
                entity_type="user",
                entity_id=user_id,
                details="Password changed",
            )
        return ok("Password updated successfully")

    @operation("An error occurred while fetching user profile")
    def get_user_profile(self, user_id: int) -> dict:
        with self.db.session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            return ok(
                user={
                    **public_user(user),
                    "is_active": user.is_active,
                    "created_at": user.created_at,
                    "updated_at": user.updated_at,
                }
            )

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockdesk.app.core.exceptions import NotFound, Unauthorized, ValidationFailed, ok, operation
from stockdesk.app.core.security import hash_password
from stockdesk.app.db.models.models_v1 import User
from stockdesk.app.db.models.core_types import Role
from stockdesk.app.db.session import Database
from stockdesk.app.schemas.common import parse
from stockdesk.app.schemas.users import SecretaryCreate
from stockdesk.services.activity import record_activity
from stockdesk.services.auth import validate_new_password


def _require_admin(session: Session, admin_id: int) -> User:
    admin = session.get(User, admin_id)
    if admin is None or admin.role != Role.admin or not admin.is_active:
        raise Unauthorized("Unauthorized access")
    return admin


def _get_secretary(session: Session, secretary_id: int) -> User:
    secretary = session.get(User, secretary_id)
    if secretary is None or secretary.role != Role.secretary:
        raise NotFound("Secretary account not found")
    return secretary


class UserHandler:
    """Secretary account management. Every call re-checks the caller is an active admin."""

    def __init__(self, db: Database):
        self.db = db

    @operation("An error occurred while fetching secretary accounts")
    def get_secretaries(self, admin_id: int) -> dict:
        with self.db.session() as session:
            _require_admin(session, admin_id)
            rows = session.execute(
                select(User).where(User.role == Role.secretary).order_by(User.username)
            ).scalars().all()
            return ok(
                secretaries=[
                    {
                        "id": u.id,
                        "username": u.username,
                        "is_active": u.is_active,
                        "created_at": u.created_at,
                        "updated_at": u.updated_at,
                    }
                    for u in rows
                ]
            )

    @operation("An error occurred while creating secretary account")
    def create_secretary(self, admin_id: int, user_data: dict) -> dict:
        with self.db.session() as session, session.begin():
            _require_admin(session, admin_id)
            payload = parse(SecretaryCreate, user_data)

            exists = session.scalar(select(User.id).where(User.username == payload.username))
            if exists:
                raise ValidationFailed("Username already exists")

            user = User(
                username=payload.username,
                password=hash_password(validate_new_password(payload.password)),
                role=Role.secretary,
                is_active=payload.is_active,
            )
            session.add(user)
            session.flush()

            record_activity(
                session,
                user_id=admin_id,
                action="create",
                entity_type="user",
                entity_id=user.id,
                details="Created secretary account",
            )
            return ok("Secretary account created successfully", user_id=user.id)

    @operation("An error occurred while updating secretary account")
    def update_secretary(self, admin_id: int, secretary_id: int, is_active: bool) -> dict:
        is_active = bool(is_active)
        with self.db.session() as session, session.begin():
            _require_admin(session, admin_id)
            secretary = _get_secretary(session, secretary_id)
            secretary.is_active = is_active

            verb = "Activated" if is_active else "Deactivated"
            record_activity(
                session,
                user_id=admin_id,
                action="update",
                entity_type="user",
                entity_id=secretary.id,
                details=f"{verb} secretary account",
            )
        return ok(f"Secretary account {verb.lower()} successfully")

    @operation("An error occurred while resetting secretary password")
    def reset_secretary_password(self, admin_id: int, secretary_id: int, new_password: str) -> dict:
        with self.db.session() as session, session.begin():
            _require_admin(session, admin_id)
            secretary = _get_secretary(session, secretary_id)
            secretary.password = hash_password(validate_new_password(new_password))

            record_activity(
                session,
                user_id=admin_id,
                action="update",
                entity_type="user",
                entity_id=secretary.id,
                details="Reset secretary password",
            )
        return ok("Secretary password reset successfully")

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockdesk.app.core.security import hash_password
from stockdesk.app.db.models.models_v1 import User
from stockdesk.app.db.models.core_types import Role

logger = logging.getLogger(__name__)


def seed_admin_users(db: Session, admins: Iterable[tuple[str, str]]) -> int:
    """Insert each configured admin that does not exist yet. Returns how many were created."""
    created = 0
    for username, password in admins:
        user = db.scalar(select(User).where(User.username == username))
        if user:
            continue
        db.add(
            User(
                username=username,
                password=hash_password(password),
                role=Role.admin,
                is_active=True,
            )
        )
        created += 1

    if created:
        db.commit()
        logger.info("Seeded %d admin account(s)", created)
    return created


def main() -> None:
    """Create the schema and seed admins on the configured store."""
    from stockdesk.app.core.log_config import setup_logging
    from stockdesk.app.db.session import Database

    setup_logging()
    Database().init()


if __name__ == "__main__":
    main()

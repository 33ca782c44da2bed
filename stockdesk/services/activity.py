"""
Activity log writer.

Every mutating operation appends exactly one row per action through
record_activity(), inside the caller's database transaction, so a rollback
drops the log rows together with the change they describe.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from stockdesk.app.db.models.models_v1 import ActivityLog


def record_activity(
    db: Session,
    *,
    user_id: int | None,
    action: str,
    entity_type: str,
    entity_id: int | None,
    details: str | None = None,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    db.add(entry)
    return entry

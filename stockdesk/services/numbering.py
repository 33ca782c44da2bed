"""
Human-readable sequence numbers: KIND-YYMM-NNNN.

The sequence restarts every month and is scoped to the kind prefix
(PO, ISS, RET, ADJ, TRX).
"""
from __future__ import annotations

import logging
import re
import time
from contextlib import nullcontext
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import InstrumentedAttribute, Session

from stockdesk.app.db.models.core_types import TransactionType

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 4

PURCHASE_ORDER_KIND = "PO"
DEFAULT_TRANSACTION_KIND = "TRX"
TRANSACTION_KINDS = {
    TransactionType.issuance.value: "ISS",
    TransactionType.return_.value: "RET",
    TransactionType.adjustment.value: "ADJ",
}

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def transaction_kind(transaction_type: str | TransactionType | None) -> str:
    if isinstance(transaction_type, TransactionType):
        transaction_type = transaction_type.value
    return TRANSACTION_KINDS.get(transaction_type or "", DEFAULT_TRANSACTION_KIND)


def month_prefix(kind: str, now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"{kind}-{now:%y%m}-"


def next_sequence_number(db: Session, column: InstrumentedAttribute, prefix: str) -> str:
    """Highest existing sequence under `prefix`, plus one."""
    existing = db.execute(select(column).where(column.like(f"{prefix}%"))).scalars().all()

    highest = 0
    for value in existing:
        match = _TRAILING_DIGITS.search(value[len(prefix):])
        if match:
            highest = max(highest, int(match.group(1)))

    return f"{prefix}{highest + 1:0{SEQUENCE_WIDTH}d}"


def fallback_number(kind: str) -> str:
    return f"{kind}-{int(time.time() * 1000)}"


def _scan_scope(db: Session):
    # a failed statement aborts the enclosing transaction everywhere but SQLite,
    # whose pysqlite driver does not take savepoints before its deferred BEGIN
    if db.in_transaction() and db.get_bind().dialect.name != "sqlite":
        return db.begin_nested()
    return nullcontext()


def generate_number(db: Session, column: InstrumentedAttribute, kind: str) -> str:
    """
    Next number for `kind` inside the caller's transaction.

    Falls back to `fallback_number(kind)` when the scan fails, so a create
    never fails just because numbering did.
    """
    try:
        with _scan_scope(db):
            return next_sequence_number(db, column, month_prefix(kind))
    except SQLAlchemyError:
        logger.exception("%s number scan failed, using fallback", kind)
        return fallback_number(kind)

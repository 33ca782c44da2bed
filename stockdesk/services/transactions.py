"""
Issuances, returns and adjustments.

A transaction is created pending and touches stock only on approval:
issuance lines are taken out of stock, return and adjustment lines are put
back. Approval is all-or-nothing; one short line rolls back the status
change, every stock update and their log rows.
"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from stockdesk.app.core.exceptions import NotFound, StateConflict, ValidationFailed, fail, ok, operation
from stockdesk.app.db.models.core_types import (
    TRANSACTION_TERMINAL_STATUSES,
    TRANSACTION_TRANSITIONS,
    MovementType,
    TransactionStatus,
    TransactionType,
)
from stockdesk.app.db.models.models_v1 import StockItem, Transaction, TransactionItem, User, utcnow
from stockdesk.app.db.session import Database
from stockdesk.app.schemas.common import parse
from stockdesk.app.schemas.transaction import TransactionCreate, TransactionFilters, TransactionLineIn
from stockdesk.services.activity import record_activity
from stockdesk.services.inventory import apply_stock_delta
from stockdesk.services.numbering import (
    fallback_number,
    generate_number,
    month_prefix,
    next_sequence_number,
    transaction_kind,
)

logger = logging.getLogger(__name__)

_MOVEMENT_TYPES = {
    TransactionType.issuance: MovementType.issue,
    TransactionType.return_: MovementType.return_,
    TransactionType.adjustment: MovementType.adjustment,
}


def stock_direction(transaction_type: TransactionType) -> int:
    return -1 if transaction_type == TransactionType.issuance else 1


def transaction_row(t: Transaction, created_by_username, approved_by_username) -> dict:
    return {
        "id": t.id,
        "transaction_type": t.transaction_type.value,
        "reference_number": t.reference_number,
        "status": t.status.value,
        "created_by": t.created_by,
        "created_by_username": created_by_username,
        "approved_by": t.approved_by,
        "approved_by_username": approved_by_username,
        "approved_at": t.approved_at,
        "notes": t.notes,
        "created_at": t.created_at,
        "updated_at": t.updated_at,
    }


def transactions_query():
    creator = aliased(User)
    approver = aliased(User)
    return (
        select(Transaction, creator.username, approver.username)
        .outerjoin(creator, creator.id == Transaction.created_by)
        .outerjoin(approver, approver.id == Transaction.approved_by)
    )


def _transaction_lines(session: Session, transaction_id: int) -> list[dict]:
    rows = session.execute(
        select(TransactionItem, StockItem.name, StockItem.sku, StockItem.unit, StockItem.current_quantity)
        .outerjoin(StockItem, StockItem.id == TransactionItem.stock_item_id)
        .where(TransactionItem.transaction_id == transaction_id)
        .order_by(TransactionItem.id)
    ).all()
    return [
        {
            "id": line.id,
            "transaction_id": line.transaction_id,
            "stock_item_id": line.stock_item_id,
            "item_name": name,
            "sku": sku,
            "unit": unit,
            "quantity": line.quantity,
            "unit_price": line.unit_price,
            "total_price": line.total_price,
            "available_quantity": available,
        }
        for line, name, sku, unit, available in rows
    ]


def _parse_type(transaction_type) -> TransactionType:
    try:
        return TransactionType(transaction_type)
    except ValueError:
        raise ValidationFailed(f"Invalid transaction type: {transaction_type}") from None


def _parse_status(status) -> TransactionStatus:
    try:
        return TransactionStatus(status)
    except ValueError:
        raise ValidationFailed(f"Invalid status: {status}") from None


class TransactionHandler:
    def __init__(self, db: Database):
        self.db = db

    @operation("An error occurred while fetching transactions")
    def get_transactions(self, filters: dict | None = None) -> dict:
        f = parse(TransactionFilters, filters)
        stmt = transactions_query()

        if f.transaction_type:
            stmt = stmt.where(Transaction.transaction_type == f.transaction_type)
        if f.status:
            stmt = stmt.where(Transaction.status == f.status)
        if f.created_by:
            stmt = stmt.where(Transaction.created_by == f.created_by)
        stmt = stmt.where(*f.conditions(Transaction.created_at))

        with self.db.session() as session:
            rows = session.execute(stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc())).all()
            return ok(transactions=[transaction_row(*row) for row in rows])

    @operation("An error occurred while fetching transaction")
    def get_transaction_by_id(self, transaction_id: int) -> dict:
        with self.db.session() as session:
            row = session.execute(transactions_query().where(Transaction.id == transaction_id)).first()
            if row is None:
                raise NotFound("Transaction not found")
            return ok(transaction=transaction_row(*row), items=_transaction_lines(session, transaction_id))

    def generate_reference_number(self, transaction_type: str | None = None) -> dict:
        kind = transaction_kind(transaction_type)
        try:
            with self.db.session() as session:
                number = next_sequence_number(session, Transaction.reference_number, month_prefix(kind))
            return ok(reference_number=number)
        except SQLAlchemyError:
            logger.exception("generate_reference_number failed")
            return fail(
                "An error occurred while generating reference number",
                reference_number=fallback_number(kind),
            )

    @operation("An error occurred while creating transaction")
    def create_transaction(self, user_id: int, transaction: dict, items: list | None) -> dict:
        payload = parse(TransactionCreate, transaction)
        lines = [parse(TransactionLineIn, line) for line in items or []]
        if not lines:
            raise ValidationFailed("Transaction must have at least one item")

        with self.db.session() as session, session.begin():
            for line in lines:
                if session.get(StockItem, line.stock_item_id) is None:
                    raise NotFound(f"Stock item not found (ID {line.stock_item_id})")

            if payload.reference_number:
                taken = session.scalar(
                    select(Transaction.id).where(Transaction.reference_number == payload.reference_number)
                )
                if taken:
                    raise ValidationFailed("Reference number already exists")
                reference = payload.reference_number
            else:
                reference = generate_number(
                    session, Transaction.reference_number, transaction_kind(payload.transaction_type)
                )

            t = Transaction(
                transaction_type=payload.transaction_type,
                reference_number=reference,
                status=TransactionStatus.pending,
                created_by=user_id,
                notes=payload.notes or None,
            )
            for line in lines:
                total = line.total_price
                if total is None and line.unit_price is not None:
                    total = line.unit_price * line.quantity
                t.items.append(
                    TransactionItem(
                        stock_item_id=line.stock_item_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total_price=total,
                    )
                )
            session.add(t)
            session.flush()

            record_activity(
                session,
                user_id=user_id,
                action="create",
                entity_type="transaction",
                entity_id=t.id,
                details=f"Created {t.transaction_type.value} transaction: {reference}",
            )
            return ok(
                "Transaction created successfully",
                transaction_id=t.id,
                reference_number=reference,
            )

    @operation("An error occurred while updating transaction status")
    def update_status(self, user_id: int, transaction_id: int, status: str, update_stock: bool = True) -> dict:
        target = _parse_status(status)

        with self.db.session() as session, session.begin():
            t = session.get(Transaction, transaction_id)
            if t is None:
                raise NotFound("Transaction not found")

            if t.status in TRANSACTION_TERMINAL_STATUSES:
                raise StateConflict(f"Cannot change status of {t.status.value} transaction")
            if target not in TRANSACTION_TRANSITIONS[t.status]:
                raise StateConflict(f"Cannot change transaction status from {t.status.value} to {target.value}")

            t.status = target
            if target == TransactionStatus.approved:
                t.approved_by = user_id
                t.approved_at = utcnow()

                if update_stock:
                    direction = stock_direction(t.transaction_type)
                    for line in t.items:
                        apply_stock_delta(
                            session,
                            line.stock_item_id,
                            direction * line.quantity,
                            actor_id=user_id,
                            movement_type=_MOVEMENT_TYPES[t.transaction_type],
                            source=f"approved {t.transaction_type.value} transaction: {t.reference_number}",
                            reference=t.reference_number,
                        )

            record_activity(
                session,
                user_id=user_id,
                action="update",
                entity_type="transaction",
                entity_id=t.id,
                details=(
                    f"Updated {t.transaction_type.value} transaction status to {target.value}: "
                    f"{t.reference_number}"
                ),
            )
        return ok(f"Transaction {target.value} successfully")

"""
Procurement: suppliers and purchase orders.

Order lifecycle:
    pending -> approved -> received
    pending | approved -> cancelled

Receiving an order with update_stock=True books every line into stock
through services.inventory, inside the same transaction as the status
change.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from stockdesk.app.core.exceptions import NotFound, StateConflict, ValidationFailed, fail, ok, operation
from stockdesk.app.db.models.core_types import PO_TERMINAL_STATUSES, PO_TRANSITIONS, MovementType, POStatus
from stockdesk.app.db.models.models_v1 import (
    PurchaseOrder,
    PurchaseOrderItem,
    StockItem,
    Supplier,
    User,
    utcnow,
)
from stockdesk.app.db.session import Database
from stockdesk.app.schemas.common import parse
from stockdesk.app.schemas.supply import (
    PurchaseOrderCreate,
    PurchaseOrderFilters,
    PurchaseOrderLineIn,
    SupplierCreate,
    SupplierUpdate,
)
from stockdesk.services.activity import record_activity
from stockdesk.services.inventory import apply_stock_delta
from stockdesk.services.numbering import (
    PURCHASE_ORDER_KIND,
    fallback_number,
    generate_number,
    month_prefix,
    next_sequence_number,
)

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    POStatus.approved: "Purchase order approved successfully",
    POStatus.received: "Purchase order marked as received successfully",
    POStatus.cancelled: "Purchase order cancelled successfully",
}


# ---------- Row builders ----------
def supplier_row(s: Supplier) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "contact_person": s.contact_person,
        "phone": s.phone,
        "email": s.email,
        "address": s.address,
        "created_at": s.created_at,
        "updated_at": s.updated_at,
    }


def order_row(po: PurchaseOrder, supplier_name, created_by_username, approved_by_username) -> dict:
    return {
        "id": po.id,
        "order_number": po.order_number,
        "supplier_id": po.supplier_id,
        "supplier_name": supplier_name,
        "status": po.status.value,
        "created_by": po.created_by,
        "created_by_username": created_by_username,
        "approved_by": po.approved_by,
        "approved_by_username": approved_by_username,
        "approved_at": po.approved_at,
        "order_date": po.order_date,
        "expected_delivery_date": po.expected_delivery_date,
        "total_amount": po.total_amount,
        "notes": po.notes,
        "created_at": po.created_at,
        "updated_at": po.updated_at,
    }


def orders_query():
    creator = aliased(User)
    approver = aliased(User)
    return (
        select(PurchaseOrder, Supplier.name, creator.username, approver.username)
        .outerjoin(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        .outerjoin(creator, creator.id == PurchaseOrder.created_by)
        .outerjoin(approver, approver.id == PurchaseOrder.approved_by)
    )


def _order_lines(session: Session, order_id: int) -> list[dict]:
    rows = session.execute(
        select(PurchaseOrderItem, StockItem.name, StockItem.sku, StockItem.unit)
        .outerjoin(StockItem, StockItem.id == PurchaseOrderItem.stock_item_id)
        .where(PurchaseOrderItem.purchase_order_id == order_id)
        .order_by(PurchaseOrderItem.id)
    ).all()
    return [
        {
            "id": line.id,
            "purchase_order_id": line.purchase_order_id,
            "stock_item_id": line.stock_item_id,
            "item_name": name,
            "sku": sku,
            "unit": unit,
            "quantity": line.quantity,
            "unit_price": line.unit_price,
            "total_price": line.total_price,
        }
        for line, name, sku, unit in rows
    ]


def _parse_status(status) -> POStatus:
    try:
        return POStatus(status)
    except ValueError:
        raise ValidationFailed(f"Invalid status: {status}") from None


class ProcurementHandler:
    def __init__(self, db: Database):
        self.db = db

    # ---------- Suppliers ----------
    @operation("An error occurred while fetching suppliers")
    def get_suppliers(self, search: str | None = None) -> dict:
        stmt = select(Supplier)
        if search and search.strip():
            term = f"%{search.strip()}%"
            stmt = stmt.where(
                Supplier.name.ilike(term) | Supplier.contact_person.ilike(term) | Supplier.email.ilike(term)
            )
        with self.db.session() as session:
            rows = session.execute(stmt.order_by(Supplier.name)).scalars().all()
            return ok(suppliers=[supplier_row(s) for s in rows])

    @operation("An error occurred while fetching supplier")
    def get_supplier_by_id(self, supplier_id: int) -> dict:
        with self.db.session() as session:
            s = session.get(Supplier, supplier_id)
            if s is None:
                raise NotFound("Supplier not found")
            return ok(supplier=supplier_row(s))

    @operation("An error occurred while creating supplier")
    def create_supplier(self, user_id: int, supplier: dict) -> dict:
        payload = parse(SupplierCreate, supplier)
        with self.db.session() as session, session.begin():
            s = Supplier(**payload.model_dump())
            session.add(s)
            session.flush()

            record_activity(
                session,
                user_id=user_id,
                action="create",
                entity_type="supplier",
                entity_id=s.id,
                details=f"Created supplier: {s.name}",
            )
            return ok("Supplier created successfully", supplier_id=s.id)

    @operation("An error occurred while updating supplier")
    def update_supplier(self, user_id: int, supplier_id: int, supplier: dict) -> dict:
        changes = parse(SupplierUpdate, supplier).model_dump(exclude_unset=True)
        if not changes:
            raise ValidationFailed("No fields to update")
        if "name" in changes and changes["name"] is None:
            raise ValidationFailed("name cannot be empty")

        with self.db.session() as session, session.begin():
            s = session.get(Supplier, supplier_id)
            if s is None:
                raise NotFound("Supplier not found")

            for field, value in changes.items():
                setattr(s, field, value)
            record_activity(
                session,
                user_id=user_id,
                action="update",
                entity_type="supplier",
                entity_id=s.id,
                details=f"Updated supplier: {s.name}",
            )
        return ok("Supplier updated successfully")

    # ---------- Purchase orders ----------
    @operation("An error occurred while fetching purchase orders")
    def get_purchase_orders(self, filters: dict | None = None) -> dict:
        f = parse(PurchaseOrderFilters, filters)
        stmt = orders_query()

        if f.supplier_id:
            stmt = stmt.where(PurchaseOrder.supplier_id == f.supplier_id)
        if f.status:
            stmt = stmt.where(PurchaseOrder.status == f.status)
        stmt = stmt.where(*f.conditions(PurchaseOrder.order_date))

        with self.db.session() as session:
            rows = session.execute(stmt.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc())).all()
            return ok(orders=[order_row(*row) for row in rows])

    @operation("An error occurred while fetching purchase order")
    def get_purchase_order_by_id(self, order_id: int) -> dict:
        with self.db.session() as session:
            row = session.execute(orders_query().where(PurchaseOrder.id == order_id)).first()
            if row is None:
                raise NotFound("Purchase order not found")
            return ok(order=order_row(*row), items=_order_lines(session, order_id))

    def generate_order_number(self) -> dict:
        try:
            with self.db.session() as session:
                number = next_sequence_number(
                    session, PurchaseOrder.order_number, month_prefix(PURCHASE_ORDER_KIND)
                )
            return ok(order_number=number)
        except SQLAlchemyError:
            logger.exception("generate_order_number failed")
            return fail(
                "An error occurred while generating order number",
                order_number=fallback_number(PURCHASE_ORDER_KIND),
            )

    @operation("An error occurred while creating purchase order")
    def create_purchase_order(self, user_id: int, order: dict, items: list | None) -> dict:
        payload = parse(PurchaseOrderCreate, order)
        lines = [parse(PurchaseOrderLineIn, line) for line in items or []]
        if not lines:
            raise ValidationFailed("Purchase order must have at least one item")

        with self.db.session() as session, session.begin():
            if session.get(Supplier, payload.supplier_id) is None:
                raise NotFound("Supplier not found")
            for line in lines:
                if session.get(StockItem, line.stock_item_id) is None:
                    raise NotFound(f"Stock item not found (ID {line.stock_item_id})")

            if payload.order_number:
                taken = session.scalar(
                    select(PurchaseOrder.id).where(PurchaseOrder.order_number == payload.order_number)
                )
                if taken:
                    raise ValidationFailed("Order number already exists")
                order_number = payload.order_number
            else:
                order_number = generate_number(session, PurchaseOrder.order_number, PURCHASE_ORDER_KIND)

            po = PurchaseOrder(
                order_number=order_number,
                supplier_id=payload.supplier_id,
                status=POStatus.pending,
                created_by=user_id,
                expected_delivery_date=payload.expected_delivery_date,
                notes=payload.notes or None,
            )
            for line in lines:
                total = line.total_price if line.total_price is not None else line.unit_price * line.quantity
                po.items.append(
                    PurchaseOrderItem(
                        stock_item_id=line.stock_item_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total_price=total,
                    )
                )
            po.total_amount = (
                payload.total_amount
                if payload.total_amount is not None
                else sum((i.total_price for i in po.items), Decimal("0"))
            )
            session.add(po)
            session.flush()

            record_activity(
                session,
                user_id=user_id,
                action="create",
                entity_type="purchase_order",
                entity_id=po.id,
                details=f"Created purchase order: {order_number}",
            )
            return ok(
                "Purchase order created successfully",
                order_id=po.id,
                order_number=order_number,
            )

    @operation("An error occurred while updating purchase order status")
    def update_order_status(self, user_id: int, order_id: int, status: str, update_stock: bool = False) -> dict:
        target = _parse_status(status)

        with self.db.session() as session, session.begin():
            po = session.get(PurchaseOrder, order_id)
            if po is None:
                raise NotFound("Purchase order not found")

            if po.status in PO_TERMINAL_STATUSES:
                raise StateConflict(f"Cannot change status of {po.status.value} purchase order")
            if target not in PO_TRANSITIONS[po.status]:
                raise StateConflict(
                    f"Cannot change purchase order status from {po.status.value} to {target.value}"
                )

            po.status = target
            if target == POStatus.approved:
                po.approved_by = user_id
                po.approved_at = utcnow()

            if target == POStatus.received and update_stock:
                for line in po.items:
                    apply_stock_delta(
                        session,
                        line.stock_item_id,
                        line.quantity,
                        actor_id=user_id,
                        movement_type=MovementType.receipt,
                        source=f"received purchase order: {po.order_number}",
                        reference=po.order_number,
                    )

            record_activity(
                session,
                user_id=user_id,
                action="update",
                entity_type="purchase_order",
                entity_id=po.id,
                details=f"Updated purchase order status to {target.value}: {po.order_number}",
            )
        return ok(_STATUS_MESSAGES[target])

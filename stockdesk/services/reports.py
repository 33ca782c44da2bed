from __future__ import annotations

from collections import Counter
from decimal import Decimal
from pathlib import Path

from sqlalchemy import and_, case, func, select

from stockdesk.app.core.config import settings
from stockdesk.app.core.exceptions import NotFound, ok, operation
from stockdesk.app.db.models.core_types import POStatus, TransactionStatus
from stockdesk.app.db.models.models_v1 import (
    ActivityLog,
    PurchaseOrder,
    PurchaseOrderItem,
    StockCategory,
    StockItem,
    StockMovement,
    Transaction,
    TransactionItem,
    User,
)
from stockdesk.app.db.session import Database
from stockdesk.app.schemas.common import parse
from stockdesk.app.schemas.reports import (
    ActivityLogFilters,
    PurchaseOrderReportFilters,
    StockMovementFilters,
    TransactionReportFilters,
    UserActivityFilters,
)
from stockdesk.services.export import write_csv
from stockdesk.services.procurement import order_row, orders_query
from stockdesk.services.stock import is_low_stock, item_row
from stockdesk.services.transactions import transaction_row, transactions_query

RECENT_ACTIVITY_LIMIT = 10


def _log_row(log: ActivityLog, username: str | None) -> dict:
    return {
        "id": log.id,
        "user_id": log.user_id,
        "user": username,
        "action": log.action,
        "entity_type": log.entity_type,
        "entity_id": log.entity_id,
        "details": log.details,
        "created_at": log.created_at,
    }


def _logs_query():
    return select(ActivityLog, User.username).outerjoin(User, User.id == ActivityLog.user_id)


def _line_totals(line_model, parent_key):
    """Per-parent item_count / total_quantity subquery."""
    return (
        select(
            parent_key.label("parent_id"),
            func.count(line_model.id).label("item_count"),
            func.sum(line_model.quantity).label("total_quantity"),
        )
        .group_by(parent_key)
        .subquery()
    )


class ReportsHandler:
    def __init__(self, db: Database, export_dir: Path | None = None):
        self.db = db
        self.export_dir = Path(export_dir) if export_dir is not None else settings.EXPORT_DIR

    @operation("An error occurred while fetching dashboard summary")
    def get_dashboard_summary(self) -> dict:
        with self.db.session() as session:
            recent = session.execute(
                _logs_query().order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(RECENT_ACTIVITY_LIMIT)
            ).all()
            summary = {
                "stock_count": session.scalar(select(func.count(StockItem.id))),
                "low_stock_count": session.scalar(select(func.count(StockItem.id)).where(is_low_stock())),
                "pending_orders_count": session.scalar(
                    select(func.count(PurchaseOrder.id)).where(PurchaseOrder.status == POStatus.pending)
                ),
                "pending_transactions_count": session.scalar(
                    select(func.count(Transaction.id)).where(Transaction.status == TransactionStatus.pending)
                ),
                "recent_activity": [_log_row(log, username) for log, username in recent],
            }
        return ok(summary=summary)

    @operation("An error occurred while fetching stock level report")
    def get_stock_level_report(self) -> dict:
        low = case((is_low_stock(), 1), else_=0)
        with self.db.session() as session:
            items = session.execute(
                select(StockItem, StockCategory.name)
                .outerjoin(StockCategory, StockCategory.id == StockItem.category_id)
                .order_by(StockCategory.name, StockItem.name)
            ).all()
            categories = session.execute(
                select(
                    StockCategory.id,
                    StockCategory.name,
                    func.count(StockItem.id),
                    func.coalesce(func.sum(StockItem.current_quantity), 0),
                    func.coalesce(func.sum(low), 0),
                )
                .outerjoin(StockItem, StockItem.category_id == StockCategory.id)
                .group_by(StockCategory.id, StockCategory.name)
                .order_by(StockCategory.name)
            ).all()

        stock_items = [
            {**item_row(item, category_name), "is_low_stock": item.current_quantity <= item.minimum_quantity}
            for item, category_name in items
        ]
        category_summary = [
            {
                "id": cid,
                "name": name,
                "item_count": item_count,
                "total_quantity": int(total_quantity),
                "low_stock_count": int(low_count),
            }
            for cid, name, item_count, total_quantity, low_count in categories
        ]
        return ok(stock_items=stock_items, category_summary=category_summary)

    @operation("An error occurred while fetching stock movement report")
    def get_stock_movement_report(self, filters: dict | None = None) -> dict:
        f = parse(StockMovementFilters, filters)
        stmt = (
            select(StockMovement, StockItem.name, StockItem.sku, User.username)
            .join(StockItem, StockItem.id == StockMovement.stock_item_id)
            .outerjoin(User, User.id == StockMovement.created_by)
        )
        if f.stock_item_id:
            stmt = stmt.where(StockMovement.stock_item_id == f.stock_item_id)
        stmt = stmt.where(*f.conditions(StockMovement.created_at))

        with self.db.session() as session:
            rows = session.execute(stmt.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())).all()

        movements = [
            {
                "id": m.id,
                "stock_item_id": m.stock_item_id,
                "stock_item_name": name,
                "sku": sku,
                "movement_type": m.movement_type.value,
                "quantity_change": m.quantity_change,
                "quantity_before": m.quantity_before,
                "quantity_after": m.quantity_after,
                "reference": m.reference,
                "reason": m.reason,
                "user": username,
                "created_at": m.created_at,
            }
            for m, name, sku, username in rows
        ]
        return ok(movements=movements)

    @operation("An error occurred while fetching transaction report")
    def get_transaction_report(self, filters: dict | None = None) -> dict:
        f = parse(TransactionReportFilters, filters)
        totals = _line_totals(TransactionItem, TransactionItem.transaction_id)
        stmt = (
            transactions_query()
            .add_columns(totals.c.item_count, totals.c.total_quantity)
            .outerjoin(totals, totals.c.parent_id == Transaction.id)
        )
        if f.transaction_type:
            stmt = stmt.where(Transaction.transaction_type == f.transaction_type)
        if f.status:
            stmt = stmt.where(Transaction.status == f.status)
        stmt = stmt.where(*f.conditions(Transaction.created_at))

        with self.db.session() as session:
            rows = session.execute(stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc())).all()

        transactions = [
            {
                **transaction_row(t, created_by, approved_by),
                "item_count": item_count or 0,
                "total_quantity": total_quantity or 0,
            }
            for t, created_by, approved_by, item_count, total_quantity in rows
        ]
        summary = {
            "total": len(transactions),
            "by_type": dict(Counter(t["transaction_type"] for t in transactions)),
            "by_status": dict(Counter(t["status"] for t in transactions)),
        }
        return ok(transactions=transactions, summary=summary)

    @operation("An error occurred while fetching purchase order report")
    def get_purchase_order_report(self, filters: dict | None = None) -> dict:
        f = parse(PurchaseOrderReportFilters, filters)
        totals = _line_totals(PurchaseOrderItem, PurchaseOrderItem.purchase_order_id)
        stmt = (
            orders_query()
            .add_columns(totals.c.item_count, totals.c.total_quantity)
            .outerjoin(totals, totals.c.parent_id == PurchaseOrder.id)
        )
        if f.supplier_id:
            stmt = stmt.where(PurchaseOrder.supplier_id == f.supplier_id)
        if f.status:
            stmt = stmt.where(PurchaseOrder.status == f.status)
        stmt = stmt.where(*f.conditions(PurchaseOrder.order_date))

        with self.db.session() as session:
            rows = session.execute(stmt.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc())).all()

        orders = [
            {
                **order_row(po, supplier_name, created_by, approved_by),
                "item_count": item_count or 0,
                "total_quantity": total_quantity or 0,
            }
            for po, supplier_name, created_by, approved_by, item_count, total_quantity in rows
        ]
        summary = {
            "total": len(orders),
            "total_amount": sum((o["total_amount"] or Decimal("0") for o in orders), Decimal("0")),
            "by_status": dict(Counter(o["status"] for o in orders)),
            "by_supplier": dict(Counter(o["supplier_name"] for o in orders if o["supplier_name"])),
        }
        return ok(orders=orders, summary=summary)

    @operation("An error occurred while fetching activity log report")
    def get_activity_log_report(self, filters: dict | None = None) -> dict:
        f = parse(ActivityLogFilters, filters)
        stmt = _logs_query()
        if f.user_id:
            stmt = stmt.where(ActivityLog.user_id == f.user_id)
        if f.action:
            stmt = stmt.where(ActivityLog.action == f.action)
        if f.entity_type:
            stmt = stmt.where(ActivityLog.entity_type == f.entity_type)
        stmt = stmt.where(*f.conditions(ActivityLog.created_at))

        with self.db.session() as session:
            rows = session.execute(stmt.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())).all()

        logs = [_log_row(log, username) for log, username in rows]
        summary = {
            "total": len(logs),
            "by_user": dict(Counter(log["user"] for log in logs if log["user"])),
            "by_action": dict(Counter(log["action"] for log in logs)),
            "by_entity_type": dict(Counter(log["entity_type"] for log in logs)),
        }
        return ok(logs=logs, summary=summary)

    @operation("An error occurred while fetching user activity report")
    def get_user_activity_report(self, filters: dict | None = None) -> dict:
        f = parse(UserActivityFilters, filters)
        window = f.conditions(ActivityLog.created_at)

        with self.db.session() as session:
            if not f.user_id:
                activity_count = func.count(ActivityLog.id)
                rows = session.execute(
                    select(
                        User.id,
                        User.username,
                        User.role,
                        activity_count,
                        func.min(ActivityLog.created_at),
                        func.max(ActivityLog.created_at),
                    )
                    .outerjoin(ActivityLog, and_(ActivityLog.user_id == User.id, *window))
                    .group_by(User.id, User.username, User.role)
                    .order_by(activity_count.desc(), User.username)
                ).all()
                return ok(
                    user_summary=[
                        {
                            "id": uid,
                            "username": username,
                            "role": role.value,
                            "activity_count": count,
                            "first_activity": first,
                            "last_activity": last,
                        }
                        for uid, username, role, count, first, last in rows
                    ]
                )

            user = session.get(User, f.user_id)
            if user is None:
                raise NotFound("User not found")

            rows = session.execute(
                _logs_query()
                .where(ActivityLog.user_id == f.user_id, *window)
                .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            ).all()
            logs = [_log_row(log, username) for log, username in rows]
            return ok(
                user={"id": user.id, "username": user.username, "role": user.role.value},
                logs=logs,
                summary={
                    "total": len(logs),
                    "by_action": dict(Counter(log["action"] for log in logs)),
                    "by_entity_type": dict(Counter(log["entity_type"] for log in logs)),
                },
            )

    @operation("An error occurred while exporting to CSV")
    def export_to_csv(self, report_data: list | None, filename: str) -> dict:
        path = write_csv(report_data, filename, self.export_dir)
        return ok("Report exported successfully", file_path=str(path))

"""
Channel dispatch between the UI and the handlers.

Every operation is addressed by a "<module>:<operation>" channel and
takes positional arguments. Channels acting on behalf of a user are
registered as authenticated: their first argument is the session token
from auth:login, which is swapped for the owning user id before the
handler runs.
"""
from __future__ import annotations

import inspect
import logging
from pathlib import Path
from typing import Any, Callable, NamedTuple

from sqlalchemy.exc import SQLAlchemyError

from stockdesk.app.core.exceptions import fail
from stockdesk.app.db.session import Database
from stockdesk.services.auth import AuthHandler
from stockdesk.services.procurement import ProcurementHandler
from stockdesk.services.reports import ReportsHandler
from stockdesk.services.stock import StockHandler
from stockdesk.services.transactions import TransactionHandler
from stockdesk.services.users import UserHandler

logger = logging.getLogger(__name__)

SESSION_INVALID = "Session expired or invalid"


class Channel(NamedTuple):
    handler: Callable[..., dict]
    authenticated: bool


class Bridge:
    def __init__(self, database: Database, export_dir: Path | None = None):
        self.db = database
        self.auth = AuthHandler(database)
        self.users = UserHandler(database)
        self.stock = StockHandler(database)
        self.supply = ProcurementHandler(database)
        self.transactions = TransactionHandler(database)
        self.reports = ReportsHandler(database, export_dir=export_dir)
        self._channels: dict[str, Channel] = {}
        self._register_all()

    def register(self, name: str, handler: Callable[..., dict], *, authenticated: bool = False) -> None:
        if name in self._channels:
            raise ValueError(f"channel already registered: {name}")
        self._channels[name] = Channel(handler, authenticated)

    def _register_all(self) -> None:
        # ---------- auth ----------
        self.register("auth:login", self.auth.login)
        self.register("auth:logout", self.auth.logout)
        self.register("auth:changePassword", self.auth.change_password, authenticated=True)
        self.register("auth:getUserProfile", self.auth.get_user_profile, authenticated=True)

        # ---------- users ----------
        self.register("users:getSecretaries", self.users.get_secretaries, authenticated=True)
        self.register("users:createSecretary", self.users.create_secretary, authenticated=True)
        self.register("users:updateSecretary", self.users.update_secretary, authenticated=True)
        self.register("users:resetSecretaryPassword", self.users.reset_secretary_password, authenticated=True)

        # ---------- stock ----------
        self.register("stock:getCategories", self.stock.get_categories)
        self.register("stock:createCategory", self.stock.create_category, authenticated=True)
        self.register("stock:updateCategory", self.stock.update_category, authenticated=True)
        self.register("stock:deleteCategory", self.stock.delete_category, authenticated=True)
        self.register("stock:getItems", self.stock.get_items)
        self.register("stock:getItemById", self.stock.get_item_by_id)
        self.register("stock:createItem", self.stock.create_item, authenticated=True)
        self.register("stock:updateItem", self.stock.update_item, authenticated=True)
        self.register("stock:updateQuantity", self.stock.update_quantity, authenticated=True)
        self.register("stock:getLowStockItems", self.stock.get_low_stock_items)

        # ---------- supply ----------
        self.register("supply:getSuppliers", self.supply.get_suppliers)
        self.register("supply:getSupplierById", self.supply.get_supplier_by_id)
        self.register("supply:createSupplier", self.supply.create_supplier, authenticated=True)
        self.register("supply:updateSupplier", self.supply.update_supplier, authenticated=True)
        self.register("supply:getPurchaseOrders", self.supply.get_purchase_orders)
        self.register("supply:getPurchaseOrderById", self.supply.get_purchase_order_by_id)
        self.register("supply:generateOrderNumber", self.supply.generate_order_number)
        self.register("supply:createPurchaseOrder", self.supply.create_purchase_order, authenticated=True)
        self.register("supply:updateOrderStatus", self.supply.update_order_status, authenticated=True)

        # ---------- transactions ----------
        self.register("transaction:getTransactions", self.transactions.get_transactions)
        self.register("transaction:getTransactionById", self.transactions.get_transaction_by_id)
        self.register("transaction:generateReferenceNumber", self.transactions.generate_reference_number)
        self.register("transaction:createTransaction", self.transactions.create_transaction, authenticated=True)
        self.register("transaction:updateStatus", self.transactions.update_status, authenticated=True)

        # ---------- reports ----------
        self.register("reports:getDashboardSummary", self.reports.get_dashboard_summary)
        self.register("reports:getStockLevelReport", self.reports.get_stock_level_report)
        self.register("reports:getStockMovementReport", self.reports.get_stock_movement_report)
        self.register("reports:getTransactionReport", self.reports.get_transaction_report)
        self.register("reports:getPurchaseOrderReport", self.reports.get_purchase_order_report)
        self.register("reports:getActivityLogReport", self.reports.get_activity_log_report)
        self.register("reports:getUserActivityReport", self.reports.get_user_activity_report)
        self.register("reports:exportToCsv", self.reports.export_to_csv)

    def channels(self) -> list[str]:
        return sorted(self._channels)

    def is_authenticated(self, name: str) -> bool:
        entry = self._channels.get(name)
        return bool(entry and entry.authenticated)

    def invoke(self, channel: str, *args: Any) -> dict:
        entry = self._channels.get(channel)
        if entry is None:
            return fail(f"Unknown operation: {channel}")

        if entry.authenticated:
            token = args[0] if args else None
            try:
                user_id = self.auth.resolve_session(token)
            except SQLAlchemyError:
                logger.exception("Session lookup failed for %s", channel)
                return fail(SESSION_INVALID)
            if user_id is None:
                return fail(SESSION_INVALID)
            args = (user_id, *args[1:])

        try:
            inspect.signature(entry.handler).bind(*args)
        except TypeError:
            return fail(f"Invalid arguments for {channel}")

        logger.debug("invoke %s", channel)
        return entry.handler(*args)

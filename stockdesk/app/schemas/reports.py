from __future__ import annotations

from pydantic import Field

from stockdesk.app.db.models.core_types import POStatus, TransactionStatus, TransactionType
from stockdesk.app.schemas.common import DateRange


class StockMovementFilters(DateRange):
    stock_item_id: int | None = None


class TransactionReportFilters(DateRange):
    transaction_type: TransactionType | None = Field(default=None, alias="type")
    status: TransactionStatus | None = None


class PurchaseOrderReportFilters(DateRange):
    supplier_id: int | None = None
    status: POStatus | None = None


class ActivityLogFilters(DateRange):
    user_id: int | None = None
    action: str | None = None
    entity_type: str | None = None


class UserActivityFilters(DateRange):
    user_id: int | None = None

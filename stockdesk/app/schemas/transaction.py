from __future__ import annotations

from decimal import Decimal

from pydantic import Field

from stockdesk.app.db.models.core_types import TransactionStatus, TransactionType
from stockdesk.app.schemas.common import DateRange, InputModel


class TransactionLineIn(InputModel):
    stock_item_id: int
    quantity: int = Field(gt=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    total_price: Decimal | None = Field(default=None, ge=0)


class TransactionCreate(InputModel):
    transaction_type: TransactionType
    reference_number: str | None = Field(default=None, min_length=1, max_length=64)
    notes: str | None = None


class TransactionFilters(DateRange):
    transaction_type: TransactionType | None = Field(default=None, alias="type")
    status: TransactionStatus | None = None
    created_by: int | None = None

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from stockdesk.app.db.models.core_types import POStatus
from stockdesk.app.schemas.common import DateRange, InputModel


class SupplierCreate(InputModel):
    name: str = Field(min_length=1, max_length=255)
    contact_person: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    address: str | None = None


class SupplierUpdate(InputModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    contact_person: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    address: str | None = None


class PurchaseOrderLineIn(InputModel):
    stock_item_id: int
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    total_price: Decimal | None = Field(default=None, ge=0)


class PurchaseOrderCreate(InputModel):
    supplier_id: int
    order_number: str | None = Field(default=None, min_length=1, max_length=64)
    expected_delivery_date: datetime | None = None
    total_amount: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class PurchaseOrderFilters(DateRange):
    supplier_id: int | None = None
    status: POStatus | None = None

from __future__ import annotations

from pydantic import Field

from stockdesk.app.schemas.common import InputModel


class CategoryIn(InputModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class StockItemCreate(InputModel):
    category_id: int
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    sku: str = Field(min_length=1, max_length=64)
    current_quantity: int = Field(default=0, ge=0)
    unit: str | None = Field(default=None, max_length=32)
    minimum_quantity: int = Field(default=0, ge=0)


class StockItemUpdate(InputModel):
    category_id: int | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    sku: str | None = Field(default=None, min_length=1, max_length=64)
    current_quantity: int | None = Field(default=None, ge=0)
    unit: str | None = Field(default=None, max_length=32)
    minimum_quantity: int | None = Field(default=None, ge=0)


class ItemFilters(InputModel):
    category_id: int | None = None
    search: str | None = None
    low_stock: bool = False

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockdesk.app.core.exceptions import NotFound, ValidationFailed, ok, operation
from stockdesk.app.db.models.models_v1 import StockCategory, StockItem
from stockdesk.app.db.session import Database
from stockdesk.app.schemas.common import parse
from stockdesk.app.schemas.stock import CategoryIn, ItemFilters, StockItemCreate, StockItemUpdate
from stockdesk.services.activity import record_activity
from stockdesk.services.inventory import set_stock_quantity

# columns an update may change but never clear
_REQUIRED_ITEM_FIELDS = {"category_id", "name", "sku", "current_quantity", "minimum_quantity"}


def category_row(c: StockCategory) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }


def item_row(item: StockItem, category_name: str | None) -> dict:
    return {
        "id": item.id,
        "category_id": item.category_id,
        "category_name": category_name,
        "name": item.name,
        "description": item.description,
        "sku": item.sku,
        "current_quantity": item.current_quantity,
        "unit": item.unit,
        "minimum_quantity": item.minimum_quantity,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


def is_low_stock():
    return StockItem.current_quantity <= StockItem.minimum_quantity


def _items_query():
    return select(StockItem, StockCategory.name).outerjoin(
        StockCategory, StockCategory.id == StockItem.category_id
    )


def _ensure_category(session: Session, category_id: int) -> None:
    if session.get(StockCategory, category_id) is None:
        raise NotFound("Category not found")


def _ensure_unique_sku(session: Session, sku: str, exclude_id: int | None = None) -> None:
    stmt = select(StockItem.id).where(StockItem.sku == sku)
    if exclude_id is not None:
        stmt = stmt.where(StockItem.id != exclude_id)
    if session.scalar(stmt):
        raise ValidationFailed("SKU already exists")


class StockHandler:
    def __init__(self, db: Database):
        self.db = db

    # ---------- Categories ----------
    @operation("An error occurred while fetching categories")
    def get_categories(self) -> dict:
        with self.db.session() as session:
            rows = session.execute(select(StockCategory).order_by(StockCategory.name)).scalars().all()
            return ok(categories=[category_row(c) for c in rows])

    @operation("An error occurred while creating category")
    def create_category(self, user_id: int, category: dict) -> dict:
        payload = parse(CategoryIn, category)
        with self.db.session() as session, session.begin():
            if session.scalar(select(StockCategory.id).where(StockCategory.name == payload.name)):
                raise ValidationFailed("Category name already exists")

            c = StockCategory(name=payload.name, description=payload.description or None)
            session.add(c)
            session.flush()

            record_activity(
                session,
                user_id=user_id,
                action="create",
                entity_type="stock_category",
                entity_id=c.id,
                details=f"Created category: {c.name}",
            )
            return ok("Category created successfully", category_id=c.id)

    @operation("An error occurred while updating category")
    def update_category(self, user_id: int, category_id: int, category: dict) -> dict:
        payload = parse(CategoryIn, category)
        with self.db.session() as session, session.begin():
            c = session.get(StockCategory, category_id)
            if c is None:
                raise NotFound("Category not found")

            clash = session.scalar(
                select(StockCategory.id)
                .where(StockCategory.name == payload.name)
                .where(StockCategory.id != category_id)
            )
            if clash:
                raise ValidationFailed("Category name already exists")

            c.name = payload.name
            c.description = payload.description or None
            record_activity(
                session,
                user_id=user_id,
                action="update",
                entity_type="stock_category",
                entity_id=c.id,
                details=f"Updated category: {c.name}",
            )
        return ok("Category updated successfully")

    @operation("An error occurred while deleting category")
    def delete_category(self, user_id: int, category_id: int) -> dict:
        with self.db.session() as session, session.begin():
            c = session.get(StockCategory, category_id)
            if c is None:
                raise NotFound("Category not found")

            in_use = session.scalar(
                select(func.count(StockItem.id)).where(StockItem.category_id == category_id)
            )
            if in_use:
                raise ValidationFailed("Cannot delete category with existing stock items")

            name = c.name
            session.delete(c)
            record_activity(
                session,
                user_id=user_id,
                action="delete",
                entity_type="stock_category",
                entity_id=category_id,
                details=f"Deleted category: {name}",
            )
        return ok("Category deleted successfully")

    # ---------- Items ----------
    @operation("An error occurred while fetching stock items")
    def get_items(self, filters: dict | None = None) -> dict:
        f = parse(ItemFilters, filters)
        stmt = _items_query()

        if f.category_id:
            stmt = stmt.where(StockItem.category_id == f.category_id)
        if f.search:
            term = f"%{f.search}%"
            stmt = stmt.where(StockItem.name.ilike(term) | StockItem.sku.ilike(term))
        if f.low_stock:
            stmt = stmt.where(is_low_stock())

        with self.db.session() as session:
            rows = session.execute(stmt.order_by(StockItem.name)).all()
            return ok(items=[item_row(item, category_name) for item, category_name in rows])

    @operation("An error occurred while fetching stock item")
    def get_item_by_id(self, item_id: int) -> dict:
        with self.db.session() as session:
            row = session.execute(_items_query().where(StockItem.id == item_id)).first()
            if row is None:
                raise NotFound("Stock item not found")
            item, category_name = row
            return ok(item=item_row(item, category_name))

    @operation("An error occurred while creating stock item")
    def create_item(self, user_id: int, item: dict) -> dict:
        payload = parse(StockItemCreate, item)
        with self.db.session() as session, session.begin():
            _ensure_unique_sku(session, payload.sku)
            _ensure_category(session, payload.category_id)

            si = StockItem(
                category_id=payload.category_id,
                name=payload.name,
                description=payload.description or None,
                sku=payload.sku,
                current_quantity=payload.current_quantity,
                unit=payload.unit,
                minimum_quantity=payload.minimum_quantity,
            )
            session.add(si)
            session.flush()

            record_activity(
                session,
                user_id=user_id,
                action="create",
                entity_type="stock_item",
                entity_id=si.id,
                details=f"Created stock item: {si.name} ({si.sku})",
            )
            return ok("Stock item created successfully", item_id=si.id)

    @operation("An error occurred while updating stock item")
    def update_item(self, user_id: int, item_id: int, item: dict) -> dict:
        changes = parse(StockItemUpdate, item).model_dump(exclude_unset=True)
        if not changes:
            raise ValidationFailed("No fields to update")
        for field in _REQUIRED_ITEM_FIELDS & changes.keys():
            if changes[field] is None:
                raise ValidationFailed(f"{field} cannot be empty")

        with self.db.session() as session, session.begin():
            si = session.get(StockItem, item_id)
            if si is None:
                raise NotFound("Stock item not found")
            label = f"{si.name} ({si.sku})"

            if "sku" in changes and changes["sku"] != si.sku:
                _ensure_unique_sku(session, changes["sku"], exclude_id=item_id)
            if "category_id" in changes:
                _ensure_category(session, changes["category_id"])

            touched = ", ".join(sorted(changes))
            new_quantity = changes.pop("current_quantity", None)
            for field, value in changes.items():
                setattr(si, field, value)

            if new_quantity is not None and new_quantity != si.current_quantity:
                set_stock_quantity(session, si, new_quantity, actor_id=user_id, reason="Item edit")

            record_activity(
                session,
                user_id=user_id,
                action="update",
                entity_type="stock_item",
                entity_id=si.id,
                details=f"Updated stock item fields ({touched}): {label}",
            )
        return ok("Stock item updated successfully")

    @operation("An error occurred while updating stock quantity")
    def update_quantity(self, user_id: int, item_id: int, new_quantity: int, reason: str | None = None) -> dict:
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
            raise ValidationFailed("Quantity must be a whole number of zero or more")

        with self.db.session() as session, session.begin():
            si = session.get(StockItem, item_id)
            if si is None:
                raise NotFound("Stock item not found")

            old_quantity = si.current_quantity
            change = set_stock_quantity(session, si, new_quantity, actor_id=user_id, reason=reason)
        return ok(
            "Stock quantity updated successfully",
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            change=change,
        )

    @operation("An error occurred while fetching low stock items")
    def get_low_stock_items(self) -> dict:
        fill_ratio = StockItem.current_quantity * 1.0 / func.nullif(StockItem.minimum_quantity, 0)
        # minimum 0 has no ratio; it sorts with items sitting exactly at their minimum
        stmt = (
            _items_query()
            .where(is_low_stock())
            .order_by(func.coalesce(fill_ratio, 1.0), StockItem.name)
        )
        with self.db.session() as session:
            rows = session.execute(stmt).all()
            return ok(items=[item_row(item, category_name) for item, category_name in rows])

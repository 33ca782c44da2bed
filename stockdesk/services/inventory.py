from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockdesk.app.core.exceptions import NotFound, StateConflict
from stockdesk.app.db.models.models_v1 import StockItem, StockMovement
from stockdesk.app.db.models.core_types import MovementType
from stockdesk.services.activity import record_activity


def _lock_item(db: Session, item_id: int) -> StockItem | None:
    return (
        db.execute(select(StockItem).where(StockItem.id == item_id).with_for_update())
        .scalar_one_or_none()
    )


def _record_movement(
    db: Session,
    item: StockItem,
    *,
    before: int,
    movement_type: MovementType,
    actor_id: int | None,
    reference: str | None = None,
    reason: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        stock_item_id=item.id,
        movement_type=movement_type,
        quantity_change=item.current_quantity - before,
        quantity_before=before,
        quantity_after=item.current_quantity,
        reference=reference,
        reason=reason,
        created_by=actor_id,
    )
    db.add(movement)
    return movement


def apply_stock_delta(
    db: Session,
    item_id: int,
    delta: int,
    *,
    actor_id: int | None,
    movement_type: MovementType,
    source: str,
    reference: str | None = None,
) -> StockItem:
    """
    Add `delta` (signed) to an item's quantity inside the caller's transaction.

    Rules:
        - the item row is locked before it is read
        - the quantity never goes below zero: a negative delta larger than
          the stock on hand raises StateConflict and nothing is written
        - each applied delta writes one StockMovement and one activity row
    """
    item = _lock_item(db, item_id)
    if item is None:
        if delta < 0:
            raise StateConflict(f"Insufficient stock quantity for item ID {item_id}")
        raise NotFound(f"Stock item not found (ID {item_id})")

    before = item.current_quantity
    if before + delta < 0:
        raise StateConflict(f"Insufficient stock quantity for item ID {item_id}")

    item.current_quantity = before + delta
    _record_movement(
        db,
        item,
        before=before,
        movement_type=movement_type,
        actor_id=actor_id,
        reference=reference,
    )
    record_activity(
        db,
        user_id=actor_id,
        action="update",
        entity_type="stock_item",
        entity_id=item.id,
        details=f"Updated quantity ({delta:+d}) from {source}",
    )
    # later lines may re-select this row
    db.flush()
    return item


def set_stock_quantity(
    db: Session,
    item: StockItem,
    new_quantity: int,
    *,
    actor_id: int | None,
    reason: str | None,
) -> int:
    """Overwrite the quantity (manual count). Returns the signed change."""
    if new_quantity < 0:
        raise StateConflict("Stock quantity cannot be negative")

    before = item.current_quantity
    item.current_quantity = new_quantity
    change = new_quantity - before

    _record_movement(
        db,
        item,
        before=before,
        movement_type=MovementType.manual,
        actor_id=actor_id,
        reason=reason,
    )
    record_activity(
        db,
        user_id=actor_id,
        action="update",
        entity_type="stock_item",
        entity_id=item.id,
        details=f"Updated quantity from {before} to {new_quantity} ({change:+d}). Reason: {reason or 'n/a'}",
    )
    return change

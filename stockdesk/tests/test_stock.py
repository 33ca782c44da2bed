from sqlalchemy import select

from stockdesk.app.db.models.core_types import MovementType
from stockdesk.app.db.models.models_v1 import ActivityLog, StockMovement


# ---------- Categories ----------
def test_category_names_are_unique(bridge, admin_id, make_category):
    make_category("Tools")

    result = bridge.stock.create_category(admin_id, {"name": "Tools"})

    assert result == {"success": False, "message": "Category name already exists"}


def test_update_category(bridge, admin_id, make_category):
    cat_id = make_category("Tools")
    make_category("Paint")

    clash = bridge.stock.update_category(admin_id, cat_id, {"name": "Paint"})
    assert clash == {"success": False, "message": "Category name already exists"}

    done = bridge.stock.update_category(admin_id, cat_id, {"name": "Hand tools", "description": "small"})
    assert done["success"] is True
    names = [c["name"] for c in bridge.stock.get_categories()["categories"]]
    assert names == ["Hand tools", "Paint"]


def test_category_with_items_cannot_be_deleted(bridge, admin_id, make_category, make_item):
    cat_id = make_category("Busy")
    make_item(category_id=cat_id)
    empty_id = make_category("Empty")

    blocked = bridge.stock.delete_category(admin_id, cat_id)
    assert blocked == {"success": False, "message": "Cannot delete category with existing stock items"}

    assert bridge.stock.delete_category(admin_id, empty_id)["success"] is True
    assert bridge.stock.delete_category(admin_id, empty_id) == {"success": False, "message": "Category not found"}


# ---------- Items ----------
def test_create_item_requires_unique_sku_and_known_category(bridge, admin_id, make_category, make_item):
    cat_id = make_category()
    make_item(category_id=cat_id, sku="BOLT-01")

    dup = bridge.stock.create_item(admin_id, {"categoryId": cat_id, "name": "Other", "sku": "BOLT-01"})
    assert dup == {"success": False, "message": "SKU already exists"}
    assert [i["sku"] for i in bridge.stock.get_items()["items"]].count("BOLT-01") == 1

    orphan = bridge.stock.create_item(admin_id, {"categoryId": 999, "name": "Other", "sku": "NEW-01"})
    assert orphan == {"success": False, "message": "Category not found"}


def test_create_item_rejects_negative_quantity(bridge, admin_id, make_category):
    result = bridge.stock.create_item(
        admin_id, {"categoryId": make_category(), "name": "X", "sku": "X-1", "currentQuantity": -1}
    )

    assert result["success"] is False
    assert result["message"].startswith("Invalid ")
    assert bridge.stock.get_items()["items"] == []


def test_get_items_filters(bridge, make_category, make_item):
    tools = make_category("Tools")
    paint = make_category("Paint")
    make_item(category_id=tools, name="Hammer", sku="HAM-1", quantity=10, minimum=2)
    make_item(category_id=tools, name="Wrench", sku="WR-1", quantity=1, minimum=5)
    make_item(category_id=paint, name="White paint", sku="PNT-W", quantity=3, minimum=3)

    everything = bridge.stock.get_items()["items"]
    assert [i["name"] for i in everything] == ["Hammer", "White paint", "Wrench"]
    assert everything[0]["category_name"] == "Tools"

    by_category = bridge.stock.get_items({"categoryId": tools})["items"]
    assert {i["sku"] for i in by_category} == {"HAM-1", "WR-1"}

    by_search = bridge.stock.get_items({"search": "pnt"})["items"]
    assert [i["sku"] for i in by_search] == ["PNT-W"]

    low = bridge.stock.get_items({"lowStock": True})["items"]
    assert {i["sku"] for i in low} == {"WR-1", "PNT-W"}


def test_get_item_by_id(bridge, make_item):
    item_id = make_item(name="Saw", sku="SAW-1")

    assert bridge.stock.get_item_by_id(item_id)["item"]["sku"] == "SAW-1"
    assert bridge.stock.get_item_by_id(404) == {"success": False, "message": "Stock item not found"}


def test_update_item_partial(bridge, database, admin_id, make_item):
    item_id = make_item(name="Saw", sku="SAW-1", quantity=4)

    result = bridge.stock.update_item(admin_id, item_id, {"name": "Hand saw", "minimumQuantity": 2})

    assert result == {"success": True, "message": "Stock item updated successfully"}
    item = bridge.stock.get_item_by_id(item_id)["item"]
    assert item["name"] == "Hand saw"
    assert item["sku"] == "SAW-1"
    assert item["minimum_quantity"] == 2
    assert item["current_quantity"] == 4

    with database.session() as s:
        details = s.scalars(
            select(ActivityLog.details).where(
                ActivityLog.entity_type == "stock_item", ActivityLog.action == "update"
            )
        ).all()
    assert details == ["Updated stock item fields (minimum_quantity, name): Saw (SAW-1)"]


def test_update_item_sku_clash(bridge, admin_id, make_item):
    make_item(sku="A-1")
    item_id = make_item(sku="B-1")

    result = bridge.stock.update_item(admin_id, item_id, {"sku": "A-1"})

    assert result == {"success": False, "message": "SKU already exists"}


def test_update_item_quantity_goes_through_ledger(bridge, database, admin_id, make_item):
    item_id = make_item(quantity=4)

    bridge.stock.update_item(admin_id, item_id, {"currentQuantity": 9})

    with database.session() as s:
        movement = s.scalars(select(StockMovement).where(StockMovement.stock_item_id == item_id)).one()
    assert movement.movement_type == MovementType.manual
    assert (movement.quantity_before, movement.quantity_after, movement.quantity_change) == (4, 9, 5)


def test_update_quantity(bridge, database, admin_id, make_item):
    item_id = make_item(quantity=10)

    result = bridge.stock.update_quantity(admin_id, item_id, 7, "Stock count")

    assert result == {
        "success": True,
        "message": "Stock quantity updated successfully",
        "old_quantity": 10,
        "new_quantity": 7,
        "change": -3,
    }
    with database.session() as s:
        details = s.scalars(
            select(ActivityLog.details).where(ActivityLog.entity_type == "stock_item", ActivityLog.action == "update")
        ).all()
    assert details == ["Updated quantity from 10 to 7 (-3). Reason: Stock count"]


def test_update_quantity_rejects_negative(bridge, admin_id, make_item):
    item_id = make_item(quantity=10)

    result = bridge.stock.update_quantity(admin_id, item_id, -1, "oops")

    assert result["success"] is False
    assert bridge.stock.get_item_by_id(item_id)["item"]["current_quantity"] == 10


def test_low_stock_items_most_depleted_first(bridge, make_item):
    make_item(name="Half", sku="H", quantity=5, minimum=10)
    make_item(name="Empty", sku="E", quantity=0, minimum=4)
    make_item(name="Fine", sku="F", quantity=50, minimum=10)
    make_item(name="At limit", sku="L", quantity=3, minimum=3)

    items = bridge.stock.get_low_stock_items()["items"]

    assert [i["sku"] for i in items] == ["E", "H", "L"]


def test_low_stock_item_without_minimum_sorts_as_at_limit(bridge, make_item):
    make_item(name="Zero", sku="Z", quantity=0, minimum=0)
    make_item(name="Empty", sku="E", quantity=0, minimum=10)
    make_item(name="Half", sku="H", quantity=5, minimum=10)

    items = bridge.stock.get_low_stock_items()["items"]

    assert [i["name"] for i in items] == ["Empty", "Half", "Zero"]

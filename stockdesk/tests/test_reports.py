from decimal import Decimal

import pytest


@pytest.fixture
def activity(bridge, admin_id, make_category, make_item, make_supplier):
    """A little history: stock, one received order, one approved issuance."""
    tools = make_category("Tools")
    paint = make_category("Paint")
    hammer = make_item(category_id=tools, name="Hammer", sku="HAM", quantity=10, minimum=2)
    wrench = make_item(category_id=tools, name="Wrench", sku="WR", quantity=1, minimum=4)
    make_item(category_id=paint, name="White", sku="PW", quantity=0, minimum=1)
    supplier = make_supplier("Acme")

    order = bridge.supply.create_purchase_order(
        admin_id,
        {"supplierId": supplier},
        [{"stockItemId": wrench, "quantity": 4, "unitPrice": "3.00"}],
    )
    bridge.supply.update_order_status(admin_id, order["order_id"], "approved")
    bridge.supply.update_order_status(admin_id, order["order_id"], "received", True)

    pending_order = bridge.supply.create_purchase_order(
        admin_id,
        {"supplierId": supplier},
        [
            {"stockItemId": hammer, "quantity": 1, "unitPrice": "10.00"},
            {"stockItemId": wrench, "quantity": 2, "unitPrice": "3.00"},
        ],
    )

    issuance = bridge.transactions.create_transaction(
        admin_id, {"transactionType": "issuance"}, [{"stockItemId": hammer, "quantity": 3}]
    )
    bridge.transactions.update_status(admin_id, issuance["transaction_id"], "approved")
    bridge.transactions.create_transaction(
        admin_id, {"transactionType": "return"}, [{"stockItemId": hammer, "quantity": 1}]
    )
    return {
        "hammer": hammer,
        "wrench": wrench,
        "order": order,
        "pending_order": pending_order,
        "issuance": issuance,
    }


def test_dashboard_summary(bridge, activity):
    summary = bridge.reports.get_dashboard_summary()["summary"]

    assert summary["stock_count"] == 3
    assert summary["low_stock_count"] == 1  # only White; Wrench was restocked above its minimum
    assert summary["pending_orders_count"] == 1
    assert summary["pending_transactions_count"] == 1
    assert len(summary["recent_activity"]) == 10
    assert summary["recent_activity"][0]["user"] == "admin"


def test_stock_level_report(bridge, activity):
    result = bridge.reports.get_stock_level_report()

    by_sku = {i["sku"]: i for i in result["stock_items"]}
    assert by_sku["PW"]["is_low_stock"] is True
    assert by_sku["HAM"]["is_low_stock"] is False
    rollup = [
        (c["name"], c["item_count"], c["total_quantity"], c["low_stock_count"]) for c in result["category_summary"]
    ]
    assert rollup == [
        ("Paint", 1, 0, 1),
        ("Tools", 2, 12, 0),
    ]


def test_empty_category_rolls_up_to_zero(bridge, make_category):
    make_category("Nothing here")

    summary = bridge.reports.get_stock_level_report()["category_summary"]

    assert len(summary) == 1
    assert summary[0]["name"] == "Nothing here"
    assert (summary[0]["item_count"], summary[0]["total_quantity"], summary[0]["low_stock_count"]) == (0, 0, 0)


def test_stock_movement_report_reads_ledger(bridge, activity, admin_id):
    bridge.stock.update_quantity(admin_id, activity["hammer"], 20, "recount")

    movements = bridge.reports.get_stock_movement_report()["movements"]

    assert [(m["sku"], m["movement_type"], m["quantity_change"]) for m in movements] == [
        ("HAM", "manual", 13),
        ("HAM", "issue", -3),
        ("WR", "receipt", 4),
    ]
    assert movements[0]["reason"] == "recount"
    assert movements[0]["user"] == "admin"

    only_wrench = bridge.reports.get_stock_movement_report({"stockItemId": activity["wrench"]})["movements"]
    assert [m["quantity_after"] for m in only_wrench] == [5]


def test_transaction_report(bridge, activity):
    result = bridge.reports.get_transaction_report()

    assert result["summary"] == {
        "total": 2,
        "by_type": {"issuance": 1, "return": 1},
        "by_status": {"approved": 1, "pending": 1},
    }
    issuance = next(t for t in result["transactions"] if t["transaction_type"] == "issuance")
    assert (issuance["item_count"], issuance["total_quantity"]) == (1, 3)

    approved_only = bridge.reports.get_transaction_report({"status": "approved"})
    assert approved_only["summary"]["total"] == 1


def test_purchase_order_report(bridge, activity):
    result = bridge.reports.get_purchase_order_report()

    summary = result["summary"]
    assert summary["total"] == 2
    assert summary["total_amount"] == Decimal("28.00")
    assert summary["by_status"] == {"received": 1, "pending": 1}
    assert summary["by_supplier"] == {"Acme": 2}
    pending = next(o for o in result["orders"] if o["status"] == "pending")
    assert (pending["item_count"], pending["total_quantity"]) == (2, 3)


def test_activity_log_report(bridge, activity, admin_id):
    result = bridge.reports.get_activity_log_report({"entityType": "purchase_order"})

    assert result["summary"]["by_entity_type"] == {"purchase_order": result["summary"]["total"]}
    assert result["summary"]["by_action"] == {"create": 2, "update": 2}
    assert result["summary"]["by_user"] == {"admin": 4}

    nothing = bridge.reports.get_activity_log_report({"userId": admin_id, "action": "delete"})
    assert nothing["logs"] == []


def test_user_activity_report(bridge, activity, admin_id, make_secretary):
    make_secretary("idle", "idle-password")

    overview = bridge.reports.get_user_activity_report()["user_summary"]
    assert overview[0]["username"] == "admin"
    assert overview[0]["activity_count"] > 0
    idle = next(u for u in overview if u["username"] == "idle")
    assert idle["activity_count"] == 0
    assert idle["first_activity"] is None

    detail = bridge.reports.get_user_activity_report({"userId": admin_id})
    assert detail["user"] == {"id": admin_id, "username": "admin", "role": "admin"}
    assert detail["summary"]["total"] == len(detail["logs"]) == overview[0]["activity_count"]

    assert bridge.reports.get_user_activity_report({"userId": 999}) == {"success": False, "message": "User not found"}

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME


def test_channels_cover_every_module(bridge):
    prefixes = {name.split(":")[0] for name in bridge.channels()}

    assert prefixes == {"auth", "users", "stock", "supply", "transaction", "reports"}
    assert "stock:createItem" in bridge.channels()
    assert bridge.is_authenticated("stock:createItem")
    assert not bridge.is_authenticated("stock:getItems")


def test_unknown_channel(bridge):
    assert bridge.invoke("stock:teleport") == {"success": False, "message": "Unknown operation: stock:teleport"}


def test_argument_mismatch(bridge):
    result = bridge.invoke("stock:getItemById")

    assert result == {"success": False, "message": "Invalid arguments for stock:getItemById"}


def test_authenticated_channel_resolves_token(bridge, admin_token, admin_id):
    result = bridge.invoke("stock:createCategory", admin_token, {"name": "Tools"})
    assert result["success"] is True

    profile = bridge.invoke("auth:getUserProfile", admin_token)
    assert profile["user"]["id"] == admin_id


def test_authenticated_channel_rejects_bad_token(bridge, admin_id):
    expected = {"success": False, "message": "Session expired or invalid"}

    assert bridge.invoke("stock:createCategory", "forged", {"name": "Tools"}) == expected
    # a bare user id is not a credential
    assert bridge.invoke("stock:createCategory", admin_id, {"name": "Tools"}) == expected
    assert bridge.invoke("users:getSecretaries") == expected
    assert bridge.invoke("stock:getCategories")["categories"] == []


def test_logged_out_token_is_refused(bridge, admin_token):
    bridge.invoke("auth:logout", admin_token)

    result = bridge.invoke("auth:changePassword", admin_token, ADMIN_PASSWORD, "another-password")

    assert result == {"success": False, "message": "Session expired or invalid"}
    assert bridge.invoke("auth:login", ADMIN_USERNAME, ADMIN_PASSWORD)["success"] is True


def test_secretary_token_cannot_reach_admin_channels(bridge, make_secretary):
    make_secretary("clerk", "clerk-password")
    token = bridge.invoke("auth:login", "clerk", "clerk-password")["token"]

    assert bridge.invoke("users:getSecretaries", token) == {"success": False, "message": "Unauthorized access"}


def test_end_to_end_issuance_over_bridge(bridge, admin_token):
    cat = bridge.invoke("stock:createCategory", admin_token, {"name": "Safety"})["category_id"]
    item = bridge.invoke(
        "stock:createItem",
        admin_token,
        {"categoryId": cat, "name": "Helmet", "sku": "HLM", "currentQuantity": 8, "minimumQuantity": 2},
    )["item_id"]
    created = bridge.invoke(
        "transaction:createTransaction",
        admin_token,
        {"transactionType": "issuance"},
        [{"stockItemId": item, "quantity": 5}],
    )

    approved = bridge.invoke("transaction:updateStatus", admin_token, created["transaction_id"], "approved", True)

    assert approved["success"] is True
    assert bridge.invoke("stock:getItemById", item)["item"]["current_quantity"] == 3

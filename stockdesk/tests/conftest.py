import pytest
from sqlalchemy import select

from stockdesk.app.bridge import Bridge
from stockdesk.app.db.models.models_v1 import User
from stockdesk.app.db.session import Database

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin-password"


@pytest.fixture(scope="function")
def database():
    """
    Fresh in-memory store per test.

    StaticPool keeps one connection alive, so every session of the test
    sees the same database; dispose() throws it away.
    """
    db = Database("sqlite://", seed_admins=[(ADMIN_USERNAME, ADMIN_PASSWORD)], echo=False)
    db.init()
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
def bridge(database, tmp_path):
    return Bridge(database, export_dir=tmp_path / "exports")


@pytest.fixture
def admin_id(database) -> int:
    with database.session() as s:
        return s.scalar(select(User.id).where(User.username == ADMIN_USERNAME))


@pytest.fixture
def admin_token(bridge) -> str:
    result = bridge.invoke("auth:login", ADMIN_USERNAME, ADMIN_PASSWORD)
    assert result["success"], result
    return result["token"]


# ---------- Factories ----------
@pytest.fixture
def make_category(bridge, admin_id):
    counter = {"n": 0}

    def _make(name: str | None = None, description: str | None = None) -> int:
        counter["n"] += 1
        result = bridge.stock.create_category(
            admin_id, {"name": name or f"Category {counter['n']}", "description": description}
        )
        assert result["success"], result
        return result["category_id"]

    return _make


@pytest.fixture
def make_item(bridge, admin_id, make_category):
    counter = {"n": 0}

    def _make(
        *,
        category_id: int | None = None,
        name: str | None = None,
        sku: str | None = None,
        quantity: int = 0,
        minimum: int = 0,
        unit: str = "pcs",
    ) -> int:
        counter["n"] += 1
        result = bridge.stock.create_item(
            admin_id,
            {
                "categoryId": category_id or make_category(),
                "name": name or f"Item {counter['n']}",
                "sku": sku or f"SKU-{counter['n']:03d}",
                "currentQuantity": quantity,
                "minimumQuantity": minimum,
                "unit": unit,
            },
        )
        assert result["success"], result
        return result["item_id"]

    return _make


@pytest.fixture
def make_supplier(bridge, admin_id):
    counter = {"n": 0}

    def _make(name: str | None = None, **fields) -> int:
        counter["n"] += 1
        result = bridge.supply.create_supplier(admin_id, {"name": name or f"Supplier {counter['n']}", **fields})
        assert result["success"], result
        return result["supplier_id"]

    return _make


@pytest.fixture
def make_secretary(bridge, admin_id):
    def _make(username: str = "sec1", password: str = "secret-pass", is_active: bool = True) -> int:
        result = bridge.users.create_secretary(
            admin_id, {"username": username, "password": password, "isActive": is_active}
        )
        assert result["success"], result
        return result["user_id"]

    return _make


@pytest.fixture
def broken_sequence(monkeypatch):
    """Every sequence-number scan raises, as if the numbering query failed."""
    from sqlalchemy.exc import OperationalError

    from stockdesk.services import numbering, procurement, transactions

    def _raise(*args, **kwargs):
        raise OperationalError("SELECT ...", {}, Exception("database is locked"))

    for module in (numbering, procurement, transactions):
        monkeypatch.setattr(module, "next_sequence_number", _raise)

"""CLI command tests (flask system/counters/ledger/cache groups)."""

from laundrypos.extensions import db
from laundrypos.models import PendingStockHistory, Store


def test_create_store(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "create-store", "--name", "Dhaka Branch", "--timezone", "Asia/Dhaka"])

    assert result.exit_code == 0, result.output
    assert "PASS Created store: Dhaka Branch" in result.output
    assert db.session.query(Store).filter_by(name="Dhaka Branch").one().timezone == "Asia/Dhaka"


def test_create_store_rejects_unknown_timezone(app):
    result = app.test_cli_runner().invoke(args=["system", "create-store", "--name", "X", "--timezone", "Nowhere/City"])

    assert result.exit_code != 0
    assert "Unknown timezone" in result.output


def test_counter_reset_and_show(app, store):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "counters", "reset", "--store-id", str(store.id), "--date", "2025-12-25", "--start", "41", "--by", "owner",
    ])
    assert result.exit_code == 0, result.output
    assert "reset to 41 by owner" in result.output

    result = runner.invoke(args=["counters", "show", "--store-id", str(store.id), "--date", "2025-12-25"])
    assert "last_number=41" in result.output

    result = runner.invoke(args=["counters", "list", "--store-id", str(store.id)])
    assert "25122025" in result.output


def test_counter_show_unknown_store(app):
    result = app.test_cli_runner().invoke(args=["counters", "show", "--store-id", "99"])
    assert result.exit_code != 0
    assert "Store 99 not found" in result.output


def test_ledger_drain(app, store, products):
    payload = {
        "id": "stock_1_1", "product_id": "p1", "product_name": "Shirt Wash", "change_type": "damage",
        "quantity": -1, "previous_stock": 10, "new_stock": 9, "timestamp": "2025-12-25T10:00:00.000Z",
    }
    db.session.add(PendingStockHistory(store_id=store.id, payload=payload, attempts=0))
    db.session.commit()
    runner = app.test_cli_runner()

    assert "damage" in runner.invoke(args=["ledger", "pending", "--store-id", str(store.id)]).output

    result = runner.invoke(args=["ledger", "drain"])
    assert result.exit_code == 0, result.output
    assert "PASS Delivered 1 entries" in result.output
    assert "No pending ledger entries." in runner.invoke(args=["ledger", "pending", "--store-id", str(store.id)]).output


def test_cache_clear(app, store):
    result = app.test_cli_runner().invoke(args=["cache", "clear", "--store-id", str(store.id), "--all"])
    assert result.exit_code == 0
    assert "stock_history" in result.output


def test_users_add_and_list(app, store):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "add", "--store-id", str(store.id), "--id", "cashier-1",
                                 "--name", "Rina", "--role", "cashier"])
    assert result.exit_code != 0
    assert "first store user must be an admin" in result.output

    result = runner.invoke(args=["users", "add", "--store-id", str(store.id), "--id", "owner-1",
                                 "--name", "Owner", "--email", "Owner@Example.com", "--role", "admin"])
    assert result.exit_code == 0, result.output
    assert "PASS Added Owner (owner-1)" in result.output

    result = runner.invoke(args=["users", "list", "--store-id", str(store.id)])
    assert "owner-1" in result.output
    assert "owner@example.com" in result.output

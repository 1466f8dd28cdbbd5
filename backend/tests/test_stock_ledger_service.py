"""
Stock ledger tests: entry validation, history queries, manual stock
changes and the ledger outbox.
"""

import re
from datetime import date

import pytest

from laundrypos.extensions import db
from laundrypos.models import PendingStockHistory, Product, StockHistory
from laundrypos.permissions import PermissionDeniedError
from laundrypos.services.stock_ledger_service import (
    create_stock_history,
    deliver_pending,
    drain_pending,
    enqueue_entries,
    get_stock_history,
    list_pending,
    new_stock_history_id,
    subscribe_to_stock_history,
    update_product_stock,
    validate_stock_entry,
)
from laundrypos.validation import ConflictError, NotFoundError, ValidationError


def _entry(product_id="p1", previous=10, quantity=-2, change_type="remove", **extra):
    entry = {
        "product_id": product_id,
        "product_name": "Shirt Wash",
        "change_type": change_type,
        "quantity": quantity,
        "previous_stock": previous,
    }
    entry.update(extra)
    entry.setdefault("new_stock", previous + quantity)
    return entry


def test_history_ids_are_unique_within_a_millisecond():
    ids = {new_stock_history_id() for _ in range(500)}
    assert len(ids) == 500
    assert all(i.startswith("stock_") for i in ids)
    assert all(re.fullmatch(r"stock_\d+_\d{1,3}", i) for i in ids)


def test_entry_arithmetic_must_hold():
    with pytest.raises(ValidationError):
        validate_stock_entry(_entry(new_stock=9))


def test_sale_entries_must_be_negative():
    with pytest.raises(ValidationError):
        validate_stock_entry(_entry(quantity=2, change_type="sale"))
    assert validate_stock_entry(_entry(quantity=-2, change_type="sale"))["new_stock"] == 8


def test_entry_fields_are_checked():
    with pytest.raises(ValidationError):
        validate_stock_entry(_entry(change_type="stolen"))
    with pytest.raises(ValidationError):
        validate_stock_entry(_entry(product_id=""))
    with pytest.raises(ValidationError):
        validate_stock_entry(_entry(quantity="2", new_stock=12))


def test_create_and_query_history(store, products):
    create_stock_history(store.id, _entry(timestamp="2025-12-24T10:00:00Z"))
    create_stock_history(store.id, _entry(previous=8, timestamp="2025-12-25T23:30:00Z"))
    create_stock_history(store.id, _entry(previous=6, timestamp="2025-12-26T00:00:00Z"))
    create_stock_history(store.id, _entry(product_id="p2", previous=3, quantity=-1,
                                          timestamp="2025-12-25T12:00:00Z"))

    everything = get_stock_history(store.id)
    assert [e["timestamp"] for e in everything] == [
        "2025-12-26T00:00:00.000Z",
        "2025-12-25T23:30:00.000Z",
        "2025-12-25T12:00:00.000Z",
        "2025-12-24T10:00:00.000Z",
    ]

    # Date-only end bound covers the whole day
    day = get_stock_history(store.id, product_id="p1", start_date="2025-12-25", end_date="2025-12-25")
    assert [e["previous_stock"] for e in day] == [8]

    since = get_stock_history(store.id, start_date="2025-12-25T12:00:00Z")
    assert len(since) == 3


def test_history_is_per_store(store, other_store, products):
    create_stock_history(store.id, _entry())
    assert get_stock_history(other_store.id) == []


def test_date_objects_bound_whole_days(store, products):
    create_stock_history(store.id, _entry(timestamp="2025-12-24T23:59:59Z"))
    create_stock_history(store.id, _entry(previous=8, timestamp="2025-12-25T00:00:00Z"))
    create_stock_history(store.id, _entry(previous=6, timestamp="2025-12-25T23:59:59Z"))
    create_stock_history(store.id, _entry(previous=4, timestamp="2025-12-26T00:00:00Z"))

    day = get_stock_history(store.id, start_date=date(2025, 12, 25), end_date=date(2025, 12, 25))
    assert [e["previous_stock"] for e in day] == [6, 8]

    year = get_stock_history(store.id, start_date=date(2025, 1, 1), end_date=date(2025, 12, 31))
    assert len(year) == 4


def test_bad_date_filter_is_rejected(store):
    with pytest.raises(ValidationError):
        get_stock_history(store.id, start_date="yesterday")
    with pytest.raises(ValidationError):
        get_stock_history(store.id, end_date=20251225)


def test_duplicate_entry_id_conflicts(store, products):
    create_stock_history(store.id, _entry(id="stock_1_1"))
    with pytest.raises(ConflictError):
        create_stock_history(store.id, _entry(id="stock_1_1"))


def test_update_product_stock_records_transition(store, products, admin):
    result = update_product_stock(
        store.id, "p1", 15, "add", reason="Delivery", performed_by="Owner", performed_by_role="admin",
        actor=admin,
    )

    assert (result.previous_stock, result.new_stock) == (10, 15)
    assert result.product["stock"] == 15
    assert result.ledger_delivered is True

    [entry] = get_stock_history(store.id, product_id="p1")
    assert (entry["previous_stock"], entry["quantity"], entry["new_stock"]) == (10, 5, 15)
    assert entry["change_type"] == "add"
    assert entry["reason"] == "Delivery"
    assert entry["barcode"] == "001"


def test_update_product_stock_rejects_bad_input(store, products, cashier):
    with pytest.raises(ValidationError):
        update_product_stock(store.id, "p1", -1, "adjust")
    with pytest.raises(ValidationError):
        update_product_stock(store.id, "p1", 5, "stolen")
    with pytest.raises(NotFoundError):
        update_product_stock(store.id, "nope", 5, "adjust")
    with pytest.raises(PermissionDeniedError):
        update_product_stock(store.id, "p1", 5, "adjust", actor=cashier)

    db.session.expire_all()
    assert db.session.get(Product, (store.id, "p1")).stock == 10
    assert get_stock_history(store.id) == []


def test_outbox_entries_commit_with_caller(store, products):
    ids = enqueue_entries(store.id, [_entry()])
    db.session.rollback()

    assert db.session.query(PendingStockHistory).count() == 0
    assert deliver_pending(ids).delivered == 0


def test_redelivery_does_not_duplicate(store, products):
    [pending_id] = enqueue_entries(store.id, [_entry()])
    db.session.commit()
    payload = dict(db.session.get(PendingStockHistory, pending_id).payload)

    assert deliver_pending([pending_id]).delivered == 1

    # Same entry queued again, e.g. after a crash between insert and delete
    db.session.add(PendingStockHistory(store_id=store.id, payload=payload, attempts=0))
    db.session.commit()
    result = drain_pending(store.id)

    assert result.delivered == 1
    assert db.session.query(StockHistory).count() == 1
    assert list_pending(store.id) == []


def test_undeliverable_entry_stays_pending(store, products):
    bad = _entry(id="stock_1_1")
    bad["new_stock"] = 99
    db.session.add(PendingStockHistory(store_id=store.id, payload=bad, attempts=0))
    db.session.commit()

    result = drain_pending(store.id)

    assert (result.delivered, result.failed) == (0, 1)
    [row] = list_pending(store.id)
    assert row["attempts"] == 1
    assert "new_stock" in row["last_error"]


def test_stock_history_feed_filters_by_product(store, products):
    seen = []
    unsubscribe = subscribe_to_stock_history(store.id, seen.append, product_id="p2")

    update_product_stock(store.id, "p1", 12, "add")
    update_product_stock(store.id, "p2", 1, "damage")
    unsubscribe()

    assert seen[0] == []
    assert [e["product_id"] for e in seen[-1]] == ["p2"]
    assert seen[-1][0]["change_type"] == "damage"

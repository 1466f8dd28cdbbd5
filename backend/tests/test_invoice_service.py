"""
Invoice writer tests.

Stock is deducted exactly once per invoice id, all-or-nothing across lines,
and every deduction leaves a matching ledger entry.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from laundrypos.extensions import cache, db
from laundrypos.models import Invoice, Product, StockHistory
from laundrypos.permissions import PermissionDeniedError
from laundrypos.services import invoice_service, stock_ledger_service
from laundrypos.services.invoice_service import (
    compute_invoice_totals,
    delete_invoice,
    get_invoice,
    get_invoices,
    save_invoice,
    save_invoice_with_stock_update,
    update_invoice_status,
)
from laundrypos.services.products_service import get_products
from laundrypos.services.settings_service import save_business_settings
from laundrypos.validation import InsufficientStockError, NotFoundError, ValidationError

from conftest import add_invoice_row, add_product, line


def _stock(store_id, product_id):
    db.session.expire_all()
    return db.session.query(Product.stock).filter_by(store_id=store_id, id=product_id).scalar()


def _history(store_id):
    return (
        db.session.query(StockHistory)
        .filter_by(store_id=store_id)
        .order_by(StockHistory.timestamp.asc(), StockHistory.id.asc())
        .all()
    )


# -- Totals ------------------------------------------------------------------

def test_totals_round_line_vat_half_up():
    items = [
        {"sale_price_cents": 5000, "quantity": 2, "vat_bps": 1500},
        {"sale_price_cents": 333, "quantity": 1, "vat_bps": 1500},
    ]
    totals = compute_invoice_totals(items, discount_type="percentage", discount_percentage=10,
                                    paid_amount_cents=20000)

    # 333 * 15% = 49.95 -> 50; 10% of 10333 = 1033.3 -> 1033
    assert totals == {
        "subtotal_cents": 10333,
        "total_vat_cents": 1550,
        "discount_cents": 1033,
        "grand_total_cents": 10850,
        "paid_amount_cents": 20000,
        "due_amount_cents": 0,
    }


def test_totals_value_discount_and_due():
    items = [{"sale_price_cents": 1000, "quantity": 3, "vat_bps": 0}]
    totals = compute_invoice_totals(items, discount_cents=500, paid_amount_cents=1000)

    assert totals["grand_total_cents"] == 2500
    assert totals["due_amount_cents"] == 1500


def test_discount_cannot_exceed_total():
    with pytest.raises(ValidationError):
        compute_invoice_totals([{"sale_price_cents": 100, "quantity": 1}], discount_cents=101)


# -- Stock deduction ---------------------------------------------------------

def test_sale_deducts_stock_and_writes_ledger(store, products, make_invoice, cashier):
    payload = make_invoice("INV-25122025-001", [line("p1", "Shirt Wash", 3, 5000, 1500)])

    result = save_invoice_with_stock_update(store.id, payload, actor=cashier)

    assert result.created is True
    assert result.stock_updated is True
    assert result.ledger_delivered is True
    assert result.invoice["grand_total_cents"] == 17250
    assert result.invoice["created_by"] == {"name": "Rina", "role": "cashier"}
    assert _stock(store.id, "p1") == 7

    [entry] = _history(store.id)
    assert entry.change_type == "sale"
    assert (entry.previous_stock, entry.quantity, entry.new_stock) == (10, -3, 7)
    assert entry.reference_id == "INV-25122025-001"
    assert entry.reason == "Invoice INV-25122025-001"
    assert entry.performed_by == "Rina"
    assert stock_ledger_service.list_pending(store.id) == []


def test_repeated_lines_for_one_product_chain_the_ledger(store, products, make_invoice):
    payload = make_invoice("INV-1", [line("p1", "Shirt Wash", 4), line("p1", "Shirt Wash", 5)])

    save_invoice_with_stock_update(store.id, payload)

    assert _stock(store.id, "p1") == 1
    entries = [(e.previous_stock, e.new_stock) for e in _history(store.id)]
    assert sorted(entries, reverse=True) == [(10, 6), (6, 1)]


def test_repeated_lines_are_checked_against_stock_together(store, products, make_invoice):
    payload = make_invoice("INV-1", [line("p1", "Shirt Wash", 6), line("p1", "Shirt Wash", 5)])

    with pytest.raises(InsufficientStockError) as exc:
        save_invoice_with_stock_update(store.id, payload)

    assert (exc.value.available, exc.value.requested) == (10, 11)
    assert _stock(store.id, "p1") == 10


def test_insufficient_stock_writes_nothing(store, products, make_invoice):
    payload = make_invoice("INV-1", [line("p1", "Shirt Wash", 1), line("p2", "Detergent", 5)])

    with pytest.raises(InsufficientStockError) as exc:
        save_invoice_with_stock_update(store.id, payload)

    assert str(exc.value) == "Insufficient stock for Detergent. Available: 3, Requested: 5"
    assert _stock(store.id, "p1") == 10
    assert _stock(store.id, "p2") == 3
    assert db.session.query(Invoice).count() == 0
    assert _history(store.id) == []


def test_resave_updates_metadata_without_second_deduction(store, products, make_invoice):
    payload = make_invoice("INV-1", [line("p1", "Shirt Wash", 3)], paid_amount_cents=0)
    save_invoice_with_stock_update(store.id, payload)

    payload.update(status="delivered", payment_mode="Card", paid_amount_cents=1000)
    result = save_invoice_with_stock_update(store.id, payload)

    assert result.created is False
    assert result.stock_updated is False
    assert result.invoice["status"] == "delivered"
    assert result.invoice["payment_mode"] == "Card"
    assert result.invoice["due_amount_cents"] == 2000
    assert _stock(store.id, "p1") == 7
    assert len(_history(store.id)) == 1


def test_resave_needs_update_capability(store, products, make_invoice, cashier, salesman):
    payload = make_invoice("INV-1", [line("p1", "Shirt Wash", 3)])
    save_invoice_with_stock_update(store.id, payload, actor=cashier)

    with pytest.raises(PermissionDeniedError):
        save_invoice_with_stock_update(store.id, {"id": "INV-1", "status": "delivered"}, actor=salesman)

    assert get_invoice(store.id, "INV-1")["status"] == "pending"
    result = save_invoice_with_stock_update(store.id, {"id": "INV-1", "status": "delivered"}, actor=cashier)
    assert result.invoice["status"] == "delivered"


def test_concurrent_create_falls_back_to_checked_metadata_save(store, products, make_invoice,
                                                               monkeypatch, salesman):
    add_invoice_row(store.id, "INV-1")
    real_exists = invoice_service._invoice_exists
    calls = []

    def exists(store_id, invoice_id):
        # First check misses, as if the other writer had not committed yet
        calls.append(invoice_id)
        return len(calls) > 1 and real_exists(store_id, invoice_id)

    monkeypatch.setattr(invoice_service, "_invoice_exists", exists)

    with pytest.raises(PermissionDeniedError):
        save_invoice_with_stock_update(
            store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 3)], status="delivered"), actor=salesman
        )
    assert _stock(store.id, "p1") == 10


def test_stock_management_disabled_skips_deduction(store, products, make_invoice):
    save_business_settings(store.id, {"stock_management_enabled": False})

    result = save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p2", "Detergent", 50)]))

    assert result.created is True
    assert result.stock_updated is False
    assert _stock(store.id, "p2") == 3
    assert _history(store.id) == []
    assert get_invoice(store.id, "INV-1")["items"][0]["quantity"] == 50


def test_unknown_product_lines_are_kept_without_stock_effect(store, products, make_invoice):
    payload = make_invoice("INV-1", [line("ghost", "Dry Clean", 2), line("p1", "Shirt Wash", 1)])

    result = save_invoice_with_stock_update(store.id, payload)

    assert len(result.invoice["items"]) == 2
    assert _stock(store.id, "p1") == 9
    assert [e.product_id for e in _history(store.id)] == ["p1"]


def test_products_resolve_within_the_invoice_store(store, other_store, products, make_invoice):
    add_product(other_store.id, "p1", "Shirt Wash", 50)

    save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 2)]))

    assert _stock(store.id, "p1") == 8
    assert _stock(other_store.id, "p1") == 50


# -- Retry -------------------------------------------------------------------

def _flaky_commit(monkeypatch, failures):
    real_commit = Session.commit
    calls = {"n": 0}

    def commit(self):
        calls["n"] += 1
        if calls["n"] <= failures:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        return real_commit(self)

    monkeypatch.setattr(Session, "commit", commit)
    return calls


def test_transient_commit_failure_is_retried_with_backoff(app, store, products, make_invoice,
                                                          monkeypatch, no_sleep):
    app.config["INVOICE_COMMIT_BACKOFF_SECONDS"] = 1.0
    _flaky_commit(monkeypatch, failures=2)

    result = save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 3)]))

    assert result.created is True
    assert no_sleep == [1.0, 2.0]
    monkeypatch.undo()
    assert _stock(store.id, "p1") == 7
    assert len(_history(store.id)) == 1


def test_exhausted_retries_leave_no_trace(app, store, products, make_invoice, monkeypatch, no_sleep):
    app.config["INVOICE_COMMIT_BACKOFF_SECONDS"] = 1.0
    _flaky_commit(monkeypatch, failures=100)

    with pytest.raises(OperationalError):
        save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 3)]))

    assert no_sleep == [1.0, 2.0]
    monkeypatch.undo()
    assert _stock(store.id, "p1") == 10
    assert db.session.query(Invoice).count() == 0


def test_validation_errors_are_not_retried(store, products, make_invoice, no_sleep):
    with pytest.raises(InsufficientStockError):
        save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p2", "Detergent", 4)]))
    assert no_sleep == []


# -- Ledger outbox -----------------------------------------------------------

def test_ledger_delivery_failure_keeps_entry_queued(store, products, make_invoice, monkeypatch):
    def broken(row):
        raise OperationalError("INSERT INTO stock_history", {}, Exception("disk I/O error"))

    monkeypatch.setattr(stock_ledger_service, "_deliver_row", broken)

    result = save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 3)]))

    assert result.created is True
    assert result.ledger_delivered is False
    assert _stock(store.id, "p1") == 7
    assert _history(store.id) == []
    [pending] = stock_ledger_service.list_pending(store.id)
    assert pending["attempts"] == 1
    assert "disk I/O error" in pending["last_error"]

    monkeypatch.undo()
    drained = stock_ledger_service.drain_pending(store.id)

    assert (drained.delivered, drained.failed) == (1, 0)
    [entry] = _history(store.id)
    assert entry.id == pending["payload"]["id"]
    assert entry.reference_id == "INV-1"
    assert stock_ledger_service.list_pending(store.id) == []


# -- Cache -------------------------------------------------------------------

def test_sale_patches_cached_products_and_invoices(store, products, make_invoice):
    get_products(store.id)
    get_invoices(store.id)

    save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 3)]))

    cached = {p["id"]: p["stock"] for p in cache.get(store.id, "products")}
    assert cached == {"p1": 7, "p2": 3}
    assert [i["id"] for i in cache.get(store.id, "invoices")] == ["INV-1"]


# -- Other invoice operations ------------------------------------------------

def test_get_invoices_newest_first(store, products, make_invoice):
    save_invoice(store.id, make_invoice("INV-A", [line("p1", "Shirt Wash", 1)], date="2025-12-24T09:00:00Z"))
    save_invoice(store.id, make_invoice("INV-B", [line("p1", "Shirt Wash", 1)], date="2025-12-25T09:00:00Z"))
    save_invoice(store.id, make_invoice("INV-C", [line("p1", "Shirt Wash", 1)], date="2025-12-23T09:00:00Z"))

    assert [i["id"] for i in get_invoices(store.id)] == ["INV-B", "INV-A", "INV-C"]


def test_save_invoice_never_touches_stock(store, products, make_invoice):
    save_invoice(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 3)]))
    assert _stock(store.id, "p1") == 10


def test_update_invoice_status(store, products, make_invoice, cashier, salesman):
    save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 1)]))

    with pytest.raises(PermissionDeniedError):
        update_invoice_status(store.id, "INV-1", "delivered", actor=salesman)
    with pytest.raises(ValidationError):
        update_invoice_status(store.id, "INV-1", "lost", actor=cashier)

    assert update_invoice_status(store.id, "INV-1", "delivered", actor=cashier)["status"] == "delivered"


def test_delete_removes_record_but_not_stock_effect(store, products, make_invoice, admin, cashier):
    save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 3)]))

    with pytest.raises(PermissionDeniedError):
        delete_invoice(store.id, "INV-1", actor=cashier)
    delete_invoice(store.id, "INV-1", actor=admin)

    with pytest.raises(NotFoundError):
        get_invoice(store.id, "INV-1")
    assert _stock(store.id, "p1") == 7
    assert len(_history(store.id)) == 1


def test_invalid_payloads_are_rejected(store, products, make_invoice):
    with pytest.raises(ValidationError):
        save_invoice_with_stock_update(store.id, make_invoice("INV-1", []))
    with pytest.raises(ValidationError):
        save_invoice_with_stock_update(store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 0)]))
    with pytest.raises(ValidationError):
        save_invoice_with_stock_update(store.id, {"items": [line("p1", "Shirt Wash", 1)]})
    with pytest.raises(ValidationError):
        save_invoice_with_stock_update(
            store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 1)], payment_mode="Bitcoin")
        )
    assert _stock(store.id, "p1") == 10


def test_invoice_date_is_kept(store, products, make_invoice):
    result = save_invoice_with_stock_update(
        store.id, make_invoice("INV-1", [line("p1", "Shirt Wash", 1)], date="2025-12-25T08:30:00Z")
    )
    assert result.invoice["date"] == "2025-12-25T08:30:00.000Z"
    row = db.session.get(Invoice, (store.id, "INV-1"))
    assert row.date == datetime(2025, 12, 25, 8, 30)

"""
Pytest fixtures for laundrypos backend tests.

Each test gets its own app and a fresh in-memory database, so stores,
products and counters never leak between tests.
"""

from datetime import datetime

import pytest

from laundrypos import create_app
from laundrypos.config import TestConfig
from laundrypos.extensions import db
from laundrypos.models import Invoice, Product
from laundrypos.permissions import StaffContext
from laundrypos.services import store_service


# Fixed "now" for business-date tests: 25 Dec 2025, 10:00 UTC
NOW = datetime(2025, 12, 25, 10, 0, 0)


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def no_sleep(monkeypatch):
    """Record retry back-off delays instead of sleeping."""
    delays = []
    monkeypatch.setattr("laundrypos.services.concurrency.time.sleep", delays.append)
    return delays


@pytest.fixture(scope='function')
def store(app):
    """Store A (UTC business date)."""
    return store_service.create_store("Main Laundry", "UTC")


@pytest.fixture(scope='function')
def other_store(app):
    """Store B, a second tenant."""
    return store_service.create_store("Branch Laundry", "UTC")


@pytest.fixture
def admin():
    return StaffContext(name="Owner", role="admin")


@pytest.fixture
def cashier():
    return StaffContext(name="Rina", role="cashier")


@pytest.fixture
def salesman():
    return StaffContext(name="Sami", role="salesman")


def add_product(store_id, product_id, name, stock, price_cents=1000, vat_bps=0, barcode=None):
    """Insert a product directly (no ledger entry)."""
    product = Product(
        store_id=store_id,
        id=product_id,
        name=name,
        stock=stock,
        price_cents=price_cents,
        vat_bps=vat_bps,
        barcode=barcode,
        unit="pcs",
    )
    db.session.add(product)
    db.session.commit()
    return product


def add_invoice_row(store_id, invoice_id, date=NOW):
    """Insert a bare invoice row, bypassing numbering and stock."""
    row = Invoice(store_id=store_id, id=invoice_id, items=[], date=date)
    db.session.add(row)
    db.session.commit()
    return row


@pytest.fixture(scope='function')
def products(store):
    """Two products in store A: p1 (stock 10, 15% VAT) and p2 (stock 3)."""
    return {
        "p1": add_product(store.id, "p1", "Shirt Wash", 10, price_cents=5000, vat_bps=1500, barcode="001"),
        "p2": add_product(store.id, "p2", "Detergent", 3, price_cents=20000, barcode="002"),
    }


def line(product_id, name, quantity, sale_price_cents=1000, vat_bps=0):
    return {
        "product_id": product_id,
        "name": name,
        "quantity": quantity,
        "sale_price_cents": sale_price_cents,
        "vat_bps": vat_bps,
    }


@pytest.fixture
def make_invoice():
    """Factory for invoice payloads."""
    def _make(invoice_id, lines, **extra):
        payload = {"id": invoice_id, "items": lines, "payment_mode": "Cash"}
        payload.update(extra)
        return payload
    return _make


def staff_headers(role, name="Tester"):
    return {"X-Staff-Role": role, "X-Staff-Name": name}

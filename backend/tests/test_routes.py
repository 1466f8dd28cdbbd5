"""
End-to-end HTTP tests: product setup, invoicing with stock deduction,
counters, settings, cache and the SSE feed.
"""

import json
import re

import pytest

from laundrypos.extensions import change_feed

from conftest import line, staff_headers

ADMIN = staff_headers("admin", "Owner")
CASHIER = staff_headers("cashier", "Rina")
BASE = "/api/stores/1"


def test_health_reports_outbox(client, store):
    resp = client.get("/health")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["pending_ledger_entries"] == 0


def test_unknown_store_is_404(client, app):
    assert client.get("/api/stores/42", headers=ADMIN).status_code == 404
    assert client.post("/api/stores/42/invoices/next-number", headers=ADMIN).status_code == 404


def test_product_lifecycle(client, store):
    resp = client.post(f"{BASE}/products", json={"id": "p1", "name": "Shirt Wash", "stock": 5}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.get_json()["product"]["barcode"] == "001"

    assert client.get(f"{BASE}/products/next-barcode", headers=ADMIN).get_json() == {"barcode": "002"}

    resp = client.post(
        f"{BASE}/products/p1/stock",
        json={"new_stock": 8, "change_type": "add", "reason": "Delivery"},
        headers=ADMIN,
    )
    body = resp.get_json()
    assert resp.status_code == 200
    assert (body["previous_stock"], body["new_stock"], body["ledger_delivered"]) == (5, 8, True)

    history = client.get(f"{BASE}/stock-history?product_id=p1", headers=ADMIN).get_json()["items"]
    assert sorted((h["change_type"], h["quantity"]) for h in history) == [("add", 3), ("initial", 5)]
    assert {h["performed_by"] for h in history} == {"Owner"}

    assert client.delete(f"{BASE}/products/p1", headers=ADMIN).status_code == 200
    assert client.get(f"{BASE}/products/p1", headers=ADMIN).status_code == 404


def test_duplicate_barcode_is_409(client, products):
    resp = client.post(
        f"{BASE}/products", json={"id": "p9", "name": "Towel", "barcode": "002"}, headers=ADMIN
    )
    body = resp.get_json()
    assert resp.status_code == 409
    assert body["existing_product_name"] == "Detergent"


def test_invoice_flow(client, products):
    payload = {"items": [line("p1", "Shirt Wash", 3, 5000, 1500)], "paid_amount_cents": 10000}

    resp = client.post(f"{BASE}/invoices", json=payload, headers=CASHIER)
    body = resp.get_json()
    assert resp.status_code == 201
    invoice = body["invoice"]
    assert re.fullmatch(r"INV-\d{8}-001", invoice["id"])
    assert invoice["grand_total_cents"] == 17250
    assert invoice["due_amount_cents"] == 7250
    assert invoice["created_by"] == {"name": "Rina", "role": "cashier"}

    # Same id again: metadata only, no second deduction
    again = dict(payload, id=invoice["id"], paid_amount_cents=17250)
    resp = client.post(f"{BASE}/invoices", json=again, headers=CASHIER)
    assert resp.status_code == 200
    assert resp.get_json()["created"] is False
    assert resp.get_json()["invoice"]["due_amount_cents"] == 0

    stock = client.get(f"{BASE}/products/p1", headers=CASHIER).get_json()["product"]["stock"]
    assert stock == 7

    resp = client.patch(f"{BASE}/invoices/{invoice['id']}/status", json={"status": "delivered"}, headers=CASHIER)
    assert resp.get_json()["invoice"]["status"] == "delivered"

    resp = client.patch(f"{BASE}/invoices/{invoice['id']}", json={"customer_name": "Anika"}, headers=CASHIER)
    assert resp.get_json()["invoice"]["customer_name"] == "Anika"

    listed = client.get(f"{BASE}/invoices", headers=CASHIER).get_json()
    assert listed["count"] == 1

    history = client.get(f"{BASE}/stock-history", headers=CASHIER).get_json()["items"]
    assert [h["reference_id"] for h in history] == [invoice["id"]]

    assert client.get(f"{BASE}/counters/today", headers=CASHIER).get_json()["last_number"] == 1


def test_insufficient_stock_is_409(client, products):
    resp = client.post(
        f"{BASE}/invoices", json={"id": "INV-X", "items": [line("p2", "Detergent", 4)]}, headers=CASHIER
    )
    body = resp.get_json()
    assert resp.status_code == 409
    assert (body["product_name"], body["available"], body["requested"]) == ("Detergent", 3, 4)
    assert client.get(f"{BASE}/invoices/INV-X", headers=CASHIER).status_code == 404


def test_bad_invoice_payload_is_400(client, products):
    resp = client.post(f"{BASE}/invoices", json={"id": "INV-X", "items": []}, headers=CASHIER)
    assert resp.status_code == 400


def test_patch_unknown_invoice_is_404(client, store):
    resp = client.patch(f"{BASE}/invoices/INV-404", json={"status": "delivered"}, headers=CASHIER)
    assert resp.status_code == 404


def test_counter_routes(client, store):
    client.post(f"{BASE}/invoices/next-number", headers=ADMIN)
    client.post(f"{BASE}/invoices/next-number", headers=ADMIN)

    assert client.get(f"{BASE}/counters/today", headers=ADMIN).get_json()["last_number"] == 2
    assert client.post(f"{BASE}/counters/today/fix", headers=ADMIN).get_json()["last_number"] == 0

    resp = client.post(f"{BASE}/counters/2025-12-25/reset", json={"start_number": 7}, headers=ADMIN)
    assert resp.get_json()["counter"]["last_number"] == 7
    assert client.get(f"{BASE}/counters/2025-12-25", headers=ADMIN).get_json()["last_number"] == 7
    assert client.get(f"{BASE}/counters", headers=ADMIN).get_json()["count"] == 2

    resp = client.post(f"{BASE}/counters/not-a-date/reset", json={}, headers=ADMIN)
    assert resp.status_code == 400


def test_settings_merge(client, store):
    resp = client.patch(f"{BASE}/settings", json={"currency": "BDT", "extra": {"footer": "Thanks"}}, headers=ADMIN)
    assert resp.status_code == 200
    client.patch(f"{BASE}/settings", json={"print_format": "thermal", "extra": {"logo": "x.png"}}, headers=ADMIN)

    settings = client.get(f"{BASE}/settings", headers=CASHIER).get_json()["settings"]
    assert settings["currency"] == "BDT"
    assert settings["print_format"] == "thermal"
    assert settings["extra"] == {"footer": "Thanks", "logo": "x.png"}
    assert settings["stock_management_enabled"] is True

    resp = client.patch(f"{BASE}/settings", json={"print_format": "a5"}, headers=ADMIN)
    assert resp.status_code == 400


def test_collection_crud(client, store):
    resp = client.post(f"{BASE}/employees", json={"id": "e1", "name": "Karim", "joined_on": "2025-01-15"},
                       headers=ADMIN)
    assert resp.get_json()["item"]["joined_on"] == "2025-01-15"

    client.post(f"{BASE}/attendance", json={"id": "a1", "employee_id": "e1", "date": "2025-12-25"}, headers=ADMIN)
    client.post(f"{BASE}/salaries", json={"id": "s1", "employee_id": "e1", "month": "2025-12",
                                          "amount_cents": 1500000}, headers=ADMIN)
    client.post(f"{BASE}/categories", json={"id": "k1", "name": "Wash"}, headers=ADMIN)

    for collection in ("employees", "attendance", "salaries", "categories"):
        assert client.get(f"{BASE}/{collection}", headers=ADMIN).get_json()["count"] == 1

    assert client.get(f"{BASE}/salaries/s1", headers=ADMIN).get_json()["item"]["amount_cents"] == 1500000
    assert client.delete(f"{BASE}/categories/k1", headers=ADMIN).status_code == 200
    assert client.get(f"{BASE}/categories", headers=ADMIN).get_json()["count"] == 0
    assert client.get(f"{BASE}/categories/k1", headers=ADMIN).status_code == 404
    assert client.get(f"{BASE}/invoices-archive", headers=ADMIN).status_code == 404


def test_cache_clear(client, products):
    client.get(f"{BASE}/products", headers=CASHIER)

    resp = client.delete(f"{BASE}/cache", headers=CASHIER)
    assert "stock_history" not in resp.get_json()["cleared"]
    assert "products" in resp.get_json()["cleared"]

    resp = client.delete(f"{BASE}/cache?all=1", headers=CASHIER)
    assert "stock_history" in resp.get_json()["cleared"]


def test_ledger_outbox_routes(client, products):
    assert client.get(f"{BASE}/stock-history/pending", headers=ADMIN).get_json()["count"] == 0
    body = client.post(f"{BASE}/stock-history/pending/drain", headers=ADMIN).get_json()
    assert body == {"delivered": 0, "failed": 0, "failed_ids": []}


def test_manual_history_entry(client, products):
    entry = {
        "product_id": "p1", "product_name": "Shirt Wash", "change_type": "return",
        "quantity": 1, "previous_stock": 10, "new_stock": 11,
    }
    resp = client.post(f"{BASE}/stock-history", json=entry, headers=ADMIN)
    assert resp.status_code == 201
    assert resp.get_json()["entry"]["id"].startswith("stock_")

    entry["new_stock"] = 12
    assert client.post(f"{BASE}/stock-history", json=entry, headers=ADMIN).status_code == 400


def test_event_stream_sends_snapshot_and_unsubscribes(client, products):
    resp = client.get(f"{BASE}/events/products?staff_role=cashier&staff_name=Rina", buffered=False)
    assert resp.status_code == 200
    assert resp.mimetype == "text/event-stream"
    assert change_feed.subscriber_count(1, "products") == 1

    chunk = next(iter(resp.response))
    if isinstance(chunk, bytes):
        chunk = chunk.decode()
    assert chunk.startswith("data: ")
    snapshot = json.loads(chunk[len("data: "):])
    assert [p["id"] for p in snapshot] == ["p2", "p1"]

    resp.close()
    assert change_feed.subscriber_count(1, "products") == 0

# Overview: Inventory-aware invoice writer plus invoice reads, status updates and deletion.

"""
Invoice Writer Invariants (authoritative)

Idempotency:
- An invoice id deducts stock at most once. If the id already exists, the
  call degrades to a metadata-only save and stock is not touched. This is
  also re-checked inside every commit attempt, so a concurrent writer that
  inserted the same id first turns our retry into a metadata save.

Atomicity:
- All referenced products are read in ONE query, every line is validated in
  memory, and only then is anything mutated. One failing line fails the whole
  sale and nothing is written.
- Stock decrements, the invoice row and the ledger outbox rows commit in a
  single transaction. Product rows carry a version check, so a decrement
  computed from a stale read fails with StaleDataError instead of silently
  overwriting a concurrent sale.

Retry:
- Transient failures (OperationalError, StaleDataError, IntegrityError) are
  retried with exponential backoff (INVOICE_COMMIT_ATTEMPTS,
  INVOICE_COMMIT_BACKOFF_SECONDS: 3 attempts, 1s then 2s by default). Each
  attempt re-reads and re-validates from scratch.
- Validation errors (insufficient stock, bad payload) are never retried.

After commit (best effort, never fails the sale):
- Ledger entries are delivered from the outbox; failures stay queued.
- The cache is patched with the new product and invoice documents.
- Subscribers are notified.

Stock toggle:
- With stock management disabled for the store, the invoice is stored
  with its items and no stock is validated or deducted.

Items pointing at unknown product ids are stored on the invoice but have no
stock effect.

Deletion removes the record only. It does not restore stock or write a
compensating ledger entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..constants import Collection, StockChangeType
from ..extensions import cache, change_feed, db
from ..models import Invoice, Product
from ..permissions import check_actor
from ..time_utils import utcnow
from ..validation import (
    InsufficientStockError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_invoice,
    validate_invoice_items,
    validate_payload,
)
from .change_feed_service import sort_invoices_newest_first
from .concurrency import run_with_retry
from .settings_service import is_stock_management_enabled
from .stock_ledger_service import deliver_pending, enqueue_entries
from .store_service import get_store


logger = logging.getLogger(__name__)

INVOICE_COMMIT_ERRORS = (OperationalError, StaleDataError, IntegrityError)

HEADER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name", "customer_phone", "customer_address",
        "discount_cents", "discount_type", "discount_percentage",
        "paid_amount_cents", "date", "status", "payment_mode",
    },
)

# Fields a re-save may change; items and totals are fixed once stock was deducted
METADATA_FIELDS = {
    "customer_name", "customer_phone", "customer_address",
    "paid_amount_cents", "status", "payment_mode",
}


@dataclass
class SaveInvoiceResult:
    invoice: dict
    created: bool
    stock_updated: bool
    pending_ledger_ids: list[int] = field(default_factory=list)
    ledger_delivered: bool = True


def _half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_invoice_totals(
    items: list[dict],
    discount_cents: int = 0,
    discount_type: str = "value",
    discount_percentage: Optional[float] = None,
    paid_amount_cents: int = 0,
) -> dict:
    """
    Invoice money math, all in integer cents.

    Line VAT is rounded half-up per line. A percentage discount applies to
    the subtotal (before VAT). due = grand total - paid, never below zero.
    """
    subtotal = 0
    vat = 0
    for item in items:
        line = item["sale_price_cents"] * item["quantity"]
        subtotal += line
        vat += _half_up(Decimal(line) * Decimal(item.get("vat_bps") or 0) / Decimal(10000))

    if discount_type == "percentage":
        pct = Decimal(str(discount_percentage or 0))
        discount = _half_up(Decimal(subtotal) * pct / Decimal(100))
    else:
        discount = discount_cents or 0

    if discount > subtotal + vat:
        raise ValidationError("discount cannot exceed the invoice total")

    grand = subtotal + vat - discount
    paid = paid_amount_cents or 0
    return {
        "subtotal_cents": subtotal,
        "total_vat_cents": vat,
        "discount_cents": discount,
        "grand_total_cents": grand,
        "paid_amount_cents": paid,
        "due_amount_cents": max(grand - paid, 0),
    }


def _invoice_id(invoice: dict) -> str:
    if not isinstance(invoice, dict):
        raise ValidationError("Invalid JSON payload")
    invoice_id = str(invoice.get("id") or "").strip()
    if not invoice_id:
        raise ValidationError("id is required")
    if len(invoice_id) > 64:
        raise ValidationError("id exceeds max length 64")
    return invoice_id


def _creator(invoice: dict, actor) -> tuple[str, str]:
    created_by = invoice.get("created_by") or {}
    if not isinstance(created_by, dict):
        raise ValidationError("created_by must be an object")
    name = created_by.get("name") or (actor.name if actor is not None else None) or "System"
    role = created_by.get("role") or (actor.role if actor is not None else None) or "cashier"
    return str(name), str(role)


def _build_invoice(store_id: int, invoice_id: str, invoice: dict, actor) -> Invoice:
    """Validate a new invoice payload and build (not add) the row."""
    items = validate_invoice_items(invoice.get("items"))
    header = validate_payload(
        model=Invoice,
        payload={k: invoice[k] for k in HEADER_POLICY.writable_fields if k in invoice},
        policy=HEADER_POLICY,
        partial=True,
    )
    enforce_rules_invoice(header)
    totals = compute_invoice_totals(
        items,
        discount_cents=header.get("discount_cents") or 0,
        discount_type=header.get("discount_type") or "value",
        discount_percentage=header.get("discount_percentage"),
        paid_amount_cents=header.get("paid_amount_cents") or 0,
    )
    name, role = _creator(invoice, actor)
    return Invoice(
        store_id=store_id,
        id=invoice_id,
        customer_name=header.get("customer_name"),
        customer_phone=header.get("customer_phone"),
        customer_address=header.get("customer_address"),
        items=items,
        discount_type=header.get("discount_type") or "value",
        discount_percentage=header.get("discount_percentage"),
        date=header.get("date") or utcnow(),
        status=header.get("status") or "pending",
        payment_mode=header.get("payment_mode") or "Cash",
        created_by_name=name,
        created_by_role=role,
        **totals,
    )


def _invoice_exists(store_id: int, invoice_id: str) -> bool:
    return db.session.query(Invoice.id).filter_by(store_id=store_id, id=invoice_id).first() is not None


def _quantities_by_product(items: list[dict]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for item in items:
        totals[item["product_id"]] = totals.get(item["product_id"], 0) + item["quantity"]
    return totals


def _apply_sale(store_id: int, row: Invoice) -> tuple[list[Product], list[dict]]:
    """
    Validate and deduct stock for every line of a new invoice.

    Returns the touched products and the ledger entries to queue. Raises
    InsufficientStockError before mutating anything.
    """
    wanted = _quantities_by_product(row.items)
    products = {
        p.id: p
        for p in db.session.query(Product)
        .filter(Product.store_id == store_id, Product.id.in_(list(wanted)))
        .all()
    }

    for product_id, quantity in wanted.items():
        product = products.get(product_id)
        if product is None:
            logger.warning("Invoice %s references unknown product %s; no stock change", row.id, product_id)
            continue
        if product.stock < quantity:
            raise InsufficientStockError(product.name, product.stock, quantity)

    touched: dict[str, Product] = {}
    entries: list[dict] = []
    for item in row.items:
        product = products.get(item["product_id"])
        if product is None:
            continue
        previous = product.stock
        product.stock = previous - item["quantity"]
        touched[product.id] = product
        entries.append({
            "product_id": product.id,
            "product_name": item["name"],
            "barcode": item.get("barcode") or product.barcode,
            "unit": product.unit,
            "change_type": StockChangeType.SALE.value,
            "quantity": -item["quantity"],
            "previous_stock": previous,
            "new_stock": product.stock,
            "reason": f"Invoice {row.id}",
            "performed_by": row.created_by_name,
            "performed_by_role": row.created_by_role,
            "reference_id": row.id,
        })
    return list(touched.values()), entries


def _sync_cache(store_id: int, invoice_doc: dict, product_docs: list[dict]) -> None:
    for doc in product_docs:
        cache.upsert(store_id, Collection.PRODUCTS, doc)
    cache.upsert(store_id, Collection.INVOICES, invoice_doc, order_by=sort_invoices_newest_first)


def save_invoice_with_stock_update(store_id: int, invoice: dict, *, actor=None) -> SaveInvoiceResult:
    """
    Persist a new invoice and deduct the stock it sells, exactly once.

    Re-saving an existing invoice id only updates its metadata, which needs
    UPDATE_INVOICE as well.
    """
    check_actor(actor, "CREATE_INVOICE")
    get_store(store_id)
    invoice_id = _invoice_id(invoice)

    if _invoice_exists(store_id, invoice_id):
        check_actor(actor, "UPDATE_INVOICE")
        logger.info("Invoice %s/%s already exists; saving metadata only", store_id, invoice_id)
        doc = _save_metadata(store_id, invoice_id, invoice)
        return SaveInvoiceResult(invoice=doc, created=False, stock_updated=False)

    stock_enabled = is_stock_management_enabled(store_id)

    def _op():
        if _invoice_exists(store_id, invoice_id):
            return None
        row = _build_invoice(store_id, invoice_id, invoice, actor)
        touched: list[Product] = []
        entries: list[dict] = []
        try:
            if stock_enabled:
                touched, entries = _apply_sale(store_id, row)
        except ValueError:
            db.session.rollback()
            raise
        db.session.add(row)
        pending_ids = enqueue_entries(store_id, entries) if entries else []
        db.session.commit()
        return row.to_dict(), [p.to_dict() for p in touched], pending_ids

    outcome = run_with_retry(
        _op,
        attempts=current_app.config.get("INVOICE_COMMIT_ATTEMPTS", 3),
        backoff_base=current_app.config.get("INVOICE_COMMIT_BACKOFF_SECONDS", 1.0),
        retry_on=INVOICE_COMMIT_ERRORS,
    )

    if outcome is None:
        # A concurrent writer created this id between our check and commit
        check_actor(actor, "UPDATE_INVOICE")
        logger.info("Invoice %s/%s was created concurrently; saving metadata only", store_id, invoice_id)
        doc = _save_metadata(store_id, invoice_id, invoice)
        return SaveInvoiceResult(invoice=doc, created=False, stock_updated=False)

    invoice_doc, product_docs, pending_ids = outcome
    delivery = deliver_pending(pending_ids)
    if delivery.failed:
        logger.warning(
            "Invoice %s/%s committed; %d ledger entries left queued", store_id, invoice_id, delivery.failed
        )
    _sync_cache(store_id, invoice_doc, product_docs)
    change_feed.dispatch_pending()

    logger.info(
        "Invoice %s/%s saved (%d products updated, stock management %s)",
        store_id, invoice_id, len(product_docs), "on" if stock_enabled else "off",
    )
    return SaveInvoiceResult(
        invoice=invoice_doc,
        created=True,
        stock_updated=bool(product_docs),
        pending_ledger_ids=pending_ids,
        ledger_delivered=delivery.failed == 0,
    )


def _save_metadata(store_id: int, invoice_id: str, payload: dict) -> dict:
    patch = validate_payload(
        model=Invoice,
        payload={k: payload[k] for k in METADATA_FIELDS if k in payload},
        policy=HEADER_POLICY,
        partial=True,
    )
    enforce_rules_invoice(patch)

    def _op():
        row = db.session.query(Invoice).filter_by(store_id=store_id, id=invoice_id).first()
        if row is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        for key, value in patch.items():
            setattr(row, key, value)
        if "paid_amount_cents" in patch:
            row.due_amount_cents = max(row.grand_total_cents - row.paid_amount_cents, 0)
        db.session.commit()
        return row.to_dict()

    doc = run_with_retry(_op)
    cache.upsert(store_id, Collection.INVOICES, doc, order_by=sort_invoices_newest_first)
    change_feed.dispatch_pending()
    return doc


def save_invoice(store_id: int, invoice: dict, *, actor=None) -> dict:
    """
    Save an invoice record without any stock effect.

    Existing ids get a metadata update; new ids are stored as given (totals
    still computed here).
    """
    get_store(store_id)
    invoice_id = _invoice_id(invoice)
    if _invoice_exists(store_id, invoice_id):
        check_actor(actor, "UPDATE_INVOICE")
        return _save_metadata(store_id, invoice_id, invoice)

    check_actor(actor, "CREATE_INVOICE")

    def _op():
        row = _build_invoice(store_id, invoice_id, invoice, actor)
        db.session.add(row)
        db.session.commit()
        return row.to_dict()

    doc = run_with_retry(_op)
    cache.upsert(store_id, Collection.INVOICES, doc, order_by=sort_invoices_newest_first)
    change_feed.dispatch_pending()
    return doc


def update_invoice_status(store_id: int, invoice_id: str, status: str, *, actor=None) -> dict:
    check_actor(actor, "UPDATE_INVOICE")
    return _save_metadata(store_id, invoice_id, {"status": status})


def get_invoices(store_id: int) -> list[dict]:
    """All invoices of a store, newest first (cache-first)."""
    cached = cache.get(store_id, Collection.INVOICES)
    if cached is not None:
        return cached
    rows = db.session.query(Invoice).filter_by(store_id=store_id).all()
    docs = sort_invoices_newest_first([row.to_dict() for row in rows])
    cache.put(store_id, Collection.INVOICES, docs)
    return docs


def get_invoice(store_id: int, invoice_id: str) -> dict:
    row = db.session.query(Invoice).filter_by(store_id=store_id, id=invoice_id).first()
    if row is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return row.to_dict()


def delete_invoice(store_id: int, invoice_id: str, *, actor=None) -> None:
    """Remove the invoice record. Stock sold on it is NOT restored."""
    check_actor(actor, "DELETE_INVOICE")
    row = db.session.query(Invoice).filter_by(store_id=store_id, id=invoice_id).first()
    if row is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    db.session.delete(row)
    db.session.commit()
    cache.invalidate(store_id, Collection.INVOICES)
    change_feed.dispatch_pending()
    logger.info("Invoice %s/%s deleted (record only)", store_id, invoice_id)


def subscribe_to_invoices(store_id: int, callback):
    return change_feed.subscribe(store_id, Collection.INVOICES, callback)

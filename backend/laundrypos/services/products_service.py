# backend/laundrypos/services/products_service.py
"""
Products Service

Reads are cache-first: a fresh cache entry is returned as is, otherwise the
collection is loaded from the database and written back to the cache.

Every write updates the cache before returning, so a read inside the
freshness window sees the new value.

BARCODES:
- Unique within a store; a clash names the product that already owns it.
- An empty barcode is auto-assigned: the highest 3-digit numeric barcode + 1,
  zero-padded ("001", "002", ...). If that lookup fails, the last 6 digits of
  the current epoch milliseconds are used instead.
  Once "999" is taken the sequence runs on as "1000", "1001", ... skipping
  barcodes already in use.
"""
from __future__ import annotations

import logging
import re

from sqlalchemy.exc import SQLAlchemyError

from ..constants import Collection, StockChangeType
from ..extensions import cache, change_feed, db
from ..models import Product
from ..permissions import check_actor
from ..time_utils import epoch_millis
from ..validation import (
    DuplicateBarcodeError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import run_with_retry
from .stock_ledger_service import deliver_pending, enqueue_entries
from .store_service import get_store


logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "id", "name", "barcode", "category", "price_cents", "purchase_price_cents",
        "vat_bps", "stock", "unit", "type",
    },
    required_on_create={"id", "name"},
)

DEFAULT_BARCODE_RE = re.compile(r"^\d{3}$")


def _product_docs(store_id: int) -> list[dict]:
    rows = (
        db.session.query(Product)
        .filter_by(store_id=store_id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return [row.to_dict() for row in rows]


def get_products(store_id: int) -> list[dict]:
    cached = cache.get(store_id, Collection.PRODUCTS)
    if cached is not None:
        return cached
    docs = _product_docs(store_id)
    cache.put(store_id, Collection.PRODUCTS, docs)
    return docs


def get_product(store_id: int, product_id: str) -> dict:
    product = db.session.query(Product).filter_by(store_id=store_id, id=product_id).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product.to_dict()


def find_product_by_barcode(store_id: int, barcode: str) -> Product | None:
    return db.session.query(Product).filter_by(store_id=store_id, barcode=barcode).first()


def _validate(store_id: int, payload: dict) -> tuple[dict, Product | None]:
    """Validate a product payload; returns the clean patch and the existing row, if any."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    product_id = str(payload.get("id") or "").strip()
    existing = None
    if product_id:
        existing = db.session.query(Product).filter_by(store_id=store_id, id=product_id).first()
    patch = validate_payload(
        model=Product, payload=payload, policy=PRODUCT_POLICY, partial=existing is not None
    )
    enforce_rules_product(patch)
    if patch.get("stock") is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")
    return patch, existing


def _ensure_barcode_free(store_id: int, barcode: str | None, product_id: str) -> None:
    if not barcode:
        return
    owner = find_product_by_barcode(store_id, barcode)
    if owner is not None and owner.id != product_id:
        raise DuplicateBarcodeError(barcode, owner.id, owner.name)


def _apply(store_id: int, patch: dict, existing: Product | None) -> Product:
    if existing is None:
        product = Product(store_id=store_id)
        db.session.add(product)
    else:
        product = existing
    for key, value in patch.items():
        setattr(product, key, value)
    return product


def save_product(store_id: int, product: dict, *, actor=None) -> dict:
    """
    Create or update a product without touching the ledger.

    Stock changes that must be audited go through save_product_with_barcode
    or update_product_stock.
    """
    check_actor(actor, "MANAGE_PRODUCTS")
    get_store(store_id)
    patch, existing = _validate(store_id, product)
    _ensure_barcode_free(store_id, patch.get("barcode"), patch.get("id") or existing.id)

    def _op():
        row = _apply(store_id, patch, existing)
        db.session.commit()
        return row.to_dict()

    doc = run_with_retry(_op)
    cache.upsert(store_id, Collection.PRODUCTS, doc)
    change_feed.dispatch_pending()
    return doc


def delete_product(store_id: int, product_id: str, *, actor=None) -> None:
    check_actor(actor, "MANAGE_PRODUCTS")
    product = db.session.query(Product).filter_by(store_id=store_id, id=product_id).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    db.session.delete(product)
    db.session.commit()
    cache.remove(store_id, Collection.PRODUCTS, product_id)
    change_feed.dispatch_pending()


def generate_next_default_barcode(store_id: int) -> str:
    try:
        barcodes = (
            db.session.query(Product.barcode)
            .filter(Product.store_id == store_id, Product.barcode.isnot(None))
            .all()
        )
        taken = {b for (b,) in barcodes}
        numbers = [int(b) for b in taken if DEFAULT_BARCODE_RE.match(b)]
        candidate = max(numbers, default=0) + 1
        # Past "999" the sequence continues as "1000", "1001", ...; skip any already in use
        while str(candidate).zfill(3) in taken:
            candidate += 1
        return str(candidate).zfill(3)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Barcode scan failed for store %s; using timestamp barcode", store_id)
        return str(epoch_millis())[-6:]


def save_product_with_barcode(
    store_id: int,
    product: dict,
    performed_by: str | None = None,
    performed_by_role: str | None = None,
    *,
    actor=None,
) -> dict:
    """
    Save a product, assigning a barcode when none is given, and record any
    stock change in the ledger.

    New products get an "initial" entry; existing products get "add" or
    "remove" by the sign of the change. The entry is queued in the same
    commit as the product.
    """
    check_actor(actor, "MANAGE_PRODUCTS")
    get_store(store_id)
    patch, existing = _validate(store_id, product)
    product_id = patch.get("id") or existing.id

    keeps_barcode = existing is not None and bool(existing.barcode) and "barcode" not in patch
    if not patch.get("barcode") and not keeps_barcode:
        patch["barcode"] = generate_next_default_barcode(store_id)
    _ensure_barcode_free(store_id, patch.get("barcode"), product_id)

    if performed_by is None and actor is not None:
        performed_by, performed_by_role = actor.name, actor.role

    def _op():
        previous = 0 if existing is None else existing.stock
        row = _apply(store_id, patch, existing)
        new_stock = row.stock if row.stock is not None else 0

        pending_ids: list[int] = []
        if new_stock != previous:
            if existing is None:
                change_type = StockChangeType.INITIAL.value
            elif new_stock > previous:
                change_type = StockChangeType.ADD.value
            else:
                change_type = StockChangeType.REMOVE.value
            pending_ids = enqueue_entries(store_id, [{
                "product_id": product_id,
                "product_name": row.name,
                "barcode": row.barcode,
                "unit": row.unit,
                "change_type": change_type,
                "quantity": new_stock - previous,
                "previous_stock": previous,
                "new_stock": new_stock,
                "reason": "Initial stock" if existing is None else "Stock updated from product form",
                "performed_by": performed_by,
                "performed_by_role": performed_by_role,
            }])
        db.session.commit()
        return row.to_dict(), pending_ids

    doc, pending_ids = run_with_retry(_op)
    if pending_ids:
        deliver_pending(pending_ids)
    cache.upsert(store_id, Collection.PRODUCTS, doc)
    change_feed.dispatch_pending()
    return doc


def subscribe_to_products(store_id: int, callback):
    return change_feed.subscribe(store_id, Collection.PRODUCTS, callback)

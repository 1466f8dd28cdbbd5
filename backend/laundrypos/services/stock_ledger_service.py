# Overview: Stock ledger; append-only stock history, manual stock changes, and the ledger outbox.

"""
Stock Ledger Invariants (authoritative)

Entries:
- One StockHistory row per stock transition, never updated or deleted.
- new_stock == previous_stock + quantity, checked before anything is written.
- quantity is the signed delta; sale entries are always negative.
- Filters on timestamp are inclusive. A date-only end bound covers the whole day.
- Reads are newest-first.

Outbox:
- Writers that change Product.stock queue their ledger entries as
  PendingStockHistory rows in the SAME transaction as the stock change.
  A crash after commit therefore loses no history.
- Delivery (pending row -> StockHistory row) happens after commit, one
  entry per transaction. Delivery failures are logged and counted on the
  pending row, never raised: the stock change already succeeded.
- Entry ids are fixed at enqueue time, so re-delivering a row that already
  landed just removes it from the outbox.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..constants import Collection, StockChangeType
from ..extensions import cache, change_feed, db
from ..models import PendingStockHistory, Product, StockHistory
from ..permissions import check_actor
from ..time_utils import epoch_millis, parse_iso_datetime, parse_range_bound, to_utc_z, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry
from .store_service import get_store


logger = logging.getLogger(__name__)

CHANGE_TYPES = {t.value for t in StockChangeType}

_id_suffix = itertools.count()


def new_stock_history_id() -> str:
    """stock_{epoch ms}_{0-999}; the suffix cycles so ids minted in the same ms differ."""
    return f"stock_{epoch_millis()}_{next(_id_suffix) % 1000}"


@dataclass
class DrainResult:
    delivered: int = 0
    failed: int = 0
    failed_ids: list[int] = field(default_factory=list)


@dataclass
class StockUpdateResult:
    product: dict
    previous_stock: int
    new_stock: int
    ledger_delivered: bool


def _as_int(entry: dict, key: str) -> int:
    value = entry.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def validate_stock_entry(entry: dict) -> dict:
    """
    Check a ledger entry before it is written or queued.

    Returns a normalized copy. Raises ValidationError on arithmetic or type
    problems.
    """
    if not isinstance(entry, dict):
        raise ValidationError("Stock history entry must be an object")

    product_id = str(entry.get("product_id") or "").strip()
    if not product_id:
        raise ValidationError("product_id is required")
    product_name = str(entry.get("product_name") or "").strip()
    if not product_name:
        raise ValidationError("product_name is required")

    change_type = entry.get("change_type")
    if change_type not in CHANGE_TYPES:
        raise ValidationError(f"change_type must be one of: {', '.join(sorted(CHANGE_TYPES))}")

    quantity = _as_int(entry, "quantity")
    previous_stock = _as_int(entry, "previous_stock")
    new_stock = _as_int(entry, "new_stock")

    if new_stock != previous_stock + quantity:
        raise ValidationError(
            f"new_stock ({new_stock}) must equal previous_stock ({previous_stock}) + quantity ({quantity})"
        )
    if change_type == StockChangeType.SALE.value and quantity >= 0:
        raise ValidationError("quantity must be negative for sale entries")

    normalized = dict(entry)
    normalized.update(
        product_id=product_id,
        product_name=product_name,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
    )
    return normalized


def _build_history(store_id: int, entry: dict) -> StockHistory:
    entry = validate_stock_entry(entry)
    timestamp = entry.get("timestamp")
    if isinstance(timestamp, str):
        timestamp = parse_iso_datetime(timestamp)
    return StockHistory(
        store_id=store_id,
        id=entry.get("id") or new_stock_history_id(),
        product_id=entry["product_id"],
        product_name=entry["product_name"],
        barcode=entry.get("barcode"),
        unit=entry.get("unit"),
        change_type=entry["change_type"],
        quantity=entry["quantity"],
        previous_stock=entry["previous_stock"],
        new_stock=entry["new_stock"],
        reason=entry.get("reason"),
        performed_by=entry.get("performed_by"),
        performed_by_role=entry.get("performed_by_role"),
        reference_id=entry.get("reference_id"),
        timestamp=timestamp or utcnow(),
    )


def create_stock_history(store_id: int, entry: dict) -> dict:
    """Append one ledger entry. There is deliberately no update or delete counterpart."""
    get_store(store_id)
    history = _build_history(store_id, entry)
    db.session.add(history)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Stock history entry {history.id} already exists")
    change_feed.dispatch_pending()
    return history.to_dict()


def _coerce_bound(value, *, end: bool) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_range_bound(value, end=end)
    except ValueError:
        raise ValidationError(f"Invalid {'end' if end else 'start'} date: {value}")


def get_stock_history(
    store_id: int,
    product_id: Optional[str] = None,
    start_date=None,
    end_date=None,
) -> list[dict]:
    """
    Ledger entries for a store, newest first.

    start_date / end_date accept datetimes, ISO strings or YYYY-MM-DD dates
    and are inclusive.
    """
    start = _coerce_bound(start_date, end=False)
    end = _coerce_bound(end_date, end=True)

    q = db.session.query(StockHistory).filter(StockHistory.store_id == store_id)
    if product_id:
        q = q.filter(StockHistory.product_id == product_id)
    if start is not None:
        q = q.filter(StockHistory.timestamp >= start)
    if end is not None:
        q = q.filter(StockHistory.timestamp <= end)

    rows = q.order_by(StockHistory.timestamp.desc(), StockHistory.id.desc()).all()
    return [row.to_dict() for row in rows]


def subscribe_to_stock_history(store_id: int, callback, product_id: Optional[str] = None):
    return change_feed.subscribe(store_id, Collection.STOCK_HISTORY, callback, product_id=product_id)


# -- Outbox ------------------------------------------------------------------

def enqueue_entries(store_id: int, entries: list[dict]) -> list[int]:
    """
    Queue ledger entries in the current transaction. The caller commits.

    Returns the outbox row ids (valid once the caller's commit succeeds).
    """
    rows = []
    for entry in entries:
        payload = validate_stock_entry(entry)
        payload.setdefault("id", new_stock_history_id())
        if isinstance(payload.get("timestamp"), datetime):
            payload["timestamp"] = to_utc_z(payload["timestamp"])
        payload.setdefault("timestamp", to_utc_z(utcnow()))
        row = PendingStockHistory(store_id=store_id, payload=payload, attempts=0)
        db.session.add(row)
        rows.append(row)
    db.session.flush()
    return [row.id for row in rows]


def _deliver_row(row: PendingStockHistory) -> None:
    payload = row.payload
    exists = (
        db.session.query(StockHistory.id)
        .filter_by(store_id=row.store_id, id=payload["id"])
        .first()
    )
    if exists is None:
        db.session.add(_build_history(row.store_id, payload))
    db.session.delete(row)


def _record_failure(pending_id: int, exc: Exception) -> None:
    logger.warning("Ledger delivery failed for pending entry %s: %s", pending_id, exc)
    try:
        row = db.session.get(PendingStockHistory, pending_id)
        if row is not None:
            row.attempts = (row.attempts or 0) + 1
            row.last_error = str(exc)[:1000]
            db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not record delivery failure for pending entry %s", pending_id)


def deliver_pending(pending_ids) -> DrainResult:
    """Move the given outbox rows into the ledger. Never raises for delivery failures."""
    result = DrainResult()
    for pending_id in pending_ids:
        try:
            row = db.session.get(PendingStockHistory, pending_id)
            if row is None:
                continue
            _deliver_row(row)
            db.session.commit()
            result.delivered += 1
        except (SQLAlchemyError, ValidationError) as exc:
            db.session.rollback()
            _record_failure(pending_id, exc)
            result.failed += 1
            result.failed_ids.append(pending_id)
    return result


def drain_pending(store_id: Optional[int] = None) -> DrainResult:
    """Deliver every queued ledger entry (optionally for one store), oldest first."""
    q = db.session.query(PendingStockHistory.id)
    if store_id is not None:
        q = q.filter(PendingStockHistory.store_id == store_id)
    ids = [row.id for row in q.order_by(PendingStockHistory.id.asc()).all()]
    result = deliver_pending(ids)
    if ids:
        logger.info("Ledger drain: %d delivered, %d failed", result.delivered, result.failed)
    change_feed.dispatch_pending()
    return result


def list_pending(store_id: int) -> list[dict]:
    rows = (
        db.session.query(PendingStockHistory)
        .filter_by(store_id=store_id)
        .order_by(PendingStockHistory.id.asc())
        .all()
    )
    return [row.to_dict() for row in rows]


# -- Direct stock changes ----------------------------------------------------

def update_product_stock(
    store_id: int,
    product_id: str,
    new_stock: int,
    change_type: str,
    reason: Optional[str] = None,
    performed_by: Optional[str] = None,
    performed_by_role: Optional[str] = None,
    reference_id: Optional[str] = None,
    *,
    actor=None,
) -> StockUpdateResult:
    """
    Set a product's stock outside of a sale and record the transition.

    The new stock and its ledger entry (queued in the outbox) commit together.
    """
    check_actor(actor, "ADJUST_STOCK")
    get_store(store_id)
    if isinstance(new_stock, bool) or not isinstance(new_stock, int):
        raise ValidationError("new_stock must be an integer")
    if new_stock < 0:
        raise ValidationError("new_stock must be >= 0")

    def _op():
        product = db.session.query(Product).filter_by(store_id=store_id, id=product_id).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")

        previous = product.stock
        entry = {
            "product_id": product.id,
            "product_name": product.name,
            "barcode": product.barcode,
            "unit": product.unit,
            "change_type": change_type,
            "quantity": new_stock - previous,
            "previous_stock": previous,
            "new_stock": new_stock,
            "reason": reason,
            "performed_by": performed_by,
            "performed_by_role": performed_by_role,
            "reference_id": reference_id,
        }
        pending_ids = enqueue_entries(store_id, [entry])
        product.stock = new_stock
        db.session.commit()
        return product.to_dict(), previous, pending_ids

    product_doc, previous, pending_ids = run_with_retry(_op)

    delivery = deliver_pending(pending_ids)
    cache.upsert(store_id, Collection.PRODUCTS, product_doc)
    change_feed.dispatch_pending()

    logger.info(
        "Stock for %s/%s changed %s -> %s (%s)", store_id, product_id, previous, new_stock, change_type
    )
    return StockUpdateResult(
        product=product_doc,
        previous_stock=previous,
        new_stock=new_stock,
        ledger_delivered=delivery.failed == 0,
    )

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..constants import CORE_CACHED_COLLECTIONS, Collection
from ..extensions import cache, db
from ..models import Store
from ..permissions import check_actor
from ..validation import NotFoundError, ValidationError
from .concurrency import run_with_retry


logger = logging.getLogger(__name__)


def create_store(name: str, timezone: str = "UTC") -> Store:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Store name is required")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {timezone}")

    def _op():
        store = Store(name=name, timezone=timezone)
        db.session.add(store)
        db.session.commit()
        return store

    store = run_with_retry(_op)
    logger.info("Created store %s (%s)", store.id, store.name)
    return store


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.id.asc()).all()


def clear_cache(store_id: int, *, actor=None) -> list[str]:
    """Drop the routinely cached collections of a store. Returns the cleared names."""
    check_actor(actor, "CLEAR_CACHE")
    cache.clear_core(store_id)
    logger.info("Cleared core cache for store %s", store_id)
    return [c.value for c in CORE_CACHED_COLLECTIONS]


def clear_all_cache(store_id: int, *, actor=None) -> list[str]:
    """Drop every cached collection of a store (support/troubleshooting)."""
    check_actor(actor, "CLEAR_CACHE")
    cache.invalidate_all(store_id)
    logger.info("Cleared all cache for store %s", store_id)
    return [c.value for c in Collection]

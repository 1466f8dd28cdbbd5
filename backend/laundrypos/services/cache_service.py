# Overview: Per-store, per-collection read cache with a freshness window and pluggable storage.

"""
Collection Cache

The cache is a derived, disposable view of the database. It is never the
source of truth.

INVARIANTS:
- An entry is keyed by (store_id, collection) and holds the full collection
  payload plus the time it was written.
- A read is served only while now - written_at < ttl (strict). Stale or
  missing entries read as None and force the caller back to the database.
- Payload and timestamp are always written together in one storage call.
- Storage failures are logged and behave like a miss. They never fail the
  operation that touched the cache.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from sqlalchemy import BigInteger, Column, Integer, JSON, MetaData, String, Table, create_engine, delete, insert, select
from sqlalchemy.exc import SQLAlchemyError

from ..constants import Collection, CORE_CACHED_COLLECTIONS


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheKey:
    store_id: int
    collection: Collection

    @classmethod
    def of(cls, store_id: int, collection: Collection | str) -> "CacheKey":
        return cls(store_id=int(store_id), collection=Collection(collection))


@dataclass(frozen=True)
class CacheEntry:
    payload: list
    written_at_ms: int


class CacheStorage(Protocol):
    """Backing key-value store for cache entries."""

    def read(self, key: CacheKey) -> Optional[CacheEntry]: ...

    def write(self, key: CacheKey, entry: CacheEntry) -> None: ...

    def delete(self, key: CacheKey) -> None: ...


class MemoryCacheStorage:
    """Process-local storage. Used in tests and single-process deployments."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    def read(self, key: CacheKey) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        return CacheEntry(payload=copy.deepcopy(entry.payload), written_at_ms=entry.written_at_ms)

    def write(self, key: CacheKey, entry: CacheEntry) -> None:
        stored = CacheEntry(payload=copy.deepcopy(entry.payload), written_at_ms=entry.written_at_ms)
        with self._lock:
            self._entries[key] = stored

    def delete(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)


class SqlCacheStorage:
    """
    Persistent storage in its own SQL database (one row per key).

    Kept separate from the system-of-record database so the cache can be
    wiped or lost without touching business data.
    """

    def __init__(self, url: str) -> None:
        self.engine = create_engine(url)
        self.metadata = MetaData()
        self.table = Table(
            "cache_entries",
            self.metadata,
            Column("store_id", Integer, primary_key=True),
            Column("collection", String(32), primary_key=True),
            Column("payload", JSON, nullable=False),
            Column("written_at_ms", BigInteger, nullable=False),
        )
        self.metadata.create_all(self.engine)

    def _where(self, key: CacheKey):
        return (
            (self.table.c.store_id == key.store_id)
            & (self.table.c.collection == key.collection.value)
        )

    def read(self, key: CacheKey) -> Optional[CacheEntry]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(self.table.c.payload, self.table.c.written_at_ms).where(self._where(key))
            ).first()
        if row is None:
            return None
        return CacheEntry(payload=list(row.payload or []), written_at_ms=int(row.written_at_ms))

    def write(self, key: CacheKey, entry: CacheEntry) -> None:
        # Delete + insert in one transaction keeps payload and timestamp together.
        with self.engine.begin() as conn:
            conn.execute(delete(self.table).where(self._where(key)))
            conn.execute(
                insert(self.table).values(
                    store_id=key.store_id,
                    collection=key.collection.value,
                    payload=entry.payload,
                    written_at_ms=entry.written_at_ms,
                )
            )

    def delete(self, key: CacheKey) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(self.table).where(self._where(key)))


class CollectionCache:
    """
    Read cache for store collections.

    Usable standalone (pass storage/ttl/clock) or as a Flask extension via
    init_app(), which picks storage and ttl from app config.
    """

    def __init__(
        self,
        storage: Optional[CacheStorage] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage: CacheStorage = storage if storage is not None else MemoryCacheStorage()
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def init_app(self, app) -> None:
        self.ttl_seconds = float(app.config.get("CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS))
        backend = app.config.get("CACHE_BACKEND", "memory")
        if backend == "sql":
            self.storage = SqlCacheStorage(app.config["CACHE_DATABASE_URL"])
        elif backend == "memory":
            self.storage = MemoryCacheStorage()
        else:
            raise ValueError(f"Unknown CACHE_BACKEND: {backend}")
        app.extensions["laundrypos_cache"] = self

    def _now_ms(self) -> int:
        return int(round(self.clock() * 1000))

    @property
    def ttl_ms(self) -> int:
        return int(round(self.ttl_seconds * 1000))

    def _read_fresh(self, key: CacheKey) -> Optional[CacheEntry]:
        try:
            entry = self.storage.read(key)
        except SQLAlchemyError:
            logger.exception("Cache read failed for %s/%s", key.store_id, key.collection.value)
            return None
        if entry is None:
            return None
        if self._now_ms() - entry.written_at_ms >= self.ttl_ms:
            return None
        return entry

    def get(self, store_id: int, collection: Collection | str) -> Optional[list]:
        """Return the cached payload if still fresh, else None."""
        entry = self._read_fresh(CacheKey.of(store_id, collection))
        return entry.payload if entry is not None else None

    def put(self, store_id: int, collection: Collection | str, data: list) -> None:
        """Overwrite payload and timestamp together."""
        key = CacheKey.of(store_id, collection)
        try:
            self.storage.write(key, CacheEntry(payload=list(data), written_at_ms=self._now_ms()))
        except SQLAlchemyError:
            logger.exception("Cache write failed for %s/%s", key.store_id, key.collection.value)

    def invalidate(self, store_id: int, collection: Collection | str) -> None:
        key = CacheKey.of(store_id, collection)
        try:
            self.storage.delete(key)
        except SQLAlchemyError:
            logger.exception("Cache invalidate failed for %s/%s", key.store_id, key.collection.value)

    def invalidate_all(self, store_id: int, collections=None) -> None:
        """Clear every known collection for a store (troubleshooting/support)."""
        for collection in collections or list(Collection):
            self.invalidate(store_id, collection)

    def clear_core(self, store_id: int) -> None:
        self.invalidate_all(store_id, CORE_CACHED_COLLECTIONS)

    # -- Write-path helpers --------------------------------------------------
    #
    # A write must leave the cache matching the database. When a fresh entry
    # exists it is patched in place; otherwise it is dropped so the next read
    # refetches the full collection instead of trusting a partial list.

    def upsert(
        self,
        store_id: int,
        collection: Collection | str,
        doc: dict,
        *,
        order_by: Optional[Callable[[list], list]] = None,
    ) -> None:
        key = CacheKey.of(store_id, collection)
        entry = self._read_fresh(key)
        if entry is None:
            self.invalidate(store_id, collection)
            return
        docs = [d for d in entry.payload if d.get("id") != doc.get("id")]
        docs.append(doc)
        if order_by is not None:
            docs = order_by(docs)
        self.put(store_id, collection, docs)

    def remove(self, store_id: int, collection: Collection | str, doc_id: Any) -> None:
        key = CacheKey.of(store_id, collection)
        entry = self._read_fresh(key)
        if entry is None:
            self.invalidate(store_id, collection)
            return
        self.put(store_id, collection, [d for d in entry.payload if d.get("id") != doc_id])


# Overview: Push-update distributor; fans collection snapshots out to subscribers after commits.

"""
Change Feed

Every committed insert/update/delete of a store document marks its
(store_id, collection) as changed. dispatch_pending() then reloads the full
collection snapshot from the database, overwrites the cache with it
unconditionally (the server view always wins over local optimistic state),
and calls each subscriber.

Change tracking rides on SQLAlchemy session events:
- after_flush: note the collections touched by the flush
- after_commit: promote them to "committed"
- after_rollback: discard what was noted

Ordering: invoice snapshots are delivered newest-first by business date.
Subscriber errors are logged and never reach the writer or other subscribers.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from ..constants import Collection


logger = logging.getLogger(__name__)

FLUSHED_KEY = "laundrypos.flushed_changes"
COMMITTED_KEY = "laundrypos.committed_changes"

Snapshot = list[dict]
Unsubscribe = Callable[[], None]


def _touched_keys(session: Session) -> set[tuple[int, Collection]]:
    keys = set()
    for obj in itertools.chain(session.new, session.dirty, session.deleted):
        collection = getattr(type(obj), "__collection__", None)
        store_id = getattr(obj, "store_id", None)
        if collection is not None and store_id is not None:
            keys.add((int(store_id), collection))
    return keys


@event.listens_for(Session, "after_flush")
def _record_flush(session, flush_context):
    keys = _touched_keys(session)
    if keys:
        session.info.setdefault(FLUSHED_KEY, set()).update(keys)


@event.listens_for(Session, "after_commit")
def _promote_on_commit(session):
    flushed = session.info.pop(FLUSHED_KEY, None)
    if flushed:
        session.info.setdefault(COMMITTED_KEY, set()).update(flushed)


@event.listens_for(Session, "after_rollback")
def _discard_on_rollback(session):
    session.info.pop(FLUSHED_KEY, None)


def sort_invoices_newest_first(docs: Snapshot) -> Snapshot:
    return sorted(
        docs,
        key=lambda d: (d.get("date") or "", d.get("created_at") or ""),
        reverse=True,
    )


@dataclass
class Subscription:
    token: int
    store_id: int
    collection: Collection
    callback: Callable[[Snapshot], None]
    product_id: Optional[str] = None

    def deliver(self, snapshot: Snapshot) -> None:
        if self.product_id is not None:
            snapshot = [d for d in snapshot if d.get("product_id") == self.product_id]
        try:
            self.callback(snapshot)
        except Exception:
            # A broken subscriber must not break the write that triggered it.
            logger.exception(
                "Subscriber %s for %s/%s failed", self.token, self.store_id, self.collection.value
            )


class ChangeFeed:
    """In-process live feed of store collections."""

    def __init__(self) -> None:
        self._subscriptions: dict[tuple[int, Collection], dict[int, Subscription]] = {}
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._db = None
        self._cache = None

    def init_app(self, app, db, cache) -> None:
        self._db = db
        self._cache = cache
        app.extensions["laundrypos_change_feed"] = self

        @app.after_request
        def _dispatch_after_request(response):
            self.dispatch_pending()
            return response

    def subscriber_count(self, store_id: int, collection: Collection | str) -> int:
        with self._lock:
            return len(self._subscriptions.get((int(store_id), Collection(collection)), {}))

    def subscribe(
        self,
        store_id: int,
        collection: Collection | str,
        on_change: Callable[[Snapshot], None],
        *,
        product_id: Optional[str] = None,
        initial: bool = True,
    ) -> Unsubscribe:
        """
        Attach a live feed. Returns an unsubscribe function that is safe to
        call any number of times.

        With initial=True the current snapshot is delivered immediately.
        """
        key = (int(store_id), Collection(collection))
        sub = Subscription(
            token=next(self._tokens),
            store_id=key[0],
            collection=key[1],
            callback=on_change,
            product_id=product_id,
        )
        with self._lock:
            self._subscriptions.setdefault(key, {})[sub.token] = sub

        if initial:
            sub.deliver(self.load_snapshot(*key))

        def unsubscribe() -> None:
            with self._lock:
                subs = self._subscriptions.get(key)
                if subs is None:
                    return
                subs.pop(sub.token, None)
                if not subs:
                    self._subscriptions.pop(key, None)

        return unsubscribe

    def load_snapshot(self, store_id: int, collection: Collection) -> Snapshot:
        from ..models import model_for_collection

        model = model_for_collection(collection)
        q = self._db.session.query(model).filter_by(store_id=store_id)
        if collection is Collection.PRODUCTS:
            q = q.order_by(model.name.asc(), model.id.asc())
        elif collection is Collection.STOCK_HISTORY:
            q = q.order_by(model.timestamp.desc(), model.id.desc())
        else:
            q = q.order_by(model.id.asc())
        docs = [row.to_dict() for row in q.all()]
        if collection is Collection.INVOICES:
            return sort_invoices_newest_first(docs)
        return docs

    def publish(self, store_id: int, collection: Collection | str) -> None:
        """Push the current snapshot of one collection to its subscribers."""
        key = (int(store_id), Collection(collection))
        with self._lock:
            subs = list(self._subscriptions.get(key, {}).values())
        if not subs:
            return
        snapshot = self.load_snapshot(*key)
        if self._cache is not None:
            self._cache.put(key[0], key[1], snapshot)
        for sub in subs:
            sub.deliver(snapshot)

    def dispatch_pending(self) -> None:
        """Publish every collection changed by commits since the last dispatch."""
        if self._db is None:
            return
        changed = self._db.session.info.pop(COMMITTED_KEY, None)
        if not changed:
            return
        for store_id, collection in sorted(changed, key=lambda k: (k[0], k[1].value)):
            self.publish(store_id, collection)

# backend/laundrypos/routes/events.py
"""
Server-Sent Events feed of a store collection.

The first event is the current snapshot; every later event is the full
snapshot after a committed change. Invoices arrive newest-first.
Closing the connection unsubscribes.
"""
import json
import queue

from flask import Blueprint, Response, g, request

from ..extensions import change_feed
from ..decorators import require_staff
from ..permissions import check_actor

KEEPALIVE_SECONDS = 15.0

FEED_RULE = "<any(products, customers, invoices, categories, stock_history):collection>"

# Read capability per feed, matching the list routes; None means any staff member
FEED_CAPABILITIES = {
    "products": "VIEW_PRODUCTS",
    "invoices": "VIEW_INVOICES",
    "stock_history": "VIEW_STOCK_HISTORY",
    "customers": None,
    "categories": None,
}

events_bp = Blueprint("events", __name__, url_prefix="/api/stores/<int:store_id>/events")


def _format_event(snapshot) -> str:
    return f"data: {json.dumps(snapshot)}\n\n"


@events_bp.get(f"/{FEED_RULE}")
@require_staff
def collection_events(store_id: int, collection: str):
    capability = FEED_CAPABILITIES[collection]
    if capability:
        check_actor(g.staff, capability)

    updates: queue.Queue = queue.Queue()
    unsubscribe = change_feed.subscribe(
        store_id,
        collection,
        updates.put,
        product_id=request.args.get("product_id"),
    )

    def stream():
        try:
            while True:
                try:
                    snapshot = updates.get(timeout=KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield _format_event(snapshot)
        finally:
            unsubscribe()

    return Response(
        stream(),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

# backend/laundrypos/routes/stock_history.py
"""
Stock ledger routes.

The ledger is append-only: there are no update or delete endpoints.
"""
from flask import Blueprint, request

from ..services import stock_ledger_service
from ..decorators import require_capability

stock_history_bp = Blueprint(
    "stock_history", __name__, url_prefix="/api/stores/<int:store_id>/stock-history"
)


@stock_history_bp.get("")
@require_capability("VIEW_STOCK_HISTORY")
def list_stock_history(store_id: int):
    """
    Query params (all optional):
    - product_id
    - start_date, end_date: YYYY-MM-DD (whole day, inclusive) or ISO datetime
    """
    items = stock_ledger_service.get_stock_history(
        store_id,
        product_id=request.args.get("product_id"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
    )
    return {"items": items, "count": len(items)}


@stock_history_bp.post("")
@require_capability("ADJUST_STOCK")
def create_stock_history_route(store_id: int):
    payload = request.get_json(silent=True) or {}
    entry = stock_ledger_service.create_stock_history(store_id, payload)
    return {"entry": entry}, 201


@stock_history_bp.get("/pending")
@require_capability("VIEW_STOCK_HISTORY")
def list_pending_route(store_id: int):
    items = stock_ledger_service.list_pending(store_id)
    return {"items": items, "count": len(items)}


@stock_history_bp.post("/pending/drain")
@require_capability("ADJUST_STOCK")
def drain_pending_route(store_id: int):
    result = stock_ledger_service.drain_pending(store_id)
    return {"delivered": result.delivered, "failed": result.failed, "failed_ids": result.failed_ids}

# backend/laundrypos/routes/counters.py
"""
Daily invoice counter routes.

Reads need VIEW_INVOICES. Repair and reset need MANAGE_COUNTERS and are
never triggered implicitly by numbering.
"""
from flask import Blueprint, request, g

from ..services import invoice_number_service
from ..decorators import require_capability

counters_bp = Blueprint("counters", __name__, url_prefix="/api/stores/<int:store_id>/counters")


@counters_bp.get("")
@require_capability("VIEW_INVOICES")
def list_counters(store_id: int):
    items = invoice_number_service.get_all_daily_counters(store_id)
    return {"items": items, "count": len(items)}


@counters_bp.get("/today")
@require_capability("VIEW_INVOICES")
def today_counter(store_id: int):
    return {"last_number": invoice_number_service.get_today_invoice_counter(store_id)}


@counters_bp.post("/today/fix")
@require_capability("MANAGE_COUNTERS")
def fix_today_counter(store_id: int):
    return {"last_number": invoice_number_service.fix_today_invoice_counter(store_id, actor=g.staff)}


@counters_bp.get("/<day>")
@require_capability("VIEW_INVOICES")
def date_counter(store_id: int, day: str):
    return {"date": day, "last_number": invoice_number_service.get_date_invoice_counter(store_id, day)}


@counters_bp.post("/<day>/reset")
@require_capability("MANAGE_COUNTERS")
def reset_counter(store_id: int, day: str):
    payload = request.get_json(silent=True) or {}
    counter = invoice_number_service.reset_date_counter(
        store_id,
        day,
        start_number=payload.get("start_number", 0),
        reset_by=g.staff.name,
        actor=g.staff,
    )
    return {"counter": counter}

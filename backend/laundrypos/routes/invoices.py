# backend/laundrypos/routes/invoices.py
"""
Invoice routes.

POST /invoices is the inventory-aware writer: it deducts stock once per
invoice id. Posting an id that already exists only updates its metadata
and answers 200 instead of 201.
"""
from flask import Blueprint, request, g

from ..services import invoice_service
from ..services.invoice_number_service import next_invoice_number
from ..decorators import require_capability

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/stores/<int:store_id>/invoices")


@invoices_bp.get("")
@require_capability("VIEW_INVOICES")
def list_invoices(store_id: int):
    """Newest first."""
    items = invoice_service.get_invoices(store_id)
    return {"items": items, "count": len(items)}


@invoices_bp.post("/next-number")
@require_capability("CREATE_INVOICE")
def next_number_route(store_id: int):
    return {"invoice_id": next_invoice_number(store_id)}


@invoices_bp.get("/<invoice_id>")
@require_capability("VIEW_INVOICES")
def get_invoice_route(store_id: int, invoice_id: str):
    return {"invoice": invoice_service.get_invoice(store_id, invoice_id)}


@invoices_bp.post("")
@require_capability("CREATE_INVOICE")
def create_invoice_route(store_id: int):
    payload = request.get_json(silent=True) or {}
    if not payload.get("id"):
        payload["id"] = next_invoice_number(store_id)
    result = invoice_service.save_invoice_with_stock_update(store_id, payload, actor=g.staff)
    body = {
        "invoice": result.invoice,
        "created": result.created,
        "stock_updated": result.stock_updated,
        "ledger_delivered": result.ledger_delivered,
    }
    return body, 201 if result.created else 200


@invoices_bp.patch("/<invoice_id>")
@require_capability("UPDATE_INVOICE")
def update_invoice_route(store_id: int, invoice_id: str):
    """Metadata-only update (customer, payment, status). Items and totals are fixed."""
    payload = request.get_json(silent=True) or {}
    payload["id"] = invoice_id
    invoice_service.get_invoice(store_id, invoice_id)
    return {"invoice": invoice_service.save_invoice(store_id, payload, actor=g.staff)}


@invoices_bp.patch("/<invoice_id>/status")
@require_capability("UPDATE_INVOICE")
def update_status_route(store_id: int, invoice_id: str):
    payload = request.get_json(silent=True) or {}
    invoice = invoice_service.update_invoice_status(
        store_id, invoice_id, payload.get("status"), actor=g.staff
    )
    return {"invoice": invoice}


@invoices_bp.delete("/<invoice_id>")
@require_capability("DELETE_INVOICE")
def delete_invoice_route(store_id: int, invoice_id: str):
    """Removes the record only; stock is not restored."""
    invoice_service.delete_invoice(store_id, invoice_id, actor=g.staff)
    return {"deleted": True, "id": invoice_id}

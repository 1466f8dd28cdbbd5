# backend/laundrypos/routes/products.py
"""
Product routes.

- Reads require VIEW_PRODUCTS
- Product writes require MANAGE_PRODUCTS
- Manual stock changes require ADJUST_STOCK and always write a ledger entry
"""
from flask import Blueprint, request, g

from ..services import products_service
from ..services.stock_ledger_service import update_product_stock
from ..decorators import require_capability

products_bp = Blueprint("products", __name__, url_prefix="/api/stores/<int:store_id>/products")


@products_bp.get("")
@require_capability("VIEW_PRODUCTS")
def list_products(store_id: int):
    """Cache-first product list."""
    items = products_service.get_products(store_id)
    return {"items": items, "count": len(items)}


@products_bp.get("/next-barcode")
@require_capability("MANAGE_PRODUCTS")
def next_barcode(store_id: int):
    return {"barcode": products_service.generate_next_default_barcode(store_id)}


@products_bp.get("/<product_id>")
@require_capability("VIEW_PRODUCTS")
def get_product_route(store_id: int, product_id: str):
    return {"product": products_service.get_product(store_id, product_id)}


@products_bp.post("")
@require_capability("MANAGE_PRODUCTS")
def save_product_route(store_id: int):
    """
    Create or update a product (matched by id).

    An empty barcode is auto-assigned. A stock change versus the stored value
    is recorded in the stock ledger.
    """
    payload = request.get_json(silent=True) or {}
    product = products_service.save_product_with_barcode(
        store_id,
        payload,
        performed_by=g.staff.name,
        performed_by_role=g.staff.role,
        actor=g.staff,
    )
    return {"product": product}


@products_bp.delete("/<product_id>")
@require_capability("MANAGE_PRODUCTS")
def delete_product_route(store_id: int, product_id: str):
    products_service.delete_product(store_id, product_id, actor=g.staff)
    return {"deleted": True, "id": product_id}


@products_bp.post("/<product_id>/stock")
@require_capability("ADJUST_STOCK")
def update_stock_route(store_id: int, product_id: str):
    """
    Body:
    - new_stock: int (required)
    - change_type: add | remove | adjust | damage | return | initial (required)
    - reason, reference_id: optional
    """
    payload = request.get_json(silent=True) or {}
    result = update_product_stock(
        store_id,
        product_id,
        payload.get("new_stock"),
        payload.get("change_type"),
        reason=payload.get("reason"),
        performed_by=g.staff.name,
        performed_by_role=g.staff.role,
        reference_id=payload.get("reference_id"),
        actor=g.staff,
    )
    return {
        "product": result.product,
        "previous_stock": result.previous_stock,
        "new_stock": result.new_stock,
        "ledger_delivered": result.ledger_delivered,
    }

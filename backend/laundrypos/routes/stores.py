# backend/laundrypos/routes/stores.py
from flask import Blueprint, request

from ..decorators import require_capability, require_staff
from ..services import store_service

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
@require_staff
def list_stores_route():
    stores = store_service.list_stores()
    return {"items": [s.to_dict() for s in stores], "count": len(stores)}


@stores_bp.post("")
@require_capability("MANAGE_SETTINGS")
def create_store_route():
    payload = request.get_json(silent=True) or {}
    store = store_service.create_store(payload.get("name"), payload.get("timezone") or "UTC")
    return {"store": store.to_dict()}, 201


@stores_bp.get("/<int:store_id>")
@require_staff
def get_store_route(store_id: int):
    return {"store": store_service.get_store(store_id).to_dict()}

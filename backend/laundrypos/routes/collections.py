# backend/laundrypos/routes/collections.py
"""
Routes for the plain store collections (customers, categories, employees,
attendance, salaries).

Writes are checked by the service against the capability of each
collection (MANAGE_CUSTOMERS, MANAGE_CATEGORIES, MANAGE_STAFF).
"""
from flask import Blueprint, request, g

from ..services import collection_service
from ..decorators import require_staff

COLLECTION_RULE = "<any(customers, categories, employees, attendance, salaries):collection>"

collections_bp = Blueprint("collections", __name__, url_prefix="/api/stores/<int:store_id>")


@collections_bp.get(f"/{COLLECTION_RULE}")
@require_staff
def list_documents(store_id: int, collection: str):
    items = collection_service.get_documents(store_id, collection)
    return {"items": items, "count": len(items)}


@collections_bp.get(f"/{COLLECTION_RULE}/<doc_id>")
@require_staff
def get_document_route(store_id: int, collection: str, doc_id: str):
    return {"item": collection_service.get_document(store_id, collection, doc_id)}


@collections_bp.post(f"/{COLLECTION_RULE}")
@require_staff
def save_document_route(store_id: int, collection: str):
    payload = request.get_json(silent=True) or {}
    return {"item": collection_service.save_document(store_id, collection, payload, actor=g.staff)}


@collections_bp.delete(f"/{COLLECTION_RULE}/<doc_id>")
@require_staff
def delete_document_route(store_id: int, collection: str, doc_id: str):
    collection_service.delete_document(store_id, collection, doc_id, actor=g.staff)
    return {"deleted": True, "id": doc_id}

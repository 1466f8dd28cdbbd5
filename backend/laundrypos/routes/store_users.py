# backend/laundrypos/routes/store_users.py
"""
Store user roster routes.

- Any member may read the roster and their own entry (/me)
- Adding, editing, re-roling and removing members require MANAGE_STAFF
"""
from flask import Blueprint, request, g

from ..services import store_user_service
from ..decorators import require_capability, require_staff
from ..validation import NotFoundError

store_users_bp = Blueprint("store_users", __name__, url_prefix="/api/stores/<int:store_id>/users")


@store_users_bp.get("")
@require_staff
def list_store_users(store_id: int):
    users = store_user_service.get_store_users(store_id)
    return {"items": [u.to_dict() for u in users], "count": len(users)}


@store_users_bp.get("/me")
@require_staff
def current_store_user(store_id: int):
    user = store_user_service.get_store_user(store_id, g.staff.user_id)
    return {
        "staff": {"name": g.staff.name, "role": g.staff.role, "user_id": g.staff.user_id},
        "store_user": user.to_dict() if user else None,
    }


@store_users_bp.get("/<user_id>")
@require_staff
def get_store_user(store_id: int, user_id: str):
    user = store_user_service.get_store_user(store_id, user_id)
    if user is None:
        raise NotFoundError(f"Store user {user_id} not found")
    return {"store_user": user.to_dict()}


@store_users_bp.post("")
@require_capability("MANAGE_STAFF")
def add_store_user(store_id: int):
    payload = request.get_json(silent=True) or {}
    user = store_user_service.add_store_user(
        store_id,
        payload.get("id"),
        payload.get("name"),
        payload.get("email"),
        payload.get("role"),
        actor=g.staff,
    )
    return {"store_user": user.to_dict()}, 201


@store_users_bp.patch("/<user_id>")
@require_capability("MANAGE_STAFF")
def update_store_user(store_id: int, user_id: str):
    payload = request.get_json(silent=True) or {}
    user = store_user_service.update_store_user(store_id, user_id, payload, actor=g.staff)
    return {"store_user": user.to_dict()}


@store_users_bp.patch("/<user_id>/role")
@require_capability("MANAGE_STAFF")
def update_store_user_role(store_id: int, user_id: str):
    payload = request.get_json(silent=True) or {}
    user = store_user_service.update_store_user_role(store_id, user_id, payload.get("role"), actor=g.staff)
    return {"store_user": user.to_dict()}


@store_users_bp.delete("/<user_id>")
@require_capability("MANAGE_STAFF")
def remove_store_user(store_id: int, user_id: str):
    store_user_service.remove_store_user(store_id, user_id, actor=g.staff)
    return {"deleted": True, "id": user_id}

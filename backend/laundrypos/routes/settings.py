# backend/laundrypos/routes/settings.py
from flask import Blueprint, request, g

from ..services import settings_service
from ..decorators import require_capability, require_staff

settings_bp = Blueprint("settings", __name__, url_prefix="/api/stores/<int:store_id>/settings")


@settings_bp.get("")
@require_staff
def get_settings(store_id: int):
    return {"settings": settings_service.get_business_settings(store_id)}


@settings_bp.patch("")
@require_capability("MANAGE_SETTINGS")
def update_settings(store_id: int):
    """Merge update; omitted fields keep their values."""
    payload = request.get_json(silent=True) or {}
    return {"settings": settings_service.save_business_settings(store_id, payload, actor=g.staff)}

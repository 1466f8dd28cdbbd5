# backend/laundrypos/routes/cache.py
from flask import Blueprint, request, g

from ..services import store_service
from ..decorators import require_capability

cache_bp = Blueprint("cache", __name__, url_prefix="/api/stores/<int:store_id>/cache")


@cache_bp.delete("")
@require_capability("CLEAR_CACHE")
def clear_cache_route(store_id: int):
    """?all=1 also clears collections outside the routine set (support use)."""
    store_service.get_store(store_id)
    if request.args.get("all") in ("1", "true", "yes"):
        cleared = store_service.clear_all_cache(store_id, actor=g.staff)
    else:
        cleared = store_service.clear_cache(store_id, actor=g.staff)
    return {"cleared": cleared}

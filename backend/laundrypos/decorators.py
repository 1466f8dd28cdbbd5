# Overview: Request decorators that establish the acting staff member and check capabilities.

from functools import wraps
from flask import request, jsonify, g

from .constants import StaffRole
from .permissions import StaffContext, PermissionDeniedError, require_capability as check_role_capability
from .services import store_user_service

KNOWN_ROLES = {r.value for r in StaffRole}


def _request_value(header: str, arg: str):
    # EventSource clients cannot send headers, so the query string is accepted too
    return request.headers.get(header) or request.args.get(arg)


def _declared_staff() -> StaffContext | None:
    role = _request_value("X-Staff-Role", "staff_role")
    name = _request_value("X-Staff-Name", "staff_name") or "Unknown"
    if not role or role.lower() not in KNOWN_ROLES:
        return None
    return StaffContext(name=name, role=role.lower(), user_id=_request_value("X-Staff-Id", "staff_id"))


def _staff_from_request():
    """
    Returns (staff, is_member).

    Store routes resolve X-Staff-Id / X-Staff-Email against the store's
    roster; the declared role only counts while the roster is empty.
    """
    declared = _declared_staff()
    store_id = (request.view_args or {}).get("store_id")
    if store_id is None:
        return declared, True
    user_id = _request_value("X-Staff-Id", "staff_id")
    email = _request_value("X-Staff-Email", "staff_email")
    if declared is None and not user_id and not email:
        return None, True
    return store_user_service.resolve_staff(store_id, user_id=user_id, email=email, declared=declared)


def require_staff(f):
    """
    Require a known staff member on the request.

    Sets g.staff (StaffContext) for routes and for attribution on invoices
    and ledger entries. Returns 401 when no identity is given and 403 when
    the caller is not on the store's roster.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        staff, is_member = _staff_from_request()
        if not is_member:
            return jsonify({"error": "Not a member of this store"}), 403
        if staff is None:
            return jsonify({"error": "Staff role required"}), 401
        g.staff = staff
        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """Require the acting staff role to hold a capability (implies require_staff)."""
    def decorator(f):
        @wraps(f)
        @require_staff
        def decorated_function(*args, **kwargs):
            try:
                check_role_capability(g.staff.role, capability)
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": capability,
                    "message": str(e),
                }), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator

"""
Store user roster.

Each store keeps its own list of staff members and the role each one holds
there. The same person may hold different roles in different stores.

Rules:
- Roster writes need MANAGE_STAFF.
- Roles are one of admin, manager, cashier, salesman.
- The first roster entry is an admin, and a store with roster entries
  always keeps at least one admin, so nobody is locked out of staff
  management.
"""
from __future__ import annotations

import logging

from ..constants import StaffRole
from ..extensions import db
from ..models import StoreUser
from ..permissions import StaffContext, check_actor
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry
from .store_service import get_store


logger = logging.getLogger(__name__)

ROLES = {r.value for r in StaffRole}

UPDATABLE_FIELDS = {"name", "email", "role", "is_email_verified"}


def _normalize_email(email) -> str | None:
    email = str(email or "").strip().lower()
    return email or None


def _clean_role(role) -> str:
    role = str(getattr(role, "value", role) or "").strip().lower()
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(ROLES))}")
    return role


def _require_user(store_id: int, user_id: str) -> StoreUser:
    user = get_store_user(store_id, user_id)
    if user is None:
        raise NotFoundError(f"Store user {user_id} not found")
    return user


def _ensure_admin_remains(store_id: int, user: StoreUser, new_role: str | None) -> None:
    """Refuse to demote or remove the last admin of a store."""
    if user.role != StaffRole.ADMIN.value or new_role == StaffRole.ADMIN.value:
        return
    admins = (
        db.session.query(StoreUser)
        .filter_by(store_id=store_id, role=StaffRole.ADMIN.value)
        .count()
    )
    if admins <= 1:
        raise ConflictError("A store must keep at least one admin")


def get_store_users(store_id: int) -> list[StoreUser]:
    get_store(store_id)
    return (
        db.session.query(StoreUser)
        .filter_by(store_id=store_id)
        .order_by(StoreUser.name.asc(), StoreUser.id.asc())
        .all()
    )


def get_store_user(store_id: int, user_id: str) -> StoreUser | None:
    if not user_id:
        return None
    return db.session.get(StoreUser, (store_id, str(user_id)))


def has_store_users(store_id: int) -> bool:
    return db.session.query(StoreUser.id).filter_by(store_id=store_id).first() is not None


def find_store_user(store_id: int, *, user_id: str | None = None, email: str | None = None) -> StoreUser | None:
    """Look a staff member up by id first, then by email."""
    user = get_store_user(store_id, user_id)
    if user is not None:
        return user
    email = _normalize_email(email)
    if email is None:
        return None
    return db.session.query(StoreUser).filter_by(store_id=store_id, email=email).first()


def resolve_staff(store_id: int, *, user_id=None, email=None, declared: StaffContext | None = None):
    """
    Work out who is acting in a store.

    Returns (staff, is_member). With an empty roster the declared identity
    is used as is. Otherwise only roster members are admitted, under their
    roster name and role.
    """
    if not has_store_users(store_id):
        return declared, True
    user = find_store_user(store_id, user_id=user_id, email=email)
    if user is None:
        return None, False
    return StaffContext(name=user.name, role=user.role, user_id=user.id), True


def add_store_user(
    store_id: int,
    user_id: str,
    name: str,
    email: str | None,
    role,
    added_by: str | None = None,
    *,
    actor=None,
) -> StoreUser:
    check_actor(actor, "MANAGE_STAFF")
    get_store(store_id)

    user_id = str(user_id or "").strip()
    if not user_id:
        raise ValidationError("id is required")
    name = str(name or "").strip()
    if not name:
        raise ValidationError("name is required")
    role = _clean_role(role)
    email = _normalize_email(email)

    if role != StaffRole.ADMIN.value and not has_store_users(store_id):
        raise ValidationError("The first store user must be an admin")
    if get_store_user(store_id, user_id) is not None:
        raise ConflictError(f"User {user_id} is already a member of store {store_id}")
    if email and find_store_user(store_id, email=email) is not None:
        raise ConflictError(f"Email {email} is already used in store {store_id}")
    if added_by is None and actor is not None:
        added_by = actor.name

    def _op():
        user = StoreUser(
            store_id=store_id,
            id=user_id,
            name=name,
            email=email,
            role=role,
            added_by=added_by,
        )
        db.session.add(user)
        db.session.commit()
        return user

    user = run_with_retry(_op)
    logger.info("Added %s to store %s as %s", user_id, store_id, role)
    return user


def update_store_user(store_id: int, user_id: str, updates: dict, *, actor=None) -> StoreUser:
    check_actor(actor, "MANAGE_STAFF")
    if not isinstance(updates, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = set(updates) - UPDATABLE_FIELDS - {"id"}
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    user = _require_user(store_id, user_id)
    patch = {}
    if "name" in updates:
        name = str(updates["name"] or "").strip()
        if not name:
            raise ValidationError("name is required")
        patch["name"] = name
    if "email" in updates:
        email = _normalize_email(updates["email"])
        if email:
            owner = find_store_user(store_id, email=email)
            if owner is not None and owner.id != user.id:
                raise ConflictError(f"Email {email} is already used in store {store_id}")
        patch["email"] = email
    if "role" in updates:
        patch["role"] = _clean_role(updates["role"])
        _ensure_admin_remains(store_id, user, patch["role"])
    if "is_email_verified" in updates:
        if not isinstance(updates["is_email_verified"], bool):
            raise ValidationError("is_email_verified must be a boolean")
        patch["is_email_verified"] = updates["is_email_verified"]

    def _op():
        row = _require_user(store_id, user_id)
        for key, value in patch.items():
            setattr(row, key, value)
        db.session.commit()
        return row

    return run_with_retry(_op)


def update_store_user_role(store_id: int, user_id: str, role, *, actor=None) -> StoreUser:
    user = update_store_user(store_id, user_id, {"role": role}, actor=actor)
    logger.info("Store %s user %s is now %s", store_id, user_id, user.role)
    return user


def remove_store_user(store_id: int, user_id: str, *, actor=None) -> None:
    check_actor(actor, "MANAGE_STAFF")
    user = _require_user(store_id, user_id)
    _ensure_admin_remains(store_id, user, None)
    db.session.delete(user)
    db.session.commit()
    logger.info("Removed %s from store %s", user_id, store_id)

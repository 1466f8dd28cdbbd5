# Overview: Cache-first CRUD and live feeds for the plain store collections.

from __future__ import annotations

import logging

from ..constants import Collection
from ..extensions import cache, change_feed, db
from ..models import model_for_collection
from ..permissions import check_actor
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, validate_payload
from .concurrency import run_with_retry
from .store_service import get_store


logger = logging.getLogger(__name__)

# Collections served here, with the fields clients may write and the capability writes need
COLLECTION_POLICIES = {
    Collection.CUSTOMERS: (
        ModelValidationPolicy(
            writable_fields={"id", "name", "phone", "email", "address", "total_due_cents"},
            required_on_create={"id", "name"},
        ),
        "MANAGE_CUSTOMERS",
    ),
    Collection.CATEGORIES: (
        ModelValidationPolicy(
            writable_fields={"id", "name", "description"},
            required_on_create={"id", "name"},
        ),
        "MANAGE_CATEGORIES",
    ),
    Collection.EMPLOYEES: (
        ModelValidationPolicy(
            writable_fields={"id", "name", "phone", "role", "monthly_salary_cents", "is_active", "joined_on"},
            required_on_create={"id", "name"},
        ),
        "MANAGE_STAFF",
    ),
    Collection.ATTENDANCE: (
        ModelValidationPolicy(
            writable_fields={"id", "employee_id", "date", "status", "check_in", "check_out", "note"},
            required_on_create={"id", "employee_id", "date"},
        ),
        "MANAGE_STAFF",
    ),
    Collection.SALARIES: (
        ModelValidationPolicy(
            writable_fields={"id", "employee_id", "month", "amount_cents", "paid_at", "note"},
            required_on_create={"id", "employee_id", "month", "amount_cents"},
        ),
        "MANAGE_STAFF",
    ),
}

GENERIC_COLLECTIONS = tuple(COLLECTION_POLICIES)


def _resolve(collection):
    try:
        collection = Collection(collection)
    except ValueError:
        raise NotFoundError(f"Unknown collection: {collection}")
    if collection not in COLLECTION_POLICIES:
        raise NotFoundError(f"Collection {collection.value} is not served here")
    policy, capability = COLLECTION_POLICIES[collection]
    return collection, model_for_collection(collection), policy, capability


def get_documents(store_id: int, collection) -> list[dict]:
    collection, model, _, _ = _resolve(collection)
    cached = cache.get(store_id, collection)
    if cached is not None:
        return cached
    rows = db.session.query(model).filter_by(store_id=store_id).order_by(model.id.asc()).all()
    docs = [row.to_dict() for row in rows]
    cache.put(store_id, collection, docs)
    return docs


def get_document(store_id: int, collection, doc_id: str) -> dict:
    collection, model, _, _ = _resolve(collection)
    row = db.session.query(model).filter_by(store_id=store_id, id=doc_id).first()
    if row is None:
        raise NotFoundError(f"{collection.value} document {doc_id} not found")
    return row.to_dict()


def save_document(store_id: int, collection, payload: dict, *, actor=None) -> dict:
    """Create or update one document (matched by id) and patch the cache."""
    collection, model, policy, capability = _resolve(collection)
    check_actor(actor, capability)
    get_store(store_id)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    doc_id = str(payload.get("id") or "").strip()
    existing = None
    if doc_id:
        existing = db.session.query(model).filter_by(store_id=store_id, id=doc_id).first()
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=existing is not None)

    def _op():
        row = db.session.query(model).filter_by(store_id=store_id, id=doc_id).first() if doc_id else None
        if row is None:
            row = model(store_id=store_id)
            db.session.add(row)
        for key, value in patch.items():
            setattr(row, key, value)
        db.session.commit()
        return row.to_dict()

    doc = run_with_retry(_op)
    cache.upsert(store_id, collection, doc)
    change_feed.dispatch_pending()
    return doc


def delete_document(store_id: int, collection, doc_id: str, *, actor=None) -> None:
    collection, model, _, capability = _resolve(collection)
    check_actor(actor, capability)
    row = db.session.query(model).filter_by(store_id=store_id, id=doc_id).first()
    if row is None:
        raise NotFoundError(f"{collection.value} document {doc_id} not found")
    db.session.delete(row)
    db.session.commit()
    cache.remove(store_id, collection, doc_id)
    change_feed.dispatch_pending()
    logger.info("Deleted %s/%s/%s", store_id, collection.value, doc_id)


def subscribe(store_id: int, collection, callback):
    collection, _, _, _ = _resolve(collection)
    return change_feed.subscribe(store_id, collection, callback)


# Named wrappers per collection

def get_customers(store_id: int) -> list[dict]:
    return get_documents(store_id, Collection.CUSTOMERS)


def save_customer(store_id: int, customer: dict, *, actor=None) -> dict:
    return save_document(store_id, Collection.CUSTOMERS, customer, actor=actor)


def delete_customer(store_id: int, customer_id: str, *, actor=None) -> None:
    delete_document(store_id, Collection.CUSTOMERS, customer_id, actor=actor)


def subscribe_to_customers(store_id: int, callback):
    return subscribe(store_id, Collection.CUSTOMERS, callback)


def get_categories(store_id: int) -> list[dict]:
    return get_documents(store_id, Collection.CATEGORIES)


def save_category(store_id: int, category: dict, *, actor=None) -> dict:
    return save_document(store_id, Collection.CATEGORIES, category, actor=actor)


def delete_category(store_id: int, category_id: str, *, actor=None) -> None:
    delete_document(store_id, Collection.CATEGORIES, category_id, actor=actor)


def subscribe_to_categories(store_id: int, callback):
    return subscribe(store_id, Collection.CATEGORIES, callback)


def get_employees(store_id: int) -> list[dict]:
    return get_documents(store_id, Collection.EMPLOYEES)


def get_attendance(store_id: int) -> list[dict]:
    return get_documents(store_id, Collection.ATTENDANCE)


def get_salaries(store_id: int) -> list[dict]:
    return get_documents(store_id, Collection.SALARIES)

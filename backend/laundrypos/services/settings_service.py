"""
Business settings (one document per store).

Saves merge into the existing document: fields not present in the patch
keep their values. Unmodelled fields go into extra, which is merged key by
key as well.
"""
from __future__ import annotations

from ..extensions import db
from ..models import BusinessSettings
from ..permissions import check_actor
from ..validation import ModelValidationPolicy, enforce_rules_settings, validate_payload
from .concurrency import run_with_retry
from .store_service import get_store


SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "address", "phone", "currency", "print_format",
        "stock_management_enabled", "extra",
    },
)


def get_business_settings(store_id: int) -> dict:
    get_store(store_id)
    settings = db.session.get(BusinessSettings, store_id)
    if settings is None:
        # Never saved: defaults, with stock management on
        return BusinessSettings(store_id=store_id, extra={}).to_dict()
    return settings.to_dict()


def save_business_settings(store_id: int, payload: dict, *, actor=None) -> dict:
    check_actor(actor, "MANAGE_SETTINGS")
    get_store(store_id)
    patch = validate_payload(model=BusinessSettings, payload=payload, policy=SETTINGS_POLICY, partial=True)
    enforce_rules_settings(patch)

    def _op():
        settings = db.session.get(BusinessSettings, store_id)
        if settings is None:
            settings = BusinessSettings(store_id=store_id, extra={})
            db.session.add(settings)
        for key, value in patch.items():
            if key == "extra":
                merged = dict(settings.extra or {})
                merged.update(value or {})
                settings.extra = merged
            else:
                setattr(settings, key, value)
        db.session.commit()
        return settings.to_dict()

    return run_with_retry(_op)


def is_stock_management_enabled(store_id: int) -> bool:
    """Missing settings, or a never-set toggle, mean enabled."""
    value = (
        db.session.query(BusinessSettings.stock_management_enabled)
        .filter_by(store_id=store_id)
        .scalar()
    )
    return value is not False

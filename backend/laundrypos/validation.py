from __future__ import annotations
from datetime import date, datetime
from laundrypos.time_utils import parse_date, parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .constants import DISCOUNT_TYPES, INVOICE_STATUSES, PAYMENT_MODES, PRINT_FORMATS, PRODUCT_TYPES


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# VAT is stored in basis points; 100% = 10000
MAX_VAT_BPS = 10_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate barcode)."""


class InsufficientStockError(ConflictError):
    """A sale asks for more units than a product has. Raised before any write."""

    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}, Requested: {requested}"
        )


class DuplicateBarcodeError(ConflictError):
    def __init__(self, barcode: str, existing_product_id: str, existing_product_name: str):
        self.barcode = barcode
        self.existing_product_id = existing_product_id
        self.existing_product_name = existing_product_name
        super().__init__(f'Barcode "{barcode}" already exists for product: {existing_product_name}')


class NotFoundError(LookupError):
    """404-level: the addressed store or document does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required when a document is first written
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Calendar dates (YYYY-MM-DD)
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return parse_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a date (YYYY-MM-DD)")
        raise ValidationError(f"{col.key} must be a date (YYYY-MM-DD)")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is (JSON columns)
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_cents(patch: dict, field: str) -> None:
    value = patch.get(field)
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_cents(patch, "price_cents")
    _check_cents(patch, "purchase_price_cents")

    vat = patch.get("vat_bps")
    if vat is not None and not 0 <= vat <= MAX_VAT_BPS:
        raise ValidationError(f"vat_bps must be between 0 and {MAX_VAT_BPS}")

    if "type" in patch and patch["type"] not in PRODUCT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(PRODUCT_TYPES)}")

    # Empty barcode means "assign one for me"
    if "barcode" in patch and patch["barcode"] == "":
        patch["barcode"] = None


def enforce_rules_settings(patch: dict) -> None:
    if patch.get("print_format") is not None and patch["print_format"] not in PRINT_FORMATS:
        raise ValidationError(f"print_format must be one of: {', '.join(PRINT_FORMATS)}")
    if "extra" in patch and patch["extra"] is not None and not isinstance(patch["extra"], dict):
        raise ValidationError("extra must be an object")


def enforce_rules_invoice(patch: dict) -> None:
    if "status" in patch and patch["status"] not in INVOICE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(INVOICE_STATUSES)}")
    if "payment_mode" in patch and patch["payment_mode"] not in PAYMENT_MODES:
        raise ValidationError(f"payment_mode must be one of: {', '.join(PAYMENT_MODES)}")
    if "discount_type" in patch and patch["discount_type"] not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}")

    pct = patch.get("discount_percentage")
    if pct is not None and not 0 <= pct <= 100:
        raise ValidationError("discount_percentage must be between 0 and 100")

    _check_cents(patch, "discount_cents")
    _check_cents(patch, "paid_amount_cents")


INVOICE_ITEM_FIELDS = {
    "product_id", "name", "barcode", "unit", "quantity",
    "original_price_cents", "sale_price_cents", "vat_bps",
    "price_adjusted", "adjustment_reason", "adjusted_by", "adjustment_timestamp",
}


def _strict_int(value, field: str, index: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"items[{index}].{field} must be an integer")
    return value


def validate_invoice_items(items) -> list[dict]:
    """
    Normalize cart lines into the snapshot stored on the invoice.

    Each line needs product_id, name, a positive integer quantity and a
    non-negative sale_price_cents. original_price_cents defaults to the
    sale price; price_adjusted is derived when not supplied.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cleaned: list[dict] = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        unknown = set(raw) - INVOICE_ITEM_FIELDS
        if unknown:
            raise ValidationError(f"items[{index}] has unknown fields: {', '.join(sorted(unknown))}")

        product_id = str(raw.get("product_id") or "").strip()
        if not product_id:
            raise ValidationError(f"items[{index}].product_id is required")
        name = str(raw.get("name") or "").strip()
        if not name:
            raise ValidationError(f"items[{index}].name is required")

        quantity = _strict_int(raw.get("quantity"), "quantity", index)
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")

        sale_price = _strict_int(raw.get("sale_price_cents"), "sale_price_cents", index)
        original_price = raw.get("original_price_cents", sale_price)
        original_price = _strict_int(original_price, "original_price_cents", index)
        vat_bps = _strict_int(raw.get("vat_bps", 0), "vat_bps", index)

        if sale_price < 0 or original_price < 0:
            raise ValidationError(f"items[{index}] prices must be >= 0")
        if not 0 <= vat_bps <= MAX_VAT_BPS:
            raise ValidationError(f"items[{index}].vat_bps must be between 0 and {MAX_VAT_BPS}")

        cleaned.append({
            "product_id": product_id,
            "name": name,
            "barcode": raw.get("barcode"),
            "unit": raw.get("unit"),
            "quantity": quantity,
            "original_price_cents": original_price,
            "sale_price_cents": sale_price,
            "vat_bps": vat_bps,
            "price_adjusted": bool(raw.get("price_adjusted", sale_price != original_price)),
            "adjustment_reason": raw.get("adjustment_reason"),
            "adjusted_by": raw.get("adjusted_by"),
            "adjustment_timestamp": raw.get("adjustment_timestamp"),
        })
    return cleaned

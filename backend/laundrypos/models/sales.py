from __future__ import annotations

from ..constants import Collection
from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Invoice(db.Model):
    """
    Sales invoice document.

    id is the human-readable invoice number (INV-DDMMYYYY-NNN), unique within
    a store. items is a snapshot of the sold lines; later product edits do
    not change it.

    IDEMPOTENCY: an invoice id deducts stock at most once. Re-saving an
    existing id only updates metadata.

    All money fields are integer cents and are computed server side.
    """
    __tablename__ = "invoices"
    __collection__ = Collection.INVOICES
    __table_args__ = (
        db.Index("ix_invoices_store_date", "store_id", "date"),
    )

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_address = db.Column(db.String(512), nullable=True)

    items = db.Column(db.JSON, nullable=False, default=list)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_vat_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="value")
    discount_percentage = db.Column(db.Float, nullable=True)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    due_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Business date/time of the sale (drives newest-first ordering)
    date = db.Column(db.DateTime, nullable=False, default=utcnow)

    status = db.Column(db.String(16), nullable=False, default="pending")
    payment_mode = db.Column(db.String(16), nullable=False, default="Cash")

    created_by_name = db.Column(db.String(128), nullable=True)
    created_by_role = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Invoice id={self.id!r} store_id={self.store_id} grand_total_cents={self.grand_total_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "items": list(self.items or []),
            "subtotal_cents": self.subtotal_cents,
            "total_vat_cents": self.total_vat_cents,
            "discount_cents": self.discount_cents,
            "discount_type": self.discount_type,
            "discount_percentage": self.discount_percentage,
            "grand_total_cents": self.grand_total_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "due_amount_cents": self.due_amount_cents,
            "date": to_utc_z(self.date),
            "status": self.status,
            "payment_mode": self.payment_mode,
            "created_by": {"name": self.created_by_name, "role": self.created_by_role},
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    __tablename__ = "customers"
    __collection__ = Collection.CUSTOMERS
    __table_args__ = (
        db.Index("ix_customers_store_phone", "store_id", "phone"),
    )

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    total_due_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "total_due_cents": self.total_due_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Store(db.Model):
    """
    A tenant: an independent business account with isolated data.

    Every store document (products, invoices, ledger entries, counters, ...)
    carries store_id. No row ever references another store's rows.

    timezone is the IANA zone that defines the store's business date. Daily
    invoice counters roll over at local midnight.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
        }


class BusinessSettings(db.Model):
    """
    Singleton settings document per store.

    stock_management_enabled: None means "never configured" and is read as
    enabled. Fields the backend does not model live in extra.
    """
    __tablename__ = "business_settings"

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)

    name = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    currency = db.Column(db.String(8), nullable=True)
    print_format = db.Column(db.String(16), nullable=True)
    stock_management_enabled = db.Column(db.Boolean, nullable=True)
    extra = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    store = db.relationship("Store", backref=db.backref("settings", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "currency": self.currency,
            "print_format": self.print_format,
            "stock_management_enabled": self.stock_management_enabled is not False,
            "extra": dict(self.extra or {}),
            "updated_at": to_utc_z(self.updated_at),
        }


class StoreUser(db.Model):
    """
    Roster entry granting one staff member a role in one store.

    Once a store has any roster entries, request identity (X-Staff-Id or
    X-Staff-Email) is resolved here and the roster role wins over any
    declared role. A store with an empty roster still trusts the declared
    role so it can be bootstrapped.
    """
    __tablename__ = "store_users"
    __table_args__ = (
        db.Index("ix_store_users_store_email", "store_id", "email"),
    )

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(128), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(32), nullable=False)
    added_by = db.Column(db.String(255), nullable=True)
    added_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    is_email_verified = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<StoreUser store={self.store_id} id={self.id!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "added_by": self.added_by,
            "added_at": to_utc_z(self.added_at),
            "is_email_verified": self.is_email_verified,
        }

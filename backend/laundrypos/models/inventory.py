from __future__ import annotations

from ..constants import Collection
from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data, including the authoritative stock level.

    stock is only changed by the invoice writer (sales) or by the explicit
    stock adjustment path. Both write a matching StockHistory entry.

    version_id is the optimistic concurrency token: a stock decrement based
    on a stale read fails with StaleDataError instead of overwriting a
    concurrent sale.

    Barcodes are unique within a store when present (NULLs do not collide).
    """
    __tablename__ = "products"
    __collection__ = Collection.PRODUCTS
    __table_args__ = (
        db.UniqueConstraint("store_id", "barcode", name="uq_products_store_barcode"),
        db.Index("ix_products_store_name", "store_id", "name"),
    )

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(128), nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    purchase_price_cents = db.Column(db.Integer, nullable=True)
    # VAT rate in basis points (1500 = 15%)
    vat_bps = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    type = db.Column(db.String(16), nullable=False, default="product")

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} name={self.name!r} store_id={self.store_id} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "barcode": self.barcode,
            "category": self.category,
            "price_cents": self.price_cents,
            "purchase_price_cents": self.purchase_price_cents,
            "vat_bps": self.vat_bps,
            "stock": self.stock,
            "unit": self.unit,
            "type": self.type,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Category(db.Model):
    __tablename__ = "categories"
    __collection__ = Collection.CATEGORIES

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockHistory(db.Model):
    """
    Stock ledger entry: one immutable record per stock transition.

    INVARIANT: new_stock == previous_stock + quantity at the time of writing.
    quantity is the signed delta (negative for sales and removals).

    product_name, barcode and unit are snapshots taken when the entry was
    written; later product edits do not rewrite history.

    APPEND-ONLY: there is no update or delete path for these rows.
    """
    __tablename__ = "stock_history"
    __collection__ = Collection.STOCK_HISTORY
    __table_args__ = (
        db.Index("ix_stock_history_store_product_ts", "store_id", "product_id", "timestamp"),
        db.Index("ix_stock_history_store_ts", "store_id", "timestamp"),
    )

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    product_id = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    unit = db.Column(db.String(32), nullable=True)

    change_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(512), nullable=True)
    performed_by = db.Column(db.String(128), nullable=True)
    performed_by_role = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True, index=True)

    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<StockHistory id={self.id!r} product_id={self.product_id!r} "
            f"{self.change_type} {self.previous_stock}->{self.new_stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "barcode": self.barcode,
            "unit": self.unit,
            "change_type": self.change_type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "performed_by": self.performed_by,
            "performed_by_role": self.performed_by_role,
            "reference_id": self.reference_id,
            "timestamp": to_utc_z(self.timestamp),
        }


class PendingStockHistory(db.Model):
    """
    Ledger outbox row.

    Written in the same transaction as the stock change it describes, then
    delivered into stock_history and deleted. Rows that fail delivery stay
    here with attempts/last_error until a later drain succeeds.
    """
    __tablename__ = "pending_stock_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    payload = db.Column(db.JSON, nullable=False)

    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "payload": self.payload,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": to_utc_z(self.created_at),
        }

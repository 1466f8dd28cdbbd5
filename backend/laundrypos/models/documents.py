from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class DailyCounter(db.Model):
    """
    Per-store, per-business-date invoice sequence.

    WHY: invoice ids embed a daily sequence (INV-DDMMYYYY-NNN). last_number is
    the highest sequence issued for that date and never decreases during
    normal numbering; it is incremented with a single UPDATE statement so
    concurrent callers cannot read the same value.

    date is the store-local business date (YYYY-MM-DD); date_key is the
    DDMMYYYY form embedded in invoice ids.

    fixed_at / reset_at / reset_by record administrative repairs.
    """
    __tablename__ = "daily_counters"
    __table_args__ = (
        db.UniqueConstraint("store_id", "date", name="uq_daily_counters_store_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    date = db.Column(db.String(10), nullable=False)
    date_key = db.Column(db.String(8), nullable=False)
    last_number = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    fixed_at = db.Column(db.DateTime, nullable=True)
    reset_at = db.Column(db.DateTime, nullable=True)
    reset_by = db.Column(db.String(128), nullable=True)

    def __repr__(self) -> str:
        return f"<DailyCounter store_id={self.store_id} date={self.date} last_number={self.last_number}>"

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "date": self.date,
            "date_key": self.date_key,
            "last_number": self.last_number,
            "updated_at": to_utc_z(self.updated_at),
            "fixed_at": to_utc_z(self.fixed_at),
            "reset_at": to_utc_z(self.reset_at),
            "reset_by": self.reset_by,
        }

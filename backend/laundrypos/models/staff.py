from __future__ import annotations

from ..constants import Collection
from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Employee(db.Model):
    __tablename__ = "employees"
    __collection__ = Collection.EMPLOYEES

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    role = db.Column(db.String(32), nullable=False, default="salesman")
    monthly_salary_cents = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    joined_on = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "phone": self.phone,
            "role": self.role,
            "monthly_salary_cents": self.monthly_salary_cents,
            "is_active": self.is_active,
            "joined_on": self.joined_on.isoformat() if self.joined_on else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AttendanceRecord(db.Model):
    __tablename__ = "attendance"
    __collection__ = Collection.ATTENDANCE
    __table_args__ = (
        db.Index("ix_attendance_store_employee_date", "store_id", "employee_id", "date"),
    )

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    employee_id = db.Column(db.String(64), nullable=False)
    date = db.Column(db.Date, nullable=False)
    # present | absent | leave | half_day
    status = db.Column(db.String(16), nullable=False, default="present")
    check_in = db.Column(db.DateTime, nullable=True)
    check_out = db.Column(db.DateTime, nullable=True)
    note = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "employee_id": self.employee_id,
            "date": self.date.isoformat() if self.date else None,
            "status": self.status,
            "check_in": to_utc_z(self.check_in),
            "check_out": to_utc_z(self.check_out),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class SalaryRecord(db.Model):
    __tablename__ = "salaries"
    __collection__ = Collection.SALARIES

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    employee_id = db.Column(db.String(64), nullable=False, index=True)
    # Pay period, YYYY-MM
    month = db.Column(db.String(7), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    note = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "employee_id": self.employee_id,
            "month": self.month,
            "amount_cents": self.amount_cents,
            "paid_at": to_utc_z(self.paid_at),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }

# Overview: Per-store, per-business-date invoice numbering with a fallback cascade.

"""
Invoice Numbering

Format: INV-{DDMMYYYY}-{sequence}, sequence zero-padded to at least 3 digits
(INV-25122025-001, ..., INV-25122025-1000). The date is the store's local
business date.

Primary path: a single UPDATE ... SET last_number = last_number + 1 on the
store's DailyCounter row (inserting last_number = 1 for a new day). The
database serializes concurrent increments, so two callers never get the same
number from the counter.

Fallback cascade (numbering never fails an invoice outright):
1. Counter unavailable -> scan today's invoice ids, use max + 1
   (the counter is NOT repaired here; see fix_today_invoice_counter)
2. Scan unavailable -> INV-{DDMMYYYY}-{last 8 digits of epoch ms}-{3-digit random}
3. Store/business date cannot be determined -> INV-EMG-{epoch ms}

Only the fallbacks can collide, and only when the counter and the scan fail
at the same moment on two devices.
"""

from __future__ import annotations

import logging
import random
import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfoNotFoundError

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import DailyCounter, Invoice
from ..permissions import check_actor
from ..time_utils import business_today, date_key, epoch_millis, parse_date, utcnow
from ..validation import ValidationError
from .concurrency import run_with_retry
from .store_service import get_store


logger = logging.getLogger(__name__)


def format_invoice_id(key: str, number: int) -> str:
    return f"INV-{key}-{number:03d}"


def _store_business_date(store_id: int, now: Optional[datetime] = None) -> date:
    store = get_store(store_id)
    return business_today(store.timezone, now)


def _counter_increment_stmt(store_id: int, day: date):
    return (
        update(DailyCounter)
        .where(DailyCounter.store_id == store_id, DailyCounter.date == day.isoformat())
        .values(last_number=DailyCounter.last_number + 1, updated_at=utcnow())
    )


def _read_counter(store_id: int, day: date) -> int:
    return (
        db.session.query(DailyCounter.last_number)
        .filter_by(store_id=store_id, date=day.isoformat())
        .scalar()
    )


def _increment_counter(store_id: int, day: date) -> int:
    """Atomically bump the day's counter and return the new value."""
    stmt = _counter_increment_stmt(store_id, day)
    result = db.session.execute(stmt)
    if result.rowcount:
        number = _read_counter(store_id, day)
    else:
        db.session.add(DailyCounter(
            store_id=store_id,
            date=day.isoformat(),
            date_key=date_key(day),
            last_number=1,
        ))
        try:
            db.session.flush()
            number = 1
        except IntegrityError:
            # Another caller created today's row first
            db.session.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            number = _read_counter(store_id, day)
    db.session.commit()
    return number


def _highest_used_sequence(store_id: int, key: str) -> int:
    prefix = f"INV-{key}-"
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    ids = (
        db.session.query(Invoice.id)
        .filter(Invoice.store_id == store_id, Invoice.id.like(f"{prefix}%"))
        .all()
    )
    highest = 0
    for (invoice_id,) in ids:
        match = pattern.match(invoice_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def next_invoice_number(store_id: int, *, now: Optional[datetime] = None) -> str:
    """Issue the next invoice id for the store's current business date."""
    try:
        day = _store_business_date(store_id, now)
    except (SQLAlchemyError, ZoneInfoNotFoundError, ValueError):
        db.session.rollback()
        logger.exception("Could not determine business date for store %s; using emergency id", store_id)
        return f"INV-EMG-{epoch_millis()}"

    key = date_key(day)

    try:
        number = run_with_retry(lambda: _increment_counter(store_id, day))
        return format_invoice_id(key, number)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Daily counter failed for store %s (%s); scanning invoices", store_id, key)

    try:
        return format_invoice_id(key, _highest_used_sequence(store_id, key) + 1)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Invoice scan failed for store %s (%s); using timestamp id", store_id, key)

    return f"INV-{key}-{str(epoch_millis())[-8:]}-{random.randint(0, 999):03d}"


def get_date_invoice_counter(store_id: int, day) -> int:
    """Last number issued for a date (YYYY-MM-DD or date); 0 when none."""
    if isinstance(day, str):
        day = _parse_day(day)
    return _read_counter(store_id, day) or 0


def get_today_invoice_counter(store_id: int, *, now: Optional[datetime] = None) -> int:
    return get_date_invoice_counter(store_id, _store_business_date(store_id, now))


def get_all_daily_counters(store_id: int) -> list[dict]:
    """Every counter for the store, newest date first."""
    rows = (
        db.session.query(DailyCounter)
        .filter_by(store_id=store_id)
        .order_by(DailyCounter.date.desc())
        .all()
    )
    return [row.to_dict() for row in rows]


def _upsert_counter(store_id: int, day: date, **values) -> DailyCounter:
    counter = (
        db.session.query(DailyCounter)
        .filter_by(store_id=store_id, date=day.isoformat())
        .first()
    )
    if counter is None:
        counter = DailyCounter(store_id=store_id, date=day.isoformat(), date_key=date_key(day))
        db.session.add(counter)
    for k, v in values.items():
        setattr(counter, k, v)
    counter.updated_at = utcnow()
    db.session.commit()
    return counter


def fix_today_invoice_counter(store_id: int, *, now: Optional[datetime] = None, actor=None) -> int:
    """
    Repair tool: set today's counter to the highest sequence actually used
    by today's invoices. Returns the new counter value.
    """
    check_actor(actor, "MANAGE_COUNTERS")
    day = _store_business_date(store_id, now)
    highest = _highest_used_sequence(store_id, date_key(day))

    run_with_retry(lambda: _upsert_counter(store_id, day, last_number=highest, fixed_at=utcnow()))
    logger.info("Counter for store %s on %s fixed to %s", store_id, day.isoformat(), highest)
    return highest


def reset_date_counter(
    store_id: int,
    day,
    start_number: int = 0,
    reset_by: str = "system",
    *,
    actor=None,
) -> dict:
    """Administratively set a date's counter; the next number issued is start_number + 1."""
    check_actor(actor, "MANAGE_COUNTERS")
    get_store(store_id)
    if isinstance(day, str):
        day = _parse_day(day)
    if isinstance(start_number, bool) or not isinstance(start_number, int) or start_number < 0:
        raise ValidationError("start_number must be a non-negative integer")

    counter = run_with_retry(lambda: _upsert_counter(
        store_id, day, last_number=start_number, reset_at=utcnow(), reset_by=reset_by,
    ))
    logger.info("Counter for store %s on %s reset to %s by %s", store_id, day.isoformat(), start_number, reset_by)
    return counter.to_dict()


def _parse_day(value: str) -> date:
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value} (expected YYYY-MM-DD)")

"""
Time clock entries.
One row per clock-in/out pair; total_hours is the wall-clock delta set at clock-out.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.models import TimeClockEntry
from .errors import ValidationError
from .pay_period import PayPeriod
from .time_tally import as_utc, week_start


@dataclass(frozen=True)
class Geo:
    latitude: float
    longitude: float


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now else datetime.now(timezone.utc)


def open_entry_for(db: Session, user_id) -> Optional[TimeClockEntry]:
    return (
        db.query(TimeClockEntry)
        .filter(TimeClockEntry.user_id == user_id, TimeClockEntry.clock_out_time.is_(None))
        .order_by(TimeClockEntry.clock_in_time.desc())
        .first()
    )


def clock_in(
    db: Session,
    user_id,
    customer_id=None,
    ticket_id=None,
    geo: Optional[Geo] = None,
    now: Optional[datetime] = None,
) -> TimeClockEntry:
    if open_entry_for(db, user_id) is not None:
        raise ValidationError("Already clocked in")
    entry = TimeClockEntry(
        user_id=user_id,
        customer_id=customer_id,
        ticket_id=ticket_id,
        clock_in_time=_now(now),
        clock_in_latitude=geo.latitude if geo else None,
        clock_in_longitude=geo.longitude if geo else None,
    )
    db.add(entry)
    db.flush()
    return entry


def clock_out(entry: TimeClockEntry, geo: Optional[Geo] = None, now: Optional[datetime] = None) -> TimeClockEntry:
    if entry.clock_out_time is not None:
        raise ValidationError("Entry is already clocked out")
    out = _now(now)
    entry.clock_out_time = out
    entry.total_hours = round((out - as_utc(entry.clock_in_time)).total_seconds() / 3600.0, 4)
    if geo:
        entry.clock_out_latitude = geo.latitude
        entry.clock_out_longitude = geo.longitude
    return entry


def close_open_entry(db: Session, user_id, customer_id, now: Optional[datetime] = None) -> Optional[TimeClockEntry]:
    """Clock out the user's open entry for this customer, if any."""
    entry = (
        db.query(TimeClockEntry)
        .filter(
            TimeClockEntry.user_id == user_id,
            TimeClockEntry.customer_id == customer_id,
            TimeClockEntry.clock_out_time.is_(None),
        )
        .first()
    )
    if entry is None:
        return None
    return clock_out(entry, now=now)


def entries_between(db: Session, user_ids: List, start: datetime, end: datetime) -> List[TimeClockEntry]:
    if not user_ids:
        return []
    return (
        db.query(TimeClockEntry)
        .filter(
            TimeClockEntry.user_id.in_(user_ids),
            TimeClockEntry.clock_in_time >= start,
            TimeClockEntry.clock_in_time <= end,
        )
        .order_by(TimeClockEntry.clock_in_time.asc())
        .all()
    )


def period_entries(db: Session, user_ids: List, period: PayPeriod) -> List[TimeClockEntry]:
    start, end = period.range_bounds()
    return entries_between(db, user_ids, start, end)


def week_entries(db: Session, user_id, day: date) -> List[TimeClockEntry]:
    first = week_start(day)
    week = PayPeriod(start=first, end=first + timedelta(days=6))
    start, end = week.range_bounds()
    return entries_between(db, [user_id], start, end)

"""
Pay period calendar.
Biweekly periods anchored to a fixed reference date.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

import pytz

from ..config import settings
from .errors import ValidationError

PERIOD_DAYS = 14
PAY_DATE_OFFSET_DAYS = 6
FRIDAY = 4  # date.weekday()


def _reference(reference: Optional[date]) -> date:
    return reference or settings.pay_period_reference_date


def period_start_for(day: date, reference: Optional[date] = None) -> date:
    ref = _reference(reference)
    # Floor division keeps days before the reference on the same grid
    offset = (day - ref).days // PERIOD_DAYS
    return ref + timedelta(days=offset * PERIOD_DAYS)


def pay_date_for(end: date) -> date:
    """First Friday on or after end + 6 days."""
    candidate = end + timedelta(days=PAY_DATE_OFFSET_DAYS)
    return candidate + timedelta(days=(FRIDAY - candidate.weekday()) % 7)


@dataclass(frozen=True)
class PayPeriod:
    start: date
    end: date

    @property
    def pay_date(self) -> date:
        return pay_date_for(self.end)

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"

    def previous(self) -> "PayPeriod":
        return PayPeriod(self.start - timedelta(days=PERIOD_DAYS), self.end - timedelta(days=PERIOD_DAYS))

    def next(self) -> "PayPeriod":
        return PayPeriod(self.start + timedelta(days=PERIOD_DAYS), self.end + timedelta(days=PERIOD_DAYS))

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def range_bounds(self, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
        """
        UTC bounds for range queries.
        Start is local midnight on the first day, end is the last instant of the last day.
        """
        tz = pytz.timezone(tz_name or settings.tz_default)
        start_local = tz.localize(datetime.combine(self.start, time.min))
        end_local = tz.localize(datetime.combine(self.end, time.max))
        return start_local.astimezone(pytz.UTC), end_local.astimezone(pytz.UTC)

    def as_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "pay_date": self.pay_date.isoformat(),
            "label": self.label,
        }


def period_for(day: date, reference: Optional[date] = None) -> PayPeriod:
    start = period_start_for(day, reference)
    return PayPeriod(start=start, end=start + timedelta(days=PERIOD_DAYS - 1))


def today_local(now: Optional[datetime] = None) -> date:
    """Calendar day in the company timezone."""
    tz = pytz.timezone(settings.tz_default)
    if now is None:
        now = datetime.now(pytz.UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=pytz.UTC)
    return now.astimezone(tz).date()


def current_period(now: Optional[datetime] = None, reference: Optional[date] = None) -> PayPeriod:
    return period_for(today_local(now), reference)


def period_ending(end: date, reference: Optional[date] = None) -> PayPeriod:
    """Period whose last day is `end`; rejects dates off the calendar."""
    period = period_for(end, reference)
    if period.end != end:
        raise ValidationError(f"{end.isoformat()} is not a pay period end date")
    return period

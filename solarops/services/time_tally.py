"""
Hours tally for payroll.
Buckets clock entries by Sunday-start week and splits each week into regular and overtime.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

import pytz

from ..config import settings

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def week_start(day: date) -> date:
    # date.weekday(): Monday=0 ... Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def as_utc(ts: datetime) -> datetime:
    # Naive values come back from SQLite; they are stored as UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=pytz.UTC)
    return ts.astimezone(pytz.UTC)


def local_day(ts: datetime, tz_name: Optional[str] = None) -> date:
    tz = pytz.timezone(tz_name or settings.tz_default)
    return as_utc(ts).astimezone(tz).date()


@dataclass
class WeekHours:
    week_start: date
    hours: Decimal = ZERO
    regular: Decimal = ZERO
    overtime: Decimal = ZERO

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=6)

    def as_dict(self) -> dict:
        return {
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "hours": float(self.hours),
            "regular_hours": float(self.regular),
            "overtime_hours": float(self.overtime),
        }


@dataclass
class HoursTally:
    weeks: List[WeekHours] = field(default_factory=list)

    @property
    def total_hours(self) -> Decimal:
        return sum((w.hours for w in self.weeks), ZERO)

    @property
    def regular_hours(self) -> Decimal:
        return sum((w.regular for w in self.weeks), ZERO)

    @property
    def overtime_hours(self) -> Decimal:
        return sum((w.overtime for w in self.weeks), ZERO)


def split_week(hours: Decimal, threshold: Optional[Decimal] = None) -> Tuple[Decimal, Decimal]:
    cap = to_decimal(settings.overtime_threshold_hours if threshold is None else threshold)
    regular = min(hours, cap)
    overtime = max(ZERO, hours - cap)
    return regular, overtime


def tally_hours(entries: Iterable, tz_name: Optional[str] = None, threshold=None) -> HoursTally:
    """
    entries: objects with clock_in_time and total_hours.
    Entries still clocked in (no total_hours) are skipped.
    """
    buckets = {}
    for entry in entries:
        if entry.total_hours is None or entry.clock_in_time is None:
            continue
        start = week_start(local_day(entry.clock_in_time, tz_name))
        buckets[start] = buckets.get(start, ZERO) + to_decimal(entry.total_hours)

    weeks = []
    for start in sorted(buckets):
        hours = buckets[start]
        regular, overtime = split_week(hours, threshold)
        weeks.append(WeekHours(week_start=start, hours=hours, regular=regular, overtime=overtime))
    return HoursTally(weeks=weeks)


def hourly_pay(tally: HoursTally, rate, multiplier=None) -> Tuple[Decimal, Decimal]:
    """Returns (regular_pay, overtime_pay) rounded to cents."""
    rate = to_decimal(rate)
    mult = to_decimal(settings.overtime_multiplier if multiplier is None else multiplier)
    regular_pay = money(tally.regular_hours * rate)
    overtime_pay = money(tally.overtime_hours * rate * mult)
    return regular_pay, overtime_pay

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytz

from solarops.services.time_tally import (
    HoursTally,
    WeekHours,
    as_utc,
    hourly_pay,
    money,
    split_week,
    tally_hours,
    week_start,
)

LA = "America/Los_Angeles"


def entry(clock_in, hours):
    return SimpleNamespace(clock_in_time=clock_in, total_hours=hours)


def utc(*args):
    return datetime(*args, tzinfo=pytz.UTC)


def test_week_starts_on_sunday():
    assert week_start(date(2025, 1, 5)) == date(2025, 1, 5)  # Sunday
    assert week_start(date(2025, 1, 11)) == date(2025, 1, 5)  # Saturday
    assert week_start(date(2025, 1, 6)) == date(2025, 1, 5)


def test_forty_five_hours_at_twenty_five():
    tally = HoursTally(weeks=[WeekHours(date(2025, 1, 5), Decimal("45"), Decimal("40"), Decimal("5"))])
    regular, overtime = hourly_pay(tally, 25, 1.5)
    assert regular == Decimal("1000.00")
    assert overtime == Decimal("187.50")


def test_split_week_invariants():
    for hours in ("0", "12.5", "40", "40.01", "61"):
        h = Decimal(hours)
        regular, overtime = split_week(h, 40)
        assert regular + overtime == h
        assert regular <= 40
        assert overtime >= 0
    assert split_week(Decimal("45"), 40) == (Decimal("40"), Decimal("5"))


def test_weeks_are_split_independently():
    entries = [
        # Week of Jan 5: 3 x 15h = 45h
        entry(utc(2025, 1, 6, 16), 15),
        entry(utc(2025, 1, 7, 16), 15),
        entry(utc(2025, 1, 8, 16), 15),
        # Week of Jan 12: 35h
        entry(utc(2025, 1, 13, 16), 35),
    ]
    tally = tally_hours(entries, LA, 40)
    assert [w.week_start for w in tally.weeks] == [date(2025, 1, 5), date(2025, 1, 12)]
    assert tally.weeks[0].overtime == Decimal("5")
    assert tally.weeks[1].overtime == Decimal("0")
    assert tally.total_hours == Decimal("80")
    assert tally.regular_hours == Decimal("75")
    assert tally.overtime_hours == Decimal("5")
    # 80h spread over two weeks is not 40h overtime
    assert tally.regular_hours + tally.overtime_hours == tally.total_hours


def test_entries_bucket_by_local_clock_in_day():
    # Saturday 22:00 in Los Angeles is Sunday in UTC
    late_saturday = utc(2025, 1, 12, 6)
    tally = tally_hours([entry(late_saturday, 8)], LA, 40)
    assert tally.weeks[0].week_start == date(2025, 1, 5)


def test_open_entries_are_skipped():
    tally = tally_hours([entry(utc(2025, 1, 6, 16), None), entry(utc(2025, 1, 6, 16), 4)], LA, 40)
    assert tally.total_hours == Decimal("4")


def test_naive_timestamps_are_utc():
    naive = datetime(2025, 1, 6, 16)
    assert as_utc(naive) == utc(2025, 1, 6, 16)


def test_fractional_hours_round_half_up_to_cents():
    tally = tally_hours([entry(utc(2025, 1, 6, 16), 1.0005)], LA, 40)
    regular, overtime = hourly_pay(tally, 10, 1.5)
    assert regular == Decimal("10.01")
    assert overtime == Decimal("0.00")
    assert money(Decimal("0.125")) == Decimal("0.13")

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from solarops.models.models import TimeClockEntry
from solarops.services.pay_period import PayPeriod
from solarops.services.payroll import awaiting_approval, employee_payroll, payroll_for_period

PERIOD = PayPeriod(date(2024, 12, 28), date(2025, 1, 10))


def clocked(db, user, start, hours):
    entry = TimeClockEntry(
        user_id=user.id,
        clock_in_time=start,
        clock_out_time=start + timedelta(hours=hours),
        total_hours=hours,
    )
    db.add(entry)
    db.commit()
    return entry


@pytest.fixture
def installer(make_user):
    return make_user(
        full_name="Riley Installer",
        role_category="field_tech",
        hourly_rate=Decimal("25"),
        per_watt_rate=Decimal("0.05"),
        battery_pay_rates={"2": 150, "4+": 300},
    )


def test_hourly_overtime_and_piece_rate(db, installer, make_customer, make_ticket):
    # Week of Sun Jan 5: 45 hours
    for day in range(6, 9):
        clocked(db, installer, datetime(2025, 1, day, 16, tzinfo=timezone.utc), 15)
    battery_home = make_customer(system_size_kw=Decimal("8"), battery_quantity=2)
    plain_home = make_customer(full_name="Drew Park", system_size_kw=Decimal("6"))
    make_ticket(
        battery_home,
        closed_at=datetime(2025, 1, 7, 22, tzinfo=timezone.utc),
        pv_installer_id=installer.id,
    )
    make_ticket(
        plain_home,
        closed_at=datetime(2025, 1, 8, 22, tzinfo=timezone.utc),
        pv_installer_id=installer.id,
    )
    # Closed after the period ends
    make_ticket(
        plain_home,
        closed_at=datetime(2025, 1, 12, 22, tzinfo=timezone.utc),
        pv_installer_id=installer.id,
    )

    summary = employee_payroll(db, installer, PERIOD)
    assert summary.hours.total_hours == Decimal("45")
    assert summary.regular_pay == Decimal("1000.00")
    assert summary.overtime_pay == Decimal("187.50")
    assert summary.piece_rate.battery_pay == Decimal("150.00")
    assert summary.piece_rate.per_watt_pay == Decimal("300.00")
    assert summary.total_pay == Decimal("1637.50")

    data = summary.as_dict()
    assert data["installation_count"] == 2
    assert data["total_batteries"] == 2
    assert data["total_watts"] == 6000.0


def test_salaried_employee_gets_no_hourly_pay(db, make_user):
    salaried = make_user(hourly_rate=Decimal("40"), is_salary=True)
    clocked(db, salaried, datetime(2025, 1, 6, 16, tzinfo=timezone.utc), 10)
    summary = employee_payroll(db, salaried, PERIOD)
    assert summary.hours.total_hours == Decimal("10")
    assert summary.regular_pay == Decimal("0")


def test_scheduled_installs_are_estimates_only(db, installer, make_customer, make_ticket):
    home = make_customer(system_size_kw=Decimal("10"))
    ticket = make_ticket(home, scheduled_date=date(2025, 1, 9))
    ticket.technicians = [installer]
    db.commit()

    summary = employee_payroll(db, installer, PERIOD)
    assert summary.piece_rate.total == Decimal("0")
    assert summary.piece_rate.estimated_total == Decimal("500.00")


def test_inactive_jobs_are_excluded(db, installer, make_customer, make_ticket):
    home = make_customer(is_active=False)
    make_ticket(home, closed_at=datetime(2025, 1, 7, 22, tzinfo=timezone.utc), pv_installer_id=installer.id)
    assert employee_payroll(db, installer, PERIOD).piece_rate.lines == []


def test_commissions_count_in_approved_period(db, make_user, make_customer, make_commission):
    rep = make_user(full_name="Quinn Rep", role_category="sales_rep")
    manager = make_user(full_name="Harper Manager", role_category="sales_manager")
    home = make_customer()
    make_commission(
        home,
        sales_rep_id=rep.id,
        sales_manager_id=manager.id,
        m1_payment_status="paid",
        m1_payroll_period_end=PERIOD.end,
        m2_payment_status="eligible",
        sales_manager_override_amount=Decimal("300"),
        manager_override_payment_status="paid",
        manager_override_payroll_period_end=PERIOD.end,
    )

    rep_summary = employee_payroll(db, rep, PERIOD)
    assert rep_summary.commissions.total == Decimal("1000.00")
    assert rep_summary.awaiting_approval[0]["milestone"] == "m2"

    manager_summary = employee_payroll(db, manager, PERIOD)
    assert manager_summary.commissions.total == Decimal("300.00")
    assert awaiting_approval(db, manager.id) == []

    # Nothing counts in the next period
    assert employee_payroll(db, rep, PERIOD.next()).commissions.total == Decimal("0")


def test_period_payroll_sorted_by_total(db, installer, make_user):
    other = make_user(full_name="Alex Helper", hourly_rate=Decimal("20"))
    clocked(db, installer, datetime(2025, 1, 6, 16, tzinfo=timezone.utc), 10)
    clocked(db, other, datetime(2025, 1, 6, 16, tzinfo=timezone.utc), 8)
    summaries = payroll_for_period(db, PERIOD)
    totals = [s.total_pay for s in summaries]
    assert totals == sorted(totals, reverse=True)
    assert summaries[0].employee.id == installer.id

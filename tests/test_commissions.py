import uuid
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from solarops.services.commissions import (
    MISSING_REDLINE_MESSAGE,
    Milestone,
    PaymentStatus,
    approve_payment,
    commission_pay_for,
    counts_toward,
    mark_eligible,
    milestone_status,
    override_amount,
    override_shares,
    quote_override,
    rep_commission,
    team_overrides,
)
from solarops.services.errors import FeatureUnavailable, InvalidTransition, ValidationError
from solarops.services.pay_period import PayPeriod

PERIOD = PayPeriod(date(2024, 12, 28), date(2025, 1, 10))
REP = uuid.uuid4()
MANAGER = uuid.uuid4()


def commission(**kwargs):
    data = dict(
        id=uuid.uuid4(),
        customer_id=uuid.uuid4(),
        sales_rep_id=REP,
        sales_manager_id=MANAGER,
        total_commission=Decimal("3000"),
        m1_payment_amount=Decimal("1000"),
        m1_payment_status="pending",
        m1_eligibility_date=None,
        m1_paid_date=None,
        m1_payroll_period_end=None,
        m2_payment_amount=Decimal("2000"),
        m2_payment_status="pending",
        m2_eligibility_date=None,
        m2_paid_date=None,
        m2_payroll_period_end=None,
        sales_manager_override_amount=None,
        manager_override_payment_status="pending",
        manager_override_eligibility_date=None,
        manager_override_paid_date=None,
        manager_override_payroll_period_end=None,
    )
    data.update(kwargs)
    return SimpleNamespace(**data)


def test_milestones_move_pending_eligible_paid():
    c = commission()
    mark_eligible(c, Milestone.M1, date(2025, 1, 2))
    assert milestone_status(c, Milestone.M1) == PaymentStatus.ELIGIBLE
    assert c.m1_eligibility_date == date(2025, 1, 2)

    approve_payment(c, Milestone.M1, PERIOD, date(2025, 1, 9))
    assert c.m1_payment_status == "paid"
    assert c.m1_paid_date == date(2025, 1, 9)
    assert c.m1_payroll_period_end == PERIOD.end
    # M2 is untouched
    assert c.m2_payment_status == "pending"


def test_approve_requires_eligible():
    c = commission()
    with pytest.raises(InvalidTransition):
        approve_payment(c, Milestone.M1, PERIOD, date(2025, 1, 9))
    c.m1_payment_status = "paid"
    with pytest.raises(InvalidTransition):
        approve_payment(c, Milestone.M1, PERIOD, date(2025, 1, 9))


def test_mark_eligible_only_from_pending():
    c = commission(m2_payment_status="eligible")
    with pytest.raises(InvalidTransition):
        mark_eligible(c, Milestone.M2, date(2025, 1, 2))


def test_override_milestone_needs_an_amount():
    with pytest.raises(ValidationError):
        mark_eligible(commission(), Milestone.MANAGER_OVERRIDE, date(2025, 1, 2))


def test_counts_toward_only_paid_in_same_period():
    assert counts_toward("paid", PERIOD.end, PERIOD)
    assert not counts_toward("eligible", PERIOD.end, PERIOD)
    assert not counts_toward("paid", PERIOD.previous().end, PERIOD)
    assert not counts_toward("paid", None, PERIOD)


def test_rep_pay_sums_milestones_paid_this_period():
    paid_here = commission(m1_payment_status="paid", m1_payroll_period_end=PERIOD.end)
    paid_earlier = commission(
        m1_payment_status="paid",
        m1_payroll_period_end=PERIOD.previous().end,
        m2_payment_status="paid",
        m2_payroll_period_end=PERIOD.end,
    )
    eligible_only = commission(m1_payment_status="eligible")
    pay = commission_pay_for(REP, [paid_here, paid_earlier, eligible_only], PERIOD)
    assert [l.label for l in pay.lines] == ["M1 Payment", "M2 Payment"]
    assert pay.total == Decimal("3000.00")


def test_manager_override_split_by_milestone_weight():
    c = commission(
        sales_manager_override_amount=Decimal("600"),
        manager_override_payment_status="paid",
        manager_override_payroll_period_end=PERIOD.end,
    )
    assert override_shares(c) == [
        ("Manager Override (M1 share)", Decimal("200.00")),
        ("Manager Override (M2 share)", Decimal("400.00")),
    ]
    pay = commission_pay_for(MANAGER, [c], PERIOD)
    assert pay.total == Decimal("600.00")
    # The rep is not paid the override
    assert commission_pay_for(REP, [c], PERIOD).total == Decimal("0")


def test_override_shares_add_up_to_odd_cent_override():
    c = commission(
        total_commission=Decimal("100"),
        m1_payment_amount=Decimal("50"),
        m2_payment_amount=Decimal("50"),
        sales_manager_override_amount=Decimal("100.01"),
        manager_override_payment_status="paid",
        manager_override_payroll_period_end=PERIOD.end,
    )
    assert override_shares(c) == [
        ("Manager Override (M1 share)", Decimal("50.01")),
        ("Manager Override (M2 share)", Decimal("50.00")),
    ]
    assert commission_pay_for(MANAGER, [c], PERIOD).total == Decimal("100.01")


def test_override_without_total_is_one_line():
    c = commission(total_commission=Decimal("0"), sales_manager_override_amount=Decimal("250"))
    assert override_shares(c) == [("Manager Override", Decimal("250.00"))]


def test_override_amount_uses_watts():
    # (3.10 - 2.90) per watt over 8 kW
    assert override_amount(Decimal("3.10"), Decimal("2.90"), Decimal("8")) == Decimal("1600.00")


def test_negative_override_is_flagged_not_rejected():
    manager = SimpleNamespace(ppw_redline=Decimal("3.00"))
    quote = quote_override(manager, Decimal("2.80"), Decimal("5"))
    assert quote.amount == Decimal("-1000.00")
    assert quote.negative
    assert quote.as_dict()["negative"] is True


def test_missing_manager_redline_disables_override():
    with pytest.raises(FeatureUnavailable) as exc:
        quote_override(SimpleNamespace(ppw_redline=None), Decimal("2.80"), Decimal("5"))
    assert exc.value.message == MISSING_REDLINE_MESSAGE
    with pytest.raises(FeatureUnavailable):
        quote_override(None, Decimal("2.80"), Decimal("5"))


def test_rep_commission_is_price_above_redline():
    assert rep_commission(Decimal("30000"), Decimal("2.50"), Decimal("10")) == Decimal("5000.00")
    assert rep_commission(None, Decimal("2.50"), Decimal("10")) is None


def test_team_overrides_per_rep():
    manager = SimpleNamespace(ppw_redline=Decimal("2.50"))
    rep_a = SimpleNamespace(id=uuid.uuid4(), full_name="A", ppw_redline=Decimal("2.70"))
    rep_b = SimpleNamespace(id=uuid.uuid4(), full_name="B", ppw_redline=Decimal("2.40"))
    rep_c = SimpleNamespace(id=uuid.uuid4(), full_name="C", ppw_redline=None)
    customers = [
        SimpleNamespace(sales_rep_id=rep_a.id, system_size_kw=Decimal("5")),
        SimpleNamespace(sales_rep_id=rep_a.id, system_size_kw=Decimal("7")),
        SimpleNamespace(sales_rep_id=rep_b.id, system_size_kw=Decimal("10")),
    ]
    rows = {r.rep_name: r for r in team_overrides(manager, [rep_a, rep_b, rep_c], customers)}
    assert set(rows) == {"A", "B"}
    assert rows["A"].total_customers == 2
    assert rows["A"].total_watts == Decimal("12000")
    assert rows["A"].amount == Decimal("2400.00")
    assert rows["B"].amount == Decimal("-1000.00")
    assert rows["B"].negative

"""
Sales commission engine.
Two milestone payments (M1, M2) per sale plus an optional manager override,
each moving pending -> eligible -> paid independently.
"""
import enum
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from .errors import FeatureUnavailable, InvalidTransition, ValidationError
from .pay_period import PayPeriod
from .piece_rate import kw_to_watts
from .time_tally import ZERO, money, to_decimal

MISSING_REDLINE_MESSAGE = "Manager PPW redline not configured. Please contact your administrator."


class Milestone(str, enum.Enum):
    M1 = "m1"
    M2 = "m2"
    MANAGER_OVERRIDE = "manager_override"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    ELIGIBLE = "eligible"
    PAID = "paid"


# Column names on SalesCommission for each milestone
_FIELDS = {
    Milestone.M1: {
        "amount": "m1_payment_amount",
        "status": "m1_payment_status",
        "eligibility_date": "m1_eligibility_date",
        "paid_date": "m1_paid_date",
        "period_end": "m1_payroll_period_end",
    },
    Milestone.M2: {
        "amount": "m2_payment_amount",
        "status": "m2_payment_status",
        "eligibility_date": "m2_eligibility_date",
        "paid_date": "m2_paid_date",
        "period_end": "m2_payroll_period_end",
    },
    Milestone.MANAGER_OVERRIDE: {
        "amount": "sales_manager_override_amount",
        "status": "manager_override_payment_status",
        "eligibility_date": "manager_override_eligibility_date",
        "paid_date": "manager_override_paid_date",
        "period_end": "manager_override_payroll_period_end",
    },
}


def _get(commission, milestone: Milestone, key: str):
    return getattr(commission, _FIELDS[milestone][key])


def _set(commission, milestone: Milestone, key: str, value) -> None:
    setattr(commission, _FIELDS[milestone][key], value)


def milestone_status(commission, milestone: Milestone) -> PaymentStatus:
    return PaymentStatus(_get(commission, milestone, "status") or PaymentStatus.PENDING.value)


def mark_eligible(commission, milestone: Milestone, on: date) -> None:
    """pending -> eligible. Invoked by admin tooling, never automatically."""
    milestone = Milestone(milestone)
    if milestone == Milestone.MANAGER_OVERRIDE and _get(commission, milestone, "amount") is None:
        raise ValidationError("No manager override on this commission")
    current = milestone_status(commission, milestone)
    if current != PaymentStatus.PENDING:
        raise InvalidTransition(f"{milestone.value} is {current.value}, expected pending")
    _set(commission, milestone, "status", PaymentStatus.ELIGIBLE.value)
    _set(commission, milestone, "eligibility_date", on)


def approve_payment(commission, milestone: Milestone, period: PayPeriod, today: date) -> None:
    """
    eligible -> paid.
    Stamps the paid date and assigns the payment to the period being viewed.
    """
    milestone = Milestone(milestone)
    current = milestone_status(commission, milestone)
    if current != PaymentStatus.ELIGIBLE:
        raise InvalidTransition(f"{milestone.value} is {current.value}, expected eligible")
    _set(commission, milestone, "status", PaymentStatus.PAID.value)
    _set(commission, milestone, "paid_date", today)
    _set(commission, milestone, "period_end", period.end)


def counts_toward(status: Optional[str], period_end: Optional[date], period: PayPeriod) -> bool:
    return status == PaymentStatus.PAID.value and period_end is not None and period_end == period.end


@dataclass
class CommissionLine:
    commission_id: Optional[uuid.UUID]
    customer_id: Optional[uuid.UUID]
    milestone: Milestone
    label: str
    amount: Decimal

    def as_dict(self) -> dict:
        return {
            "commission_id": str(self.commission_id) if self.commission_id else None,
            "customer_id": str(self.customer_id) if self.customer_id else None,
            "milestone": self.milestone.value,
            "label": self.label,
            "amount": float(self.amount),
        }


@dataclass
class CommissionPay:
    lines: List[CommissionLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((l.amount for l in self.lines), ZERO)


def _counted(commission, milestone: Milestone, period: PayPeriod) -> bool:
    return counts_toward(
        _get(commission, milestone, "status"),
        _get(commission, milestone, "period_end"),
        period,
    )


def override_shares(commission) -> List[tuple]:
    """Split the manager override into M1/M2 shares by each milestone's weight in the total."""
    override = to_decimal(commission.sales_manager_override_amount)
    total = to_decimal(commission.total_commission)
    if total == 0:
        return [("Manager Override", money(override))]
    m1 = to_decimal(commission.m1_payment_amount)
    # M2 takes the remainder so the shares add up to the override
    m1_share = money(override * m1 / total)
    return [
        ("Manager Override (M1 share)", m1_share),
        ("Manager Override (M2 share)", money(override) - m1_share),
    ]


def commission_pay_for(employee_id, commissions: Iterable, period: PayPeriod) -> CommissionPay:
    pay = CommissionPay()
    for c in commissions:
        if c.sales_rep_id is not None and c.sales_rep_id == employee_id:
            for milestone, label in ((Milestone.M1, "M1 Payment"), (Milestone.M2, "M2 Payment")):
                amount = _get(c, milestone, "amount")
                if amount and _counted(c, milestone, period):
                    pay.lines.append(CommissionLine(c.id, c.customer_id, milestone, label, money(to_decimal(amount))))
        if (
            c.sales_manager_id is not None
            and c.sales_manager_id == employee_id
            and c.sales_manager_override_amount
            and _counted(c, Milestone.MANAGER_OVERRIDE, period)
        ):
            for label, amount in override_shares(c):
                pay.lines.append(CommissionLine(c.id, c.customer_id, Milestone.MANAGER_OVERRIDE, label, amount))
    return pay


# Override math

@dataclass(frozen=True)
class OverrideQuote:
    per_watt: Decimal
    watts: Decimal
    amount: Decimal

    @property
    def negative(self) -> bool:
        return self.amount < 0

    def as_dict(self) -> dict:
        return {
            "override_per_watt": float(self.per_watt),
            "watts": float(self.watts),
            "amount": float(self.amount),
            "negative": self.negative,
        }


def require_manager_redline(manager) -> Decimal:
    redline = getattr(manager, "ppw_redline", None) if manager is not None else None
    if not redline:
        raise FeatureUnavailable(MISSING_REDLINE_MESSAGE)
    return to_decimal(redline)


def override_per_watt(rep_ppw, manager_ppw) -> Decimal:
    return to_decimal(rep_ppw) - to_decimal(manager_ppw)


def override_amount(rep_ppw, manager_ppw, system_size_kw) -> Decimal:
    return money(override_per_watt(rep_ppw, manager_ppw) * kw_to_watts(system_size_kw))


def quote_override(manager, rep_ppw, system_size_kw) -> OverrideQuote:
    """Negative overrides are returned and flagged, not rejected."""
    manager_ppw = require_manager_redline(manager)
    per_watt = override_per_watt(rep_ppw, manager_ppw)
    watts = kw_to_watts(system_size_kw)
    return OverrideQuote(per_watt=per_watt, watts=watts, amount=money(per_watt * watts))


def rep_commission(contract_price, rep_ppw, system_size_kw) -> Optional[Decimal]:
    """Contract price above the rep's redline for the system size."""
    if contract_price is None or not rep_ppw or system_size_kw is None:
        return None
    return money(to_decimal(contract_price) - to_decimal(rep_ppw) * kw_to_watts(system_size_kw))


@dataclass
class TeamOverride:
    rep_id: uuid.UUID
    rep_name: str
    rep_ppw: Decimal
    per_watt: Decimal
    total_customers: int
    total_watts: Decimal
    amount: Decimal

    @property
    def negative(self) -> bool:
        return self.per_watt < 0

    def as_dict(self) -> dict:
        return {
            "rep_id": str(self.rep_id),
            "rep_name": self.rep_name,
            "rep_ppw": float(self.rep_ppw),
            "override_per_watt": float(self.per_watt),
            "total_customers": self.total_customers,
            "total_watts": float(self.total_watts),
            "total_override_amount": float(self.amount),
            "negative": self.negative,
        }


def team_overrides(manager, reps: Iterable, customers: Iterable) -> List[TeamOverride]:
    """
    Per-rep override across every customer the rep sold.
    Reps without a redline are left out.
    """
    manager_ppw = require_manager_redline(manager)
    customers = list(customers)
    result = []
    for rep in reps:
        if not rep.ppw_redline or to_decimal(rep.ppw_redline) <= 0:
            continue
        sold = [c for c in customers if c.sales_rep_id == rep.id]
        watts = sum((kw_to_watts(c.system_size_kw) for c in sold), ZERO)
        per_watt = override_per_watt(rep.ppw_redline, manager_ppw)
        result.append(
            TeamOverride(
                rep_id=rep.id,
                rep_name=rep.full_name,
                rep_ppw=to_decimal(rep.ppw_redline),
                per_watt=per_watt,
                total_customers=len(sold),
                total_watts=watts,
                amount=money(per_watt * watts),
            )
        )
    return result

"""
Payroll for one pay period.
Combines hours, piece-rate installs and paid commissions per employee.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models.models import AppUser, Job, SalesCommission, SchedulingTicket, ticket_technicians
from .commissions import CommissionPay, Milestone, PaymentStatus, commission_pay_for, milestone_status
from .pay_period import PayPeriod
from .piece_rate import InstallJob, PieceRatePay, PieceRates, piece_rate_pay
from .time_clock import period_entries
from .time_tally import ZERO, HoursTally, hourly_pay, tally_hours, to_decimal


@dataclass
class PayrollSummary:
    employee: AppUser
    period: PayPeriod
    hours: HoursTally
    regular_pay: Decimal
    overtime_pay: Decimal
    piece_rate: PieceRatePay
    commissions: CommissionPay
    awaiting_approval: List[dict] = field(default_factory=list)

    @property
    def total_pay(self) -> Decimal:
        return self.regular_pay + self.overtime_pay + self.piece_rate.total + self.commissions.total

    def as_dict(self) -> dict:
        e = self.employee
        return {
            "employee": {
                "id": str(e.id),
                "full_name": e.full_name,
                "custom_id": e.custom_id,
                "role_category": e.role_category,
                "hourly_rate": float(e.hourly_rate) if e.hourly_rate is not None else None,
                "is_salary": bool(e.is_salary),
            },
            "period": self.period.as_dict(),
            "total_hours": float(self.hours.total_hours),
            "regular_hours": float(self.hours.regular_hours),
            "overtime_hours": float(self.hours.overtime_hours),
            "regular_pay": float(self.regular_pay),
            "overtime_pay": float(self.overtime_pay),
            "battery_pay": float(self.piece_rate.battery_pay),
            "per_watt_pay": float(self.piece_rate.per_watt_pay),
            "commission_pay": float(self.commissions.total),
            "total_pay": float(self.total_pay),
            "installation_count": len(self.piece_rate.lines),
            "total_watts": float(self.piece_rate.total_watts),
            "total_batteries": self.piece_rate.total_batteries,
            "weekly_breakdown": [w.as_dict() for w in self.hours.weeks],
            "installations": [l.as_dict() for l in self.piece_rate.lines],
            "estimated_installations": [l.as_dict() for l in self.piece_rate.estimates],
            "estimated_piece_rate_pay": float(self.piece_rate.estimated_total),
            "commission_lines": [l.as_dict() for l in self.commissions.lines],
            "awaiting_approval": self.awaiting_approval,
        }


def _install_job(ticket: SchedulingTicket) -> InstallJob:
    customer = ticket.customer
    return InstallJob(
        ticket_id=ticket.id,
        customer_name=customer.full_name if customer else None,
        system_size_kw=customer.system_size_kw if customer else None,
        battery_quantity=customer.battery_quantity if customer else 0,
        closed_at=ticket.closed_at,
        scheduled_date=ticket.scheduled_date,
    )


def closed_installs(db: Session, period: PayPeriod, installer_ids: List) -> List[SchedulingTicket]:
    start, end = period.range_bounds()
    return (
        db.query(SchedulingTicket)
        .join(Job, SchedulingTicket.customer_id == Job.id)
        .filter(
            SchedulingTicket.ticket_type == "installation",
            SchedulingTicket.closed_at.isnot(None),
            SchedulingTicket.closed_at >= start,
            SchedulingTicket.closed_at <= end,
            SchedulingTicket.pv_installer_id.in_(installer_ids),
            Job.is_active.is_(True),
        )
        .all()
    )


def scheduled_installs(db: Session, period: PayPeriod, user_id) -> List[SchedulingTicket]:
    """Installs in the period the employee is assigned to that have not been closed yet."""
    return (
        db.query(SchedulingTicket)
        .join(Job, SchedulingTicket.customer_id == Job.id)
        .outerjoin(ticket_technicians, ticket_technicians.c.ticket_id == SchedulingTicket.id)
        .filter(
            SchedulingTicket.ticket_type == "installation",
            SchedulingTicket.closed_at.is_(None),
            SchedulingTicket.scheduled_date >= period.start,
            SchedulingTicket.scheduled_date <= period.end,
            or_(ticket_technicians.c.user_id == user_id, SchedulingTicket.pv_installer_id == user_id),
            Job.is_active.is_(True),
        )
        .distinct()
        .all()
    )


def period_commissions(db: Session, period: PayPeriod, user_ids: Optional[List] = None) -> List[SalesCommission]:
    query = (
        db.query(SalesCommission)
        .join(Job, SalesCommission.customer_id == Job.id)
        .filter(
            Job.is_active.is_(True),
            or_(
                SalesCommission.m1_payroll_period_end == period.end,
                SalesCommission.m2_payroll_period_end == period.end,
                SalesCommission.manager_override_payroll_period_end == period.end,
            ),
        )
    )
    if user_ids is not None:
        query = query.filter(
            or_(SalesCommission.sales_rep_id.in_(user_ids), SalesCommission.sales_manager_id.in_(user_ids))
        )
    return query.all()


def awaiting_approval(db: Session, employee_id) -> List[dict]:
    """Eligible milestones for this employee that an approver has not paid yet."""
    rows = (
        db.query(SalesCommission)
        .join(Job, SalesCommission.customer_id == Job.id)
        .filter(
            Job.is_active.is_(True),
            or_(SalesCommission.sales_rep_id == employee_id, SalesCommission.sales_manager_id == employee_id),
        )
        .all()
    )
    result = []
    for c in rows:
        milestones = []
        if c.sales_rep_id == employee_id:
            milestones += [Milestone.M1, Milestone.M2]
        if c.sales_manager_id == employee_id and c.sales_manager_override_amount is not None:
            milestones.append(Milestone.MANAGER_OVERRIDE)
        for m in milestones:
            if milestone_status(c, m) == PaymentStatus.ELIGIBLE:
                result.append({"commission_id": str(c.id), "customer_id": str(c.customer_id), "milestone": m.value})
    return result


def _summarize(
    employee: AppUser,
    period: PayPeriod,
    entries: List,
    installs: List[SchedulingTicket],
    pending: List[SchedulingTicket],
    commissions: List[SalesCommission],
    approvals: List[dict],
) -> PayrollSummary:
    hours = tally_hours(entries)
    if employee.is_salary or not employee.hourly_rate:
        regular_pay, overtime_pay = ZERO, ZERO
    else:
        regular_pay, overtime_pay = hourly_pay(hours, to_decimal(employee.hourly_rate))
    rates = PieceRates.from_employee(employee)
    return PayrollSummary(
        employee=employee,
        period=period,
        hours=hours,
        regular_pay=regular_pay,
        overtime_pay=overtime_pay,
        piece_rate=piece_rate_pay([_install_job(t) for t in installs], rates, [_install_job(t) for t in pending]),
        commissions=commission_pay_for(employee.id, commissions, period),
        awaiting_approval=approvals,
    )


def employee_payroll(db: Session, employee: AppUser, period: PayPeriod) -> PayrollSummary:
    return _summarize(
        employee,
        period,
        period_entries(db, [employee.id], period),
        closed_installs(db, period, [employee.id]),
        scheduled_installs(db, period, employee.id),
        period_commissions(db, period, [employee.id]),
        awaiting_approval(db, employee.id),
    )


def payroll_for_period(db: Session, period: PayPeriod) -> List[PayrollSummary]:
    """Every employee, highest total pay first."""
    employees = db.query(AppUser).order_by(AppUser.full_name).all()
    ids = [e.id for e in employees]

    entries: Dict = {}
    for entry in period_entries(db, ids, period):
        entries.setdefault(entry.user_id, []).append(entry)
    installs: Dict = {}
    for ticket in closed_installs(db, period, ids):
        installs.setdefault(ticket.pv_installer_id, []).append(ticket)
    commissions = period_commissions(db, period)

    summaries = [
        _summarize(
            e,
            period,
            entries.get(e.id, []),
            installs.get(e.id, []),
            [],
            commissions,
            awaiting_approval(db, e.id),
        )
        for e in employees
    ]
    summaries.sort(key=lambda s: s.total_pay, reverse=True)
    return summaries

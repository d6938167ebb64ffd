"""
Payroll API routes.
Period navigation, per-employee pay summaries and commission approval.
"""
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import PAYROLL_ROLES, get_current_user, require_roles
from ..db import get_db
from ..models.models import AppUser, SalesCommission
from ..schemas.commissions import CommissionResponse
from ..schemas.payroll import ApprovePaymentRequest
from ..services.audit import create_audit_log
from ..services.commissions import Milestone, approve_payment
from ..services.pay_period import PayPeriod, current_period, period_ending, today_local
from ..services.payroll import employee_payroll, payroll_for_period


router = APIRouter(prefix="/payroll", tags=["payroll"])


def resolve_period(period_end: Optional[date] = None) -> PayPeriod:
    """The period being viewed: explicit end date, or the one containing today."""
    return period_ending(period_end) if period_end else current_period()


def _period_view(period: PayPeriod) -> dict:
    return {
        **period.as_dict(),
        "previous": period.previous().as_dict(),
        "next": period.next().as_dict(),
    }


@router.get("/periods/current")
def get_current_period(_=Depends(get_current_user)):
    return _period_view(current_period())


@router.get("/periods")
def get_period(end: date, _=Depends(get_current_user)):
    return _period_view(period_ending(end))


@router.get("")
def list_payroll(
    period_end: Optional[date] = None,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*PAYROLL_ROLES)),
):
    period = resolve_period(period_end)
    summaries = payroll_for_period(db, period)
    rows = [s.as_dict() for s in summaries]
    return {
        "period": _period_view(period),
        "employees": rows,
        "totals": {
            "regular_pay": round(sum(r["regular_pay"] for r in rows), 2),
            "overtime_pay": round(sum(r["overtime_pay"] for r in rows), 2),
            "piece_rate_pay": round(sum(r["battery_pay"] + r["per_watt_pay"] for r in rows), 2),
            "commission_pay": round(sum(r["commission_pay"] for r in rows), 2),
            "total_pay": round(sum(r["total_pay"] for r in rows), 2),
        },
    }


@router.get("/me")
def my_payroll(
    period_end: Optional[date] = None,
    db: Session = Depends(get_db),
    user: AppUser = Depends(get_current_user),
):
    return employee_payroll(db, user, resolve_period(period_end)).as_dict()


@router.get("/{user_id}")
def employee_payroll_view(
    user_id: uuid.UUID,
    period_end: Optional[date] = None,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*PAYROLL_ROLES)),
):
    emp = db.query(AppUser).filter(AppUser.id == user_id).first()
    if not emp:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee_payroll(db, emp, resolve_period(period_end)).as_dict()


@router.post("/commissions/{commission_id}/approve", response_model=CommissionResponse)
def approve_commission_payment(
    commission_id: uuid.UUID,
    payload: ApprovePaymentRequest,
    db: Session = Depends(get_db),
    actor: AppUser = Depends(require_roles(*PAYROLL_ROLES)),
):
    """
    Mark an eligible milestone paid and assign it to the period being viewed.
    """
    commission = db.query(SalesCommission).filter(SalesCommission.id == commission_id).first()
    if not commission:
        raise HTTPException(status_code=404, detail="Commission not found")
    period = resolve_period(payload.period_end)
    milestone = Milestone(payload.milestone)
    today = today_local()
    approve_payment(commission, milestone, period, today)
    try:
        create_audit_log(
            db,
            entity_type="commission",
            entity_id=commission.id,
            action="APPROVE_PAYMENT",
            actor_id=actor.id,
            actor_role=actor.role_category,
            source="admin",
            changes_json={"milestone": milestone.value, "status": "paid", "paid_date": today.isoformat()},
            context={"customer_id": str(commission.customer_id), "payroll_period_end": period.end.isoformat()},
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Approval failed: {e}")
    db.refresh(commission)
    return commission

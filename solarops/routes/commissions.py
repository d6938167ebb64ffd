import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import PAYROLL_ROLES, get_current_user, has_role, require_roles
from ..db import get_db
from ..models.models import AppUser, CrmCustomer, SalesCommission
from ..schemas.commissions import CommissionCreate, CommissionResponse
from ..schemas.payroll import MarkEligibleRequest
from ..services.audit import create_audit_log
from ..services.commissions import (
    Milestone,
    mark_eligible,
    override_amount,
    quote_override,
    rep_commission,
    require_manager_redline,
    team_overrides,
)
from ..services.pay_period import today_local


router = APIRouter(prefix="/commissions", tags=["commissions"])


def _get_user(db: Session, user_id, label: str) -> AppUser:
    user = db.query(AppUser).filter(AppUser.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return user


def _get_customer(db: Session, customer_id) -> CrmCustomer:
    customer = db.query(CrmCustomer).filter(CrmCustomer.id == customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.post("", response_model=CommissionResponse)
def create_commission(
    payload: CommissionCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*PAYROLL_ROLES)),
):
    customer = _get_customer(db, payload.customer_id)
    if db.query(SalesCommission).filter(SalesCommission.customer_id == customer.id).first():
        raise HTTPException(status_code=409, detail="Commission already exists for this customer")
    rep_id = payload.sales_rep_id or customer.sales_rep_id
    manager_id = payload.sales_manager_id
    override = payload.sales_manager_override_amount
    if rep_id and manager_id is None:
        rep = db.query(AppUser).filter(AppUser.id == rep_id).first()
        manager_id = rep.reporting_manager_id if rep else None
    if override is None and manager_id and rep_id:
        rep = db.query(AppUser).filter(AppUser.id == rep_id).first()
        manager = db.query(AppUser).filter(AppUser.id == manager_id).first()
        # Left empty when either redline is missing; it can be set later
        if rep and rep.ppw_redline and manager and manager.ppw_redline and customer.system_size_kw:
            override = override_amount(rep.ppw_redline, manager.ppw_redline, customer.system_size_kw)
    commission = SalesCommission(
        customer_id=customer.id,
        sales_rep_id=rep_id,
        sales_manager_id=manager_id,
        total_commission=payload.total_commission,
        m1_payment_amount=payload.m1_payment_amount,
        m2_payment_amount=payload.m2_payment_amount,
        sales_manager_override_amount=override,
        m1_payment_status="pending",
        m2_payment_status="pending",
        manager_override_payment_status="pending",
    )
    try:
        db.add(commission)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Create failed: {e}")
    db.refresh(commission)
    return commission


@router.get("/customer/{customer_id}", response_model=CommissionResponse)
def get_customer_commission(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    commission = db.query(SalesCommission).filter(SalesCommission.customer_id == customer_id).first()
    if not commission:
        raise HTTPException(status_code=404, detail="Commission not found")
    return commission


@router.post("/{commission_id}/eligible", response_model=CommissionResponse)
def mark_commission_eligible(
    commission_id: uuid.UUID,
    payload: MarkEligibleRequest,
    db: Session = Depends(get_db),
    actor: AppUser = Depends(require_roles(*PAYROLL_ROLES)),
):
    commission = db.query(SalesCommission).filter(SalesCommission.id == commission_id).first()
    if not commission:
        raise HTTPException(status_code=404, detail="Commission not found")
    on = payload.eligibility_date or today_local()
    mark_eligible(commission, Milestone(payload.milestone), on)
    commission.updated_at = datetime.now(timezone.utc)
    try:
        create_audit_log(
            db,
            entity_type="commission",
            entity_id=commission.id,
            action="MARK_ELIGIBLE",
            actor_id=actor.id,
            actor_role=actor.role_category,
            source="admin",
            changes_json={"milestone": payload.milestone, "status": "eligible", "eligibility_date": on.isoformat()},
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(commission)
    return commission


@router.get("/override-quote")
def get_override_quote(
    manager_id: uuid.UUID,
    rep_id: uuid.UUID,
    customer_id: Optional[uuid.UUID] = None,
    system_size_kw: Optional[float] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    manager = _get_user(db, manager_id, "Manager")
    rep = _get_user(db, rep_id, "Sales rep")
    if customer_id:
        system_size_kw = _get_customer(db, customer_id).system_size_kw
    if system_size_kw is None:
        raise HTTPException(status_code=400, detail="customer_id or system_size_kw is required")
    if not rep.ppw_redline:
        raise HTTPException(status_code=400, detail="Sales rep PPW redline not configured")
    return quote_override(manager, rep.ppw_redline, system_size_kw).as_dict()


@router.get("/team-overrides/{manager_id}")
def get_team_overrides(manager_id: uuid.UUID, db: Session = Depends(get_db), user: AppUser = Depends(get_current_user)):
    if user.id != manager_id and not has_role(user, *PAYROLL_ROLES):
        raise HTTPException(status_code=403, detail="Forbidden")
    manager = _get_user(db, manager_id, "Manager")
    require_manager_redline(manager)
    reps = (
        db.query(AppUser)
        .filter(
            AppUser.role_category == "sales_rep",
            AppUser.reporting_manager_id == manager.id,
            AppUser.status == "active",
        )
        .order_by(AppUser.full_name.asc())
        .all()
    )
    rep_ids = [r.id for r in reps]
    customers = db.query(CrmCustomer).filter(CrmCustomer.sales_rep_id.in_(rep_ids)).all() if rep_ids else []
    rows = team_overrides(manager, reps, customers)
    return {
        "manager_ppw_redline": float(manager.ppw_redline),
        "reps": [r.as_dict() for r in rows],
        "total_override_amount": float(sum(r.amount for r in rows)),
    }


@router.get("/rep-commission/{customer_id}")
def get_rep_commission(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    customer = _get_customer(db, customer_id)
    rep = db.query(AppUser).filter(AppUser.id == customer.sales_rep_id).first() if customer.sales_rep_id else None
    amount = rep_commission(customer.contract_price, rep.ppw_redline if rep else None, customer.system_size_kw)
    return {
        "customer_id": str(customer.id),
        "sales_rep_id": str(rep.id) if rep else None,
        "commission": float(amount) if amount is not None else None,
    }

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import PAYROLL_ROLES, get_current_user, has_role, require_roles
from ..db import get_db
from ..models.models import AppUser
from ..schemas.employees import EmployeePayUpdate, EmployeeResponse
from ..services.audit import compute_diff, create_audit_log


router = APIRouter(prefix="/employees", tags=["employees"])

PAY_FIELDS = ("hourly_rate", "is_salary", "per_watt_rate", "battery_pay_rates", "ppw_redline")


def _pay_snapshot(user: AppUser) -> dict:
    snap = {}
    for f in PAY_FIELDS:
        v = getattr(user, f)
        snap[f] = v if v is None or isinstance(v, (bool, dict)) else str(v)
    return snap


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    role_category: Optional[str] = None,
    status: Optional[str] = "active",
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    q = db.query(AppUser)
    if role_category:
        q = q.filter(AppUser.role_category == role_category)
    if status:
        q = q.filter(AppUser.status == status)
    return q.order_by(AppUser.full_name.asc()).all()


@router.get("/{user_id}", response_model=EmployeeResponse)
def get_employee(user_id: uuid.UUID, db: Session = Depends(get_db), user: AppUser = Depends(get_current_user)):
    if user.id != user_id and not has_role(user, *PAYROLL_ROLES):
        raise HTTPException(status_code=403, detail="Forbidden")
    emp = db.query(AppUser).filter(AppUser.id == user_id).first()
    if not emp:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


@router.patch("/{user_id}/pay", response_model=EmployeeResponse)
def update_pay(
    user_id: uuid.UUID,
    payload: EmployeePayUpdate,
    db: Session = Depends(get_db),
    actor: AppUser = Depends(require_roles(*PAYROLL_ROLES)),
):
    emp = db.query(AppUser).filter(AppUser.id == user_id).first()
    if not emp:
        raise HTTPException(status_code=404, detail="Employee not found")
    before = _pay_snapshot(emp)
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(emp, k, v)
    try:
        create_audit_log(
            db,
            entity_type="app_user",
            entity_id=emp.id,
            action="PAY_UPDATE",
            actor_id=actor.id,
            actor_role=actor.role_category,
            source="admin",
            changes_json=compute_diff(before, _pay_snapshot(emp)),
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(emp)
    return emp

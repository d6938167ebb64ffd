import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import AppUser, CrmCustomer, ProjectTimeline
from ..schemas.customers import CustomerCreate, CustomerResponse, CustomerUpdate, TimelineResponse, TimelineUpdate
from ..services.photo_checklists import upload_document
from ..services.timeline import TIMELINE_FIELDS, derived_project_status, upsert_timeline
from ..storage.factory import get_storage
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/customers", tags=["customers"])


def _get_customer(db: Session, customer_id) -> CrmCustomer:
    customer = db.query(CrmCustomer).filter(CrmCustomer.id == customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


def _ensure_rep(db: Session, rep_id) -> None:
    if rep_id and not db.query(AppUser.id).filter(AppUser.id == rep_id).first():
        raise HTTPException(status_code=400, detail="Unknown sales_rep_id")


def _timeline_view(customer_id, timeline: Optional[ProjectTimeline]) -> dict:
    values = {f: getattr(timeline, f) for f in TIMELINE_FIELDS} if timeline else {}
    return TimelineResponse(
        customer_id=customer_id,
        derived_status=derived_project_status(timeline),
        **values,
    ).model_dump(mode="json")


@router.post("", response_model=CustomerResponse)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_db), _=Depends(get_current_user)):
    _ensure_rep(db, payload.sales_rep_id)
    customer = CrmCustomer(**payload.model_dump())
    try:
        db.add(customer)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Create failed: {e}")
    db.refresh(customer)
    return customer


@router.get("", response_model=List[CustomerResponse])
def list_customers(
    q: Optional[str] = None,
    sales_rep_id: Optional[uuid.UUID] = None,
    active: Optional[bool] = True,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(CrmCustomer)
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(CrmCustomer.full_name.ilike(like), CrmCustomer.customer_code.ilike(like), CrmCustomer.address.ilike(like))
        )
    if sales_rep_id:
        query = query.filter(CrmCustomer.sales_rep_id == sales_rep_id)
    if active is not None:
        query = query.filter(CrmCustomer.is_active.is_(active))
    return query.order_by(CrmCustomer.created_at.desc()).all()


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return _get_customer(db, customer_id)


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: uuid.UUID,
    payload: CustomerUpdate,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    customer = _get_customer(db, customer_id)
    data = payload.model_dump(exclude_unset=True)
    if "sales_rep_id" in data:
        _ensure_rep(db, data["sales_rep_id"])
    for k, v in data.items():
        setattr(customer, k, v)
    customer.updated_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(customer)
    return customer


@router.get("/{customer_id}/timeline")
def get_timeline(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    _get_customer(db, customer_id)
    timeline = db.query(ProjectTimeline).filter(ProjectTimeline.customer_id == customer_id).first()
    return _timeline_view(customer_id, timeline)


@router.put("/{customer_id}/timeline")
def update_timeline(
    customer_id: uuid.UUID,
    payload: TimelineUpdate,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    _get_customer(db, customer_id)
    try:
        timeline = upsert_timeline(db, customer_id, **payload.model_dump(exclude_unset=True))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(timeline)
    return _timeline_view(customer_id, timeline)


@router.post("/{customer_id}/documents")
def upload_customer_document(
    customer_id: uuid.UUID,
    document_type: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    _=Depends(get_current_user),
):
    _get_customer(db, customer_id)
    url = upload_document(storage, customer_id, document_type, file.filename or "", file.file, content_type=file.content_type)
    return {"url": url, "document_type": document_type}

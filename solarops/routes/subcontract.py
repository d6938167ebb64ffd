"""
Subcontract API routes.
Contractors, subcontracted jobs, their ledger and invoices.
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import PAYROLL_ROLES, get_current_user, require_roles
from ..db import get_db
from ..documents.invoice_pdf import render_invoice_pdf
from ..models.models import (
    AppUser,
    Contractor,
    SubcontractDetachReset,
    SubcontractJob,
    SubcontractNewInstall,
)
from ..schemas.subcontract import (
    ContractorCreate,
    ContractorResponse,
    ContractorUpdate,
    StatusUpdate,
    SubcontractJobCreate,
    SubcontractJobResponse,
    SubcontractJobUpdate,
)
from ..services.audit import record_action
from ..services.errors import ValidationError
from ..services.pay_period import today_local
from ..services.subcontract_ledger import (
    JOB_DETACH_RESET,
    JOB_NEW_INSTALL,
    STATUS_OPTIONS,
    apply_contractor_defaults,
    apply_status,
    build_invoice,
    invoice_sequence,
    ledger_for,
    next_invoice_number,
    recompute,
)


router = APIRouter(prefix="/subcontract", tags=["subcontract"])

JOB_MODELS = {
    JOB_NEW_INSTALL: SubcontractNewInstall,
    JOB_DETACH_RESET: SubcontractDetachReset,
}

# Fields that only exist on one job variant
VARIANT_FIELDS = {
    JOB_NEW_INSTALL: {"price_per_watt"},
    JOB_DETACH_RESET: {"price_per_panel", "detach_date", "reset_date"},
}


def _get_contractor(db: Session, contractor_id) -> Contractor:
    c = db.query(Contractor).filter(Contractor.id == contractor_id).first()
    if not c:
        raise HTTPException(status_code=404, detail="Contractor not found")
    return c


def _get_job(db: Session, job_id) -> SubcontractJob:
    job = db.query(SubcontractJob).filter(SubcontractJob.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _adders(value) -> Optional[list]:
    if value is None:
        return None
    return [a if isinstance(a, dict) else a.model_dump() for a in value]


# Contractors

@router.get("/contractors", response_model=List[ContractorResponse])
def list_contractors(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(Contractor).order_by(Contractor.name.asc()).all()


@router.post("/contractors", response_model=ContractorResponse)
def create_contractor(payload: ContractorCreate, db: Session = Depends(get_db), _=Depends(require_roles(*PAYROLL_ROLES))):
    data = payload.model_dump()
    data["adders"] = _adders(payload.adders)
    c = Contractor(**data)
    try:
        db.add(c)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Create failed: {e}")
    db.refresh(c)
    return c


@router.get("/contractors/{contractor_id}", response_model=ContractorResponse)
def get_contractor(contractor_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return _get_contractor(db, contractor_id)


@router.put("/contractors/{contractor_id}", response_model=ContractorResponse)
def update_contractor(
    contractor_id: uuid.UUID,
    payload: ContractorUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*PAYROLL_ROLES)),
):
    c = _get_contractor(db, contractor_id)
    data = payload.model_dump(exclude_unset=True)
    if "adders" in data:
        data["adders"] = _adders(payload.adders)
    for k, v in data.items():
        setattr(c, k, v)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(c)
    return c


@router.delete("/contractors/{contractor_id}")
def delete_contractor(contractor_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles(*PAYROLL_ROLES))):
    c = _get_contractor(db, contractor_id)
    try:
        db.delete(c)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Delete failed: {e}")
    return {"status": "ok"}


# Jobs

@router.get("/status-options")
def get_status_options():
    return STATUS_OPTIONS


@router.post("/jobs", response_model=SubcontractJobResponse)
def create_job(
    payload: SubcontractJobCreate = Body(..., discriminator="job_type"),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    model = JOB_MODELS[payload.job_type]
    data = payload.model_dump(exclude={"job_type", "subcontract_status"})
    data["adders"] = _adders(payload.adders)
    job = model(**data)
    if payload.contractor_id:
        apply_contractor_defaults(job, _get_contractor(db, payload.contractor_id))
    apply_status(job, payload.subcontract_status or STATUS_OPTIONS[payload.job_type][0], today_local())
    recompute(job)
    try:
        db.add(job)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Create failed: {e}")
    db.refresh(job)
    return job


@router.get("/jobs", response_model=List[SubcontractJobResponse])
def list_jobs(
    job_type: Optional[str] = None,
    status: Optional[str] = None,
    contractor_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    if job_type and job_type not in JOB_MODELS:
        raise HTTPException(status_code=400, detail="Invalid job_type")
    q = db.query(JOB_MODELS[job_type] if job_type else SubcontractJob)
    if status:
        q = q.filter(SubcontractJob.subcontract_status == status)
    if contractor_id:
        q = q.filter(SubcontractJob.contractor_id == contractor_id)
    return q.order_by(SubcontractJob.created_at.desc()).all()


@router.get("/jobs/{job_id}", response_model=SubcontractJobResponse)
def get_job(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return _get_job(db, job_id)


@router.put("/jobs/{job_id}", response_model=SubcontractJobResponse)
def update_job(
    job_id: uuid.UUID,
    payload: SubcontractJobUpdate,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    job = _get_job(db, job_id)
    data = payload.model_dump(exclude_unset=True)
    other = JOB_DETACH_RESET if job.job_type == JOB_NEW_INSTALL else JOB_NEW_INSTALL
    wrong = VARIANT_FIELDS[other] & set(data)
    if wrong:
        raise ValidationError(f"Not valid for {job.job_type} job: {', '.join(sorted(wrong))}")
    if "adders" in data:
        data["adders"] = _adders(payload.adders)
    for k, v in data.items():
        setattr(job, k, v)
    if "contractor_id" in data and job.contractor_id:
        apply_contractor_defaults(job, _get_contractor(db, job.contractor_id))
    recompute(job)
    job.updated_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(job)
    return job


@router.put("/jobs/{job_id}/status", response_model=SubcontractJobResponse)
def update_job_status(
    job_id: uuid.UUID,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    actor: AppUser = Depends(get_current_user),
):
    job = _get_job(db, job_id)
    before = job.subcontract_status
    apply_status(job, payload.status, today_local())
    job.updated_at = datetime.now(timezone.utc)
    try:
        record_action(
            db,
            actor,
            "subcontract_job",
            job.id,
            "STATUS_CHANGE",
            changes={"subcontract_status": {"before": before, "after": payload.status}},
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(job)
    return job


@router.get("/jobs/{job_id}/ledger")
def get_job_ledger(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    job = _get_job(db, job_id)
    return {"job_id": str(job.id), "job_type": job.job_type, **ledger_for(job).as_dict()}


@router.post("/jobs/{job_id}/invoice-number", response_model=SubcontractJobResponse)
def assign_invoice_number(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    job = _get_job(db, job_id)
    if job.invoice_number:
        raise HTTPException(status_code=409, detail="Invoice number already assigned")
    today = today_local()
    prefix = next_invoice_number(today, 0)[:-4]
    # Continue from the highest number issued today
    last = (
        db.query(func.max(SubcontractJob.invoice_number))
        .filter(SubcontractJob.invoice_number.like(f"{prefix}%"))
        .scalar()
    )
    job.invoice_number = next_invoice_number(today, invoice_sequence(last) + 1)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Invoice number already in use, retry")
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(job)
    return job


@router.get("/jobs/{job_id}/invoice")
def get_job_invoice(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return build_invoice(_get_job(db, job_id)).as_dict()


@router.get("/jobs/{job_id}/invoice.pdf")
def get_job_invoice_pdf(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    invoice = build_invoice(_get_job(db, job_id))
    pdf = render_invoice_pdf(invoice)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{invoice.invoice_number}.pdf"'},
    )


@router.delete("/jobs/{job_id}")
def delete_job(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles(*PAYROLL_ROLES))):
    job = _get_job(db, job_id)
    try:
        db.delete(job)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Delete failed: {e}")
    return {"status": "ok"}

"""
Scheduling ticket API routes.
Ticket creation, listing and progress toggles for field visits.
"""
import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import AppUser, Job, SchedulingTicket, ticket_technicians
from ..schemas.tickets import (
    ProgressRequest,
    TechniciansUpdate,
    TicketCreate,
    TicketResponse,
    WorkPerformedUpdate,
)
from ..services.ticket_lifecycle import (
    CLOSE_REASONS,
    ProgressResult,
    ProgressStep,
    dismiss_checklist,
    save_work_performed,
    toggle_step,
)
from ..services.time_clock import Geo


router = APIRouter(prefix="/tickets", tags=["tickets"])


def _get_ticket(db: Session, ticket_id) -> SchedulingTicket:
    ticket = db.query(SchedulingTicket).filter(SchedulingTicket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


def _technicians(db: Session, ids: List[uuid.UUID]) -> List[AppUser]:
    if not ids:
        return []
    users = db.query(AppUser).filter(AppUser.id.in_(ids)).all()
    if len(users) != len(set(ids)):
        raise HTTPException(status_code=400, detail="Unknown technician id")
    return users


def _geo(payload: Optional[ProgressRequest]) -> Optional[Geo]:
    # Location is best-effort; a missing or partial fix is ignored
    if payload is None or payload.latitude is None or payload.longitude is None:
        return None
    return Geo(latitude=payload.latitude, longitude=payload.longitude)


def _result(db: Session, result: ProgressResult) -> dict:
    db.refresh(result.ticket)
    return {
        "step": result.step.value,
        "action": result.action,
        "checklist_phase": result.checklist_phase,
        "map_links": result.map_links,
        "clock_entry_opened": result.clock_entry_opened,
        "hooks": [h.as_dict() for h in result.hooks],
        "ticket": TicketResponse.model_validate(result.ticket).model_dump(mode="json"),
    }


@router.get("/close-reasons")
def list_close_reasons():
    return CLOSE_REASONS


@router.post("", response_model=TicketResponse)
def create_ticket(payload: TicketCreate, db: Session = Depends(get_db), _=Depends(get_current_user)):
    if not db.query(Job).filter(Job.id == payload.customer_id).first():
        raise HTTPException(status_code=404, detail="Customer not found")
    data = payload.model_dump(exclude={"technician_ids"})
    ticket = SchedulingTicket(**data, ticket_status="scheduled")
    ticket.technicians = _technicians(db, payload.technician_ids or [])
    try:
        db.add(ticket)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Create failed: {e}")
    db.refresh(ticket)
    return ticket


@router.get("", response_model=List[TicketResponse])
def list_tickets(
    customer_id: Optional[uuid.UUID] = None,
    ticket_type: Optional[str] = None,
    ticket_status: Optional[str] = None,
    technician_id: Optional[uuid.UUID] = None,
    scheduled_from: Optional[date] = None,
    scheduled_to: Optional[date] = None,
    open_only: bool = False,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    q = db.query(SchedulingTicket)
    if customer_id:
        q = q.filter(SchedulingTicket.customer_id == customer_id)
    if ticket_type:
        q = q.filter(SchedulingTicket.ticket_type == ticket_type)
    if ticket_status:
        q = q.filter(SchedulingTicket.ticket_status == ticket_status)
    if technician_id:
        q = q.join(ticket_technicians, ticket_technicians.c.ticket_id == SchedulingTicket.id).filter(
            ticket_technicians.c.user_id == technician_id
        )
    if scheduled_from:
        q = q.filter(SchedulingTicket.scheduled_date >= scheduled_from)
    if scheduled_to:
        q = q.filter(SchedulingTicket.scheduled_date <= scheduled_to)
    if open_only:
        q = q.filter(SchedulingTicket.closed_at.is_(None))
    return q.order_by(SchedulingTicket.scheduled_date.asc(), SchedulingTicket.start_time.asc()).all()


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(ticket_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return _get_ticket(db, ticket_id)


@router.post("/{ticket_id}/progress/{step}")
def toggle_progress(
    ticket_id: uuid.UUID,
    step: ProgressStep,
    payload: Optional[ProgressRequest] = Body(default=None),
    db: Session = Depends(get_db),
    user: AppUser = Depends(get_current_user),
):
    """
    Set the step to now, or clear it when already set.
    Begin on installation, inspection and service tickets returns checklist_required instead of stamping.
    """
    ticket = _get_ticket(db, ticket_id)
    try:
        result = toggle_step(
            db,
            ticket,
            step,
            user,
            geo=_geo(payload),
            close_reason=payload.close_reason if payload else None,
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    return _result(db, result)


@router.post("/{ticket_id}/checklist/dismiss")
def dismiss_photo_checklist(
    ticket_id: uuid.UUID,
    payload: Optional[ProgressRequest] = Body(default=None),
    db: Session = Depends(get_db),
    user: AppUser = Depends(get_current_user),
):
    ticket = _get_ticket(db, ticket_id)
    try:
        result = dismiss_checklist(db, ticket, user, geo=_geo(payload))
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    return _result(db, result)


@router.put("/{ticket_id}/work-performed", response_model=TicketResponse)
def update_work_performed(
    ticket_id: uuid.UUID,
    payload: WorkPerformedUpdate,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    ticket = _get_ticket(db, ticket_id)
    try:
        save_work_performed(db, ticket, payload.work_performed)
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(ticket)
    return ticket


@router.put("/{ticket_id}/technicians", response_model=TicketResponse)
def update_technicians(
    ticket_id: uuid.UUID,
    payload: TechniciansUpdate,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    ticket = _get_ticket(db, ticket_id)
    ticket.technicians = _technicians(db, payload.technician_ids)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Update failed: {e}")
    db.refresh(ticket)
    return ticket

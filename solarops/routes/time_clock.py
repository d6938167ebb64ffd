import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import AppUser, TimeClockEntry
from ..schemas.payroll import ClockRequest
from ..services.errors import ValidationError
from ..services.pay_period import today_local
from ..services.time_clock import Geo, clock_in, clock_out, open_entry_for, week_entries
from ..services.time_tally import tally_hours


router = APIRouter(prefix="/time-clock", tags=["time-clock"])


def _entry_dict(e: Optional[TimeClockEntry]) -> Optional[dict]:
    if e is None:
        return None
    return {
        "id": str(e.id),
        "user_id": str(e.user_id),
        "customer_id": str(e.customer_id) if e.customer_id else None,
        "ticket_id": str(e.ticket_id) if e.ticket_id else None,
        "clock_in_time": e.clock_in_time.isoformat() if e.clock_in_time else None,
        "clock_out_time": e.clock_out_time.isoformat() if e.clock_out_time else None,
        "clock_in_latitude": float(e.clock_in_latitude) if e.clock_in_latitude is not None else None,
        "clock_in_longitude": float(e.clock_in_longitude) if e.clock_in_longitude is not None else None,
        "clock_out_latitude": float(e.clock_out_latitude) if e.clock_out_latitude is not None else None,
        "clock_out_longitude": float(e.clock_out_longitude) if e.clock_out_longitude is not None else None,
        "total_hours": e.total_hours,
    }


def _geo(payload: Optional[ClockRequest]) -> Optional[Geo]:
    if payload is None or payload.latitude is None or payload.longitude is None:
        return None
    return Geo(latitude=payload.latitude, longitude=payload.longitude)


def _uuid_or_none(value: Optional[str], label: str):
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label}")


@router.get("/open")
def get_open_entry(db: Session = Depends(get_db), user: AppUser = Depends(get_current_user)):
    return {"entry": _entry_dict(open_entry_for(db, user.id))}


@router.post("/clock-in")
def clock_in_route(
    payload: Optional[ClockRequest] = Body(default=None),
    db: Session = Depends(get_db),
    user: AppUser = Depends(get_current_user),
):
    entry = clock_in(
        db,
        user.id,
        customer_id=_uuid_or_none(payload.customer_id if payload else None, "customer_id"),
        ticket_id=_uuid_or_none(payload.ticket_id if payload else None, "ticket_id"),
        geo=_geo(payload),
    )
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Clock in failed: {e}")
    db.refresh(entry)
    return {"entry": _entry_dict(entry)}


@router.post("/clock-out")
def clock_out_route(
    payload: Optional[ClockRequest] = Body(default=None),
    db: Session = Depends(get_db),
    user: AppUser = Depends(get_current_user),
):
    entry = open_entry_for(db, user.id)
    if entry is None:
        raise ValidationError("Not clocked in")
    clock_out(entry, geo=_geo(payload))
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Clock out failed: {e}")
    db.refresh(entry)
    return {"entry": _entry_dict(entry)}


@router.get("/week")
def get_week(day: Optional[date] = None, db: Session = Depends(get_db), user: AppUser = Depends(get_current_user)):
    entries = week_entries(db, user.id, day or today_local())
    tally = tally_hours(entries)
    return {
        "entries": [_entry_dict(e) for e in entries],
        "total_hours": float(tally.total_hours),
        "regular_hours": float(tally.regular_hours),
        "overtime_hours": float(tally.overtime_hours),
    }

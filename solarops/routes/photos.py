import uuid

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import SchedulingTicket
from ..services.photo_checklists import (
    add_photo,
    get_checklist,
    get_phase,
    remove_photo,
    set_checked,
    set_extra,
)
from ..storage.factory import get_storage
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/photos", tags=["photos"])


def _ensure_ticket(db: Session, ticket_id) -> None:
    if not db.query(SchedulingTicket.id).filter(SchedulingTicket.id == ticket_id).first():
        raise HTTPException(status_code=404, detail="Ticket not found")


def _view(phase_name: str, ticket_id, row) -> dict:
    return {
        "phase": phase_name,
        "ticket_id": str(ticket_id),
        "checked_photos": (row.checked_photos if row else None) or [],
        "photo_urls": (row.photo_urls if row else None) or {},
        "extra": (row.extra if row else None) or {},
        "updated_at": row.updated_at.isoformat() if row and row.updated_at else None,
    }


@router.get("/{phase}/{ticket_id}")
def get_photo_checklist(phase: str, ticket_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    p = get_phase(phase)
    _ensure_ticket(db, ticket_id)
    return _view(phase, ticket_id, get_checklist(db, p, ticket_id))


@router.put("/{phase}/{ticket_id}/items/{item_id}")
def check_item(
    phase: str,
    ticket_id: uuid.UUID,
    item_id: str,
    checked: bool = Body(..., embed=True),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    p = get_phase(phase)
    _ensure_ticket(db, ticket_id)
    return _view(phase, ticket_id, set_checked(db, p, ticket_id, item_id, checked))


@router.post("/{phase}/{ticket_id}/items/{item_id}/upload")
def upload_item_photo(
    phase: str,
    ticket_id: uuid.UUID,
    item_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    _=Depends(get_current_user),
):
    p = get_phase(phase)
    _ensure_ticket(db, ticket_id)
    url = add_photo(db, storage, p, ticket_id, item_id, file.filename or "", file.file, content_type=file.content_type)
    return {"url": url, **_view(phase, ticket_id, get_checklist(db, p, ticket_id))}


@router.delete("/{phase}/{ticket_id}/items/{item_id}")
def delete_item_photo(
    phase: str,
    ticket_id: uuid.UUID,
    item_id: str,
    url: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    _=Depends(get_current_user),
):
    p = get_phase(phase)
    return _view(phase, ticket_id, remove_photo(db, storage, p, ticket_id, item_id, url))


@router.put("/{phase}/{ticket_id}/extra")
def update_extra(
    phase: str,
    ticket_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Inverter type, serial numbers and similar details recorded with the photos."""
    p = get_phase(phase)
    _ensure_ticket(db, ticket_id)
    return _view(phase, ticket_id, set_extra(db, p, ticket_id, payload))

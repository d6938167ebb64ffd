"""
Photo checklists, one table per ticket phase.
Each row holds the checked item ids and the uploaded photo URLs per item; it is upserted on every change.
"""
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, List, Optional, Union

from sqlalchemy.orm import Session

from ..models.models import PHOTO_CHECKLIST_MODELS
from ..storage.provider import StorageProvider
from .errors import NotFoundError, ValidationError

DOCUMENTS_BUCKET = "customer-documents"


@dataclass(frozen=True)
class PhotoPhase:
    name: str
    model: type
    bucket: str


PHASES = {
    "site_survey": PhotoPhase("site_survey", PHOTO_CHECKLIST_MODELS["site_survey"], "site-survey-photos"),
    "installation": PhotoPhase("installation", PHOTO_CHECKLIST_MODELS["installation"], "installation-photos"),
    "inspection": PhotoPhase("inspection", PHOTO_CHECKLIST_MODELS["inspection"], "inspection-photos"),
    # Detach and reset share a bucket
    "detach": PhotoPhase("detach", PHOTO_CHECKLIST_MODELS["detach"], "detach-photos"),
    "reset": PhotoPhase("reset", PHOTO_CHECKLIST_MODELS["reset"], "detach-photos"),
    "service": PhotoPhase("service", PHOTO_CHECKLIST_MODELS["service"], "service-photos"),
}


def get_phase(name: str) -> PhotoPhase:
    try:
        return PHASES[name]
    except KeyError:
        raise NotFoundError(f"Unknown photo checklist: {name}")


def phase_for_ticket(ticket) -> Optional[str]:
    if ticket.ticket_type == "inspection" and ticket.problem_code == "site_survey":
        return "site_survey"
    return ticket.ticket_type if ticket.ticket_type in PHASES else None


def get_checklist(db: Session, phase: PhotoPhase, ticket_id):
    return db.query(phase.model).filter(phase.model.ticket_id == ticket_id).first()


def get_or_create(db: Session, phase: PhotoPhase, ticket_id):
    row = get_checklist(db, phase, ticket_id)
    if row is None:
        row = phase.model(ticket_id=ticket_id, checked_photos=[], photo_urls={}, extra={})
        db.add(row)
    return row


def _save(db: Session, row, checked: List[str], urls: dict) -> None:
    # JSON columns only persist on reassignment
    row.checked_photos = list(checked)
    row.photo_urls = dict(urls)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)


def set_checked(db: Session, phase: PhotoPhase, ticket_id, item_id: str, checked: bool):
    row = get_or_create(db, phase, ticket_id)
    items = [i for i in (row.checked_photos or []) if i != item_id]
    if checked:
        items.append(item_id)
    _save(db, row, items, row.photo_urls or {})
    return row


def upload_key(entity_id, item_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "jpg"
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{entity_id}/{item_id}/{stamp}.{ext}"


def add_photo(
    db: Session,
    storage: StorageProvider,
    phase: PhotoPhase,
    ticket_id,
    item_id: str,
    filename: str,
    data: Union[bytes, BinaryIO],
    content_type: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> str:
    """Uploads the photo, records its URL and checks the item."""
    key = upload_key(ticket_id, item_id, filename, now_ms)
    storage.upload(phase.bucket, key, data, content_type=content_type)
    url = storage.public_url(phase.bucket, key)

    row = get_or_create(db, phase, ticket_id)
    urls = {k: list(v) for k, v in (row.photo_urls or {}).items()}
    urls.setdefault(item_id, []).append(url)
    checked = list(row.checked_photos or [])
    if item_id not in checked:
        checked.append(item_id)
    _save(db, row, checked, urls)
    return url


def remove_photo(db: Session, storage: StorageProvider, phase: PhotoPhase, ticket_id, item_id: str, url: str):
    """Deletes the stored object and the URL; the item is unchecked once it has no photos left."""
    row = get_checklist(db, phase, ticket_id)
    if row is None or url not in (row.photo_urls or {}).get(item_id, []):
        raise NotFoundError("Photo not found")
    key = storage.path_from_url(phase.bucket, url)
    if key:
        storage.delete(phase.bucket, key)

    urls = {k: list(v) for k, v in (row.photo_urls or {}).items()}
    urls[item_id] = [u for u in urls[item_id] if u != url]
    checked = list(row.checked_photos or [])
    if not urls[item_id]:
        del urls[item_id]
        checked = [i for i in checked if i != item_id]
    _save(db, row, checked, urls)
    return row


def set_extra(db: Session, phase: PhotoPhase, ticket_id, values: dict):
    """Free-form details recorded with the photos, e.g. inverter type and serial numbers."""
    if not isinstance(values, dict):
        raise ValidationError("extra must be an object")
    row = get_or_create(db, phase, ticket_id)
    row.extra = {**(row.extra or {}), **values}
    _save(db, row, row.checked_photos or [], row.photo_urls or {})
    return row


def upload_document(storage: StorageProvider, customer_id, document_type: str, filename: str, data, content_type=None) -> str:
    key = upload_key(customer_id, document_type, filename)
    storage.upload(DOCUMENTS_BUCKET, key, data, content_type=content_type)
    return storage.public_url(DOCUMENTS_BUCKET, key)

"""
Ticket lifecycle.
Progress on a field visit is a set of independent nullable timestamps.
Steps have a suggested order (in transit, arrived, begin, work performed, departing, closed)
but any step may be set or cleared on its own. Side effects fire only when a step is set.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import quote

import structlog
from sqlalchemy.orm import Session

from ..models.models import SchedulingTicket
from .audit import record_action
from .errors import ValidationError
from .hooks import HookOutcome, PostCommitHooks
from .photo_checklists import phase_for_ticket
from .site_survey_pdf import SiteSurveyPdfClient, request_site_survey_pdf
from .time_clock import Geo, clock_in, close_open_entry, open_entry_for
from .time_tally import as_utc
from .timeline import upsert_timeline

logger = structlog.get_logger(__name__)

DEPARTING_MESSAGE = "Please add a description of work performed before departing the site."

CLOSE_REASONS = [
    "Install Complete",
    "Service Complete",
    "Site Survey Complete",
    "Inspection Passed",
    "Inspection Failed",
    "Additional Day Required",
    "Weather Re-Schedule",
    "Customer Re-Schedule",
    "Company Re-Schedule",
]

CHECKLIST_TICKET_TYPES = {"installation", "inspection", "service"}
TICKET_TYPES = ("site_survey", "installation", "inspection", "service", "detach", "reset")
TICKET_STATUSES = ("scheduled", "in_progress", "completed", "cancelled")

ACTION_SET = "set"
ACTION_CLEARED = "cleared"
ACTION_CHECKLIST_REQUIRED = "checklist_required"
ACTION_UNCHANGED = "unchanged"


class ProgressStep(str, enum.Enum):
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"
    BEGIN = "begin"
    DEPARTING = "departing"
    CLOSED = "closed"

    @property
    def field(self) -> str:
        return _STEP_FIELDS[self]


_STEP_FIELDS = {
    ProgressStep.IN_TRANSIT: "in_transit_at",
    ProgressStep.ARRIVED: "arrived_at",
    ProgressStep.BEGIN: "begin_ticket_at",
    ProgressStep.DEPARTING: "departing_at",
    ProgressStep.CLOSED: "closed_at",
}


@dataclass
class ProgressResult:
    step: ProgressStep
    action: str
    ticket: SchedulingTicket
    checklist_phase: Optional[str] = None
    map_links: Optional[dict] = None
    clock_entry_opened: bool = False
    hooks: List[HookOutcome] = field(default_factory=list)


def map_links_for(address: Optional[str]) -> Optional[dict]:
    if not address:
        return None
    encoded = quote(address, safe="-_.!~*'()")
    return {
        "apple": f"maps://maps.apple.com/?q={encoded}",
        "google": f"https://www.google.com/maps/search/?api=1&query={encoded}",
    }


def is_site_survey(ticket: SchedulingTicket) -> bool:
    return ticket.ticket_type == "site_survey" or (
        ticket.ticket_type == "inspection" and ticket.problem_code == "site_survey"
    )


def timeline_update_for(ticket: SchedulingTicket, reason: str, now: datetime) -> Optional[dict]:
    """Timeline fields a close with this reason records, if any."""
    if ticket.ticket_type == "installation" and reason == "Install Complete":
        return {"installation_status": "completed", "installation_date": now}
    if reason == "Site Survey Complete" and is_site_survey(ticket):
        return {"site_survey_status": "completed", "site_survey_date": now}
    if ticket.ticket_type == "inspection" and reason in ("Inspection Passed", "Inspection Failed"):
        status = "passed" if reason == "Inspection Passed" else "failed"
        return {
            "city_inspection_date": now,
            "city_inspection_status": status,
            "inspection_status": status,
        }
    return None


def _audit(db: Session, ticket: SchedulingTicket, action: str, actor, changes: dict) -> None:
    record_action(
        db,
        actor,
        "ticket",
        ticket.id,
        action,
        changes=changes,
        context={"customer_id": str(ticket.customer_id), "ticket_type": ticket.ticket_type},
    )


def _ensure_clock_entry(db: Session, ticket: SchedulingTicket, actor, geo: Optional[Geo], now: datetime) -> bool:
    if actor is None or open_entry_for(db, actor.id) is not None:
        return False
    clock_in(db, actor.id, customer_id=ticket.customer_id, ticket_id=ticket.id, geo=geo, now=now)
    return True


def _stamp(db: Session, ticket: SchedulingTicket, step: ProgressStep, actor, geo: Optional[Geo], now: datetime) -> bool:
    setattr(ticket, step.field, now)
    if ticket.ticket_status == "scheduled" and step != ProgressStep.CLOSED:
        ticket.ticket_status = "in_progress"
    ticket.updated_at = now
    if step in (ProgressStep.ARRIVED, ProgressStep.BEGIN):
        return _ensure_clock_entry(db, ticket, actor, geo, now)
    return False


def toggle_step(
    db: Session,
    ticket: SchedulingTicket,
    step: ProgressStep,
    actor,
    now: Optional[datetime] = None,
    geo: Optional[Geo] = None,
    close_reason: Optional[str] = None,
    pdf_client: Optional[SiteSurveyPdfClient] = None,
) -> ProgressResult:
    step = ProgressStep(step)
    now = as_utc(now) if now else datetime.now(timezone.utc)

    if getattr(ticket, step.field) is not None:
        setattr(ticket, step.field, None)
        changes = {step.field: None}
        if step == ProgressStep.CLOSED:
            ticket.close_reason = None
            ticket.ticket_status = "in_progress"
            changes["close_reason"] = None
        ticket.updated_at = now
        _audit(db, ticket, "PROGRESS_CLEARED", actor, changes)
        return ProgressResult(step=step, action=ACTION_CLEARED, ticket=ticket)

    if step == ProgressStep.BEGIN and ticket.ticket_type in CHECKLIST_TICKET_TYPES:
        return ProgressResult(
            step=step,
            action=ACTION_CHECKLIST_REQUIRED,
            ticket=ticket,
            checklist_phase=phase_for_ticket(ticket),
        )

    if step == ProgressStep.DEPARTING and not (ticket.work_performed or "").strip():
        raise ValidationError(DEPARTING_MESSAGE)

    if step == ProgressStep.CLOSED:
        return _close(db, ticket, actor, now, close_reason, pdf_client)

    opened = _stamp(db, ticket, step, actor, geo, now)
    _audit(db, ticket, "PROGRESS_SET", actor, {step.field: now.isoformat()})
    return ProgressResult(
        step=step,
        action=ACTION_SET,
        ticket=ticket,
        map_links=map_links_for(ticket.customer.address if ticket.customer else None) if step == ProgressStep.IN_TRANSIT else None,
        clock_entry_opened=opened,
    )


def _close(
    db: Session,
    ticket: SchedulingTicket,
    actor,
    now: datetime,
    reason: Optional[str],
    pdf_client: Optional[SiteSurveyPdfClient],
) -> ProgressResult:
    if not reason:
        raise ValidationError("A close reason is required")
    if reason not in CLOSE_REASONS:
        raise ValidationError(f"Unknown close reason: {reason}")

    ticket.closed_at = now
    ticket.close_reason = reason
    ticket.ticket_status = "completed"
    ticket.updated_at = now
    changes = {"closed_at": now.isoformat(), "close_reason": reason}
    if ticket.ticket_type == "installation" and actor is not None:
        ticket.pv_installer_id = actor.id
        changes["pv_installer_id"] = str(actor.id)
    _audit(db, ticket, "PROGRESS_SET", actor, changes)

    hooks = PostCommitHooks(db)
    timeline_fields = timeline_update_for(ticket, reason, now)
    if timeline_fields:
        hooks.add("update_project_timeline", upsert_timeline, db, ticket.customer_id, **timeline_fields)
    if reason == "Site Survey Complete" and is_site_survey(ticket):
        hooks.add("generate_site_survey_pdf", request_site_survey_pdf, ticket.customer_id, ticket.id, pdf_client)
    if actor is not None:
        hooks.add("close_time_clock", close_open_entry, db, actor.id, ticket.customer_id, now)
    outcomes = hooks.run()

    logger.info("ticket_closed", ticket_id=str(ticket.id), reason=reason, hooks=[o.as_dict() for o in outcomes])
    return ProgressResult(step=ProgressStep.CLOSED, action=ACTION_SET, ticket=ticket, hooks=outcomes)


def dismiss_checklist(
    db: Session,
    ticket: SchedulingTicket,
    actor,
    now: Optional[datetime] = None,
    geo: Optional[Geo] = None,
) -> ProgressResult:
    """Leaving the photo checklist stamps begin if it is still unset."""
    now = as_utc(now) if now else datetime.now(timezone.utc)
    if ticket.begin_ticket_at is not None:
        return ProgressResult(step=ProgressStep.BEGIN, action=ACTION_UNCHANGED, ticket=ticket)
    opened = _stamp(db, ticket, ProgressStep.BEGIN, actor, geo, now)
    _audit(db, ticket, "PROGRESS_SET", actor, {"begin_ticket_at": now.isoformat()})
    return ProgressResult(step=ProgressStep.BEGIN, action=ACTION_SET, ticket=ticket, clock_entry_opened=opened)


def save_work_performed(db: Session, ticket: SchedulingTicket, text: Optional[str]) -> SchedulingTicket:
    """Never touches departing_at, even when the text is cleared."""
    ticket.work_performed = text
    ticket.updated_at = datetime.now(timezone.utc)
    db.commit()
    return ticket

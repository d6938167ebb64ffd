"""
Project timeline.
One row per customer tracking each project stage; the headline status is derived, never stored.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..models.models import ProjectTimeline
from .errors import ValidationError

TIMELINE_FIELDS = {
    "site_survey_status",
    "site_survey_date",
    "engineering_status",
    "utility_status",
    "permit_status",
    "material_order_status",
    "installation_status",
    "installation_date",
    "inspection_status",
    "city_inspection_status",
    "city_inspection_date",
    "pto_submitted_date",
    "pto_approved_date",
    "system_activated_date",
}

NEW_LEAD = "New Lead"


def upsert_timeline(db: Session, customer_id, **fields) -> ProjectTimeline:
    unknown = set(fields) - TIMELINE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown timeline fields: {', '.join(sorted(unknown))}")
    timeline = db.query(ProjectTimeline).filter(ProjectTimeline.customer_id == customer_id).first()
    if timeline is None:
        timeline = ProjectTimeline(customer_id=customer_id)
        db.add(timeline)
    for key, value in fields.items():
        setattr(timeline, key, value)
    timeline.updated_at = datetime.now(timezone.utc)
    db.flush()
    return timeline


def _stage_status(value: Optional[str], labels: dict) -> Optional[str]:
    return labels.get(value) if value else None


_PERMIT_LABELS = {
    "approved": "Permits Approved",
    "revision_submitted": "Permit Revision Submitted",
    "revision_required": "Permit Revision Required",
    "submitted": "Permit Review",
}

_UTILITY_LABELS = {
    "approved": "Utility Approved",
    "revision_submitted": "Utility Revision Submitted",
    "revision_required": "Utility Revision Required",
    "submitted": "Utility Review",
}


def derived_project_status(timeline: Optional[ProjectTimeline]) -> str:
    """Most advanced stage reached, checked from the end of the project backwards."""
    if timeline is None:
        return NEW_LEAD
    t = timeline
    if t.system_activated_date:
        return "System Active"
    if t.pto_approved_date:
        return "System Activation"
    if t.pto_submitted_date:
        return "Awaiting PTO"
    if t.inspection_status == "passed":
        return "Inspection Passed - Pending PTO"
    if t.inspection_status == "service_completed":
        return "Ready for Re-Inspection"
    if t.inspection_status in ("service_required", "failed"):
        return "Service Required"
    if t.inspection_status == "scheduled":
        return "Inspection Scheduled"
    if t.inspection_status == "ready" or t.installation_status == "completed":
        return "Installation Completed - Ready for Inspection"
    if t.installation_status == "scheduled":
        return "Installation Scheduled"
    if t.material_order_status == "ordered":
        return "Material Ordered"
    if t.installation_status == "pending_material":
        return "Pending Material"
    label = _stage_status(t.permit_status, _PERMIT_LABELS) or _stage_status(t.utility_status, _UTILITY_LABELS)
    if label:
        return label
    if t.engineering_status == "completed":
        return "Engineering Complete"
    if t.engineering_status == "pending":
        return "Pending Engineering"
    if t.installation_status == "pending_customer":
        return "Coordinating Installation"
    if t.site_survey_status == "completed":
        return "Survey Complete"
    if t.site_survey_status == "scheduled":
        return "Survey Scheduled"
    return NEW_LEAD

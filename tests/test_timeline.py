from datetime import date

import pytest

from solarops.models.models import ProjectTimeline
from solarops.services.errors import ValidationError
from solarops.services.timeline import derived_project_status, upsert_timeline


@pytest.mark.parametrize(
    "fields,expected",
    [
        ({}, "New Lead"),
        ({"site_survey_status": "scheduled"}, "Survey Scheduled"),
        ({"site_survey_status": "completed"}, "Survey Complete"),
        ({"site_survey_status": "completed", "engineering_status": "pending"}, "Pending Engineering"),
        ({"engineering_status": "completed", "utility_status": "submitted"}, "Utility Review"),
        ({"utility_status": "approved", "permit_status": "revision_required"}, "Permit Revision Required"),
        ({"permit_status": "approved", "material_order_status": "ordered"}, "Material Ordered"),
        ({"installation_status": "completed"}, "Installation Completed - Ready for Inspection"),
        ({"installation_status": "completed", "inspection_status": "failed"}, "Service Required"),
        ({"inspection_status": "passed"}, "Inspection Passed - Pending PTO"),
        ({"inspection_status": "passed", "pto_submitted_date": date(2025, 2, 1)}, "Awaiting PTO"),
        ({"system_activated_date": date(2025, 3, 1), "pto_approved_date": date(2025, 2, 20)}, "System Active"),
    ],
)
def test_derived_status(fields, expected):
    assert derived_project_status(ProjectTimeline(**fields)) == expected


def test_no_timeline_is_a_new_lead():
    assert derived_project_status(None) == "New Lead"


def test_upsert_creates_then_updates(db, make_customer):
    customer = make_customer()
    upsert_timeline(db, customer.id, permit_status="submitted")
    upsert_timeline(db, customer.id, permit_status="approved", utility_status="approved")
    db.commit()
    rows = db.query(ProjectTimeline).filter(ProjectTimeline.customer_id == customer.id).all()
    assert len(rows) == 1
    assert rows[0].permit_status == "approved"
    assert derived_project_status(rows[0]) == "Permits Approved"


def test_upsert_rejects_unknown_fields(db, make_customer):
    with pytest.raises(ValidationError):
        upsert_timeline(db, make_customer().id, roof_status="done")

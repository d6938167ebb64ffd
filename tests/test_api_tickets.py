import pytest

from solarops.models.models import TimeClockEntry


@pytest.fixture
def tech(make_user):
    return make_user(full_name="Kai Tech", role_category="field_tech")


@pytest.fixture
def customer(make_customer):
    return make_customer()


def test_create_and_filter_tickets(client, tech, customer):
    response = client.post(
        "/tickets",
        json={
            "customer_id": str(customer.id),
            "ticket_type": "installation",
            "scheduled_date": "2025-01-08",
            "start_time": "08:00:00",
            "end_time": "12:00:00",
            "technician_ids": [str(tech.id)],
        },
    )
    assert response.status_code == 200
    ticket = response.json()
    assert ticket["ticket_status"] == "scheduled"
    assert [t["id"] for t in ticket["technicians"]] == [str(tech.id)]

    listed = client.get("/tickets", params={"technician_id": str(tech.id)}).json()
    assert [t["id"] for t in listed] == [ticket["id"]]
    assert client.get("/tickets", params={"ticket_type": "service"}).json() == []


def test_create_rejects_inverted_window(client, customer):
    response = client.post(
        "/tickets",
        json={"customer_id": str(customer.id), "ticket_type": "service", "start_time": "12:00:00", "end_time": "09:00:00"},
    )
    assert response.status_code == 422


def test_close_reasons_listed(client):
    reasons = client.get("/tickets/close-reasons").json()
    assert "Install Complete" in reasons
    assert "Weather Re-Schedule" in reasons


def test_progress_flow(client, db, current_user, tech, customer, make_ticket):
    current_user["user"] = tech
    ticket = make_ticket(customer, ticket_type="installation")
    base = f"/tickets/{ticket.id}/progress"

    moving = client.post(f"{base}/in_transit").json()
    assert moving["action"] == "set"
    assert moving["map_links"]["google"].startswith("https://www.google.com/maps/search/?api=1&query=")

    arrived = client.post(f"{base}/arrived", json={"latitude": 36.74, "longitude": -119.78}).json()
    assert arrived["clock_entry_opened"] is True

    begin = client.post(f"{base}/begin").json()
    assert begin["action"] == "checklist_required"
    assert begin["checklist_phase"] == "installation"
    assert begin["ticket"]["begin_ticket_at"] is None

    dismissed = client.post(f"/tickets/{ticket.id}/checklist/dismiss").json()
    assert dismissed["ticket"]["begin_ticket_at"] is not None

    blocked = client.post(f"{base}/departing")
    assert blocked.status_code == 422
    assert blocked.json()["detail"] == "Please add a description of work performed before departing the site."

    client.put(f"/tickets/{ticket.id}/work-performed", json={"work_performed": "Mounted 20 panels"})
    assert client.post(f"{base}/departing").json()["action"] == "set"

    closed = client.post(f"{base}/closed", json={"close_reason": "Install Complete"}).json()
    assert closed["ticket"]["ticket_status"] == "completed"
    assert closed["ticket"]["pv_installer_id"] == str(tech.id)
    assert {h["name"] for h in closed["hooks"]} == {"update_project_timeline", "close_time_clock"}

    entry = db.query(TimeClockEntry).filter(TimeClockEntry.user_id == tech.id).one()
    assert entry.clock_out_time is not None

    timeline = client.get(f"/customers/{customer.id}/timeline").json()
    assert timeline["installation_status"] == "completed"
    assert timeline["derived_status"] == "Installation Completed - Ready for Inspection"


def test_close_without_reason(client, customer, make_ticket):
    ticket = make_ticket(customer)
    response = client.post(f"/tickets/{ticket.id}/progress/closed")
    assert response.status_code == 422


def test_unknown_step(client, customer, make_ticket):
    ticket = make_ticket(customer)
    assert client.post(f"/tickets/{ticket.id}/progress/lunch").status_code == 422


def test_reassign_technicians(client, tech, make_user, customer, make_ticket):
    ticket = make_ticket(customer)
    helper = make_user(full_name="Lee Helper")
    body = client.put(f"/tickets/{ticket.id}/technicians", json={"technician_ids": [str(tech.id), str(helper.id)]}).json()
    assert {t["id"] for t in body["technicians"]} == {str(tech.id), str(helper.id)}

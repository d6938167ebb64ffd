import pytest

from solarops.services.errors import NotFoundError, ValidationError
from solarops.services.photo_checklists import (
    PHASES,
    add_photo,
    get_checklist,
    get_phase,
    phase_for_ticket,
    remove_photo,
    set_checked,
    set_extra,
    upload_key,
)


@pytest.fixture
def ticket(make_customer, make_ticket):
    return make_ticket(make_customer())


def test_detach_and_reset_share_a_bucket():
    assert PHASES["detach"].bucket == PHASES["reset"].bucket == "detach-photos"
    with pytest.raises(NotFoundError):
        get_phase("roof")


def test_phase_for_ticket(make_customer, make_ticket):
    customer = make_customer()
    assert phase_for_ticket(make_ticket(customer, ticket_type="service")) == "service"
    assert phase_for_ticket(make_ticket(customer, ticket_type="inspection", problem_code="site_survey")) == "site_survey"


def test_upload_key_layout():
    assert upload_key("t1", "roof_north", "IMG_001.HEIC", now_ms=1700000000000) == "t1/roof_north/1700000000000.heic"
    assert upload_key("t1", "roof_north", "", now_ms=5) == "t1/roof_north/5.jpg"


def test_checking_items_upserts_one_row(db, ticket):
    phase = get_phase("installation")
    set_checked(db, phase, ticket.id, "inverter", True)
    set_checked(db, phase, ticket.id, "meter", True)
    set_checked(db, phase, ticket.id, "inverter", False)
    row = get_checklist(db, phase, ticket.id)
    assert row.checked_photos == ["meter"]
    assert db.query(phase.model).count() == 1


def test_photo_upload_and_removal(db, storage, ticket):
    phase = get_phase("installation")
    first = add_photo(db, storage, phase, ticket.id, "inverter", "a.jpg", b"one", "image/jpeg", now_ms=1)
    second = add_photo(db, storage, phase, ticket.id, "inverter", "b.png", b"two", "image/png", now_ms=2)

    row = get_checklist(db, phase, ticket.id)
    assert row.photo_urls == {"inverter": [first, second]}
    assert row.checked_photos == ["inverter"]
    key = f"{ticket.id}/inverter/1.jpg"
    assert storage.exists(phase.bucket, key)

    remove_photo(db, storage, phase, ticket.id, "inverter", first)
    assert not storage.exists(phase.bucket, key)
    row = get_checklist(db, phase, ticket.id)
    assert row.checked_photos == ["inverter"]

    remove_photo(db, storage, phase, ticket.id, "inverter", second)
    row = get_checklist(db, phase, ticket.id)
    assert row.photo_urls == {}
    assert row.checked_photos == []


def test_removing_unknown_photo(db, storage, ticket):
    with pytest.raises(NotFoundError):
        remove_photo(db, storage, get_phase("service"), ticket.id, "panel", "http://x/service-photos/a.jpg")


def test_extra_details_merge(db, ticket):
    phase = get_phase("installation")
    set_extra(db, phase, ticket.id, {"inverter_type": "string"})
    set_extra(db, phase, ticket.id, {"serials": ["A1", "A2"]})
    assert get_checklist(db, phase, ticket.id).extra == {"inverter_type": "string", "serials": ["A1", "A2"]}
    with pytest.raises(ValidationError):
        set_extra(db, phase, ticket.id, ["nope"])

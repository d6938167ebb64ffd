import pytest


@pytest.fixture
def ticket(make_customer, make_ticket):
    return make_ticket(make_customer(), ticket_type="service")


def test_empty_checklist(client, ticket):
    data = client.get(f"/photos/service/{ticket.id}").json()
    assert data["checked_photos"] == []
    assert data["photo_urls"] == {}


def test_unknown_phase(client, ticket):
    assert client.get(f"/photos/roof/{ticket.id}").status_code == 404


def test_check_and_uncheck_item(client, ticket):
    url = f"/photos/service/{ticket.id}/items/panel_label"
    assert client.put(url, json={"checked": True}).json()["checked_photos"] == ["panel_label"]
    assert client.put(url, json={"checked": False}).json()["checked_photos"] == []


def test_upload_serve_and_delete(client, ticket):
    base = f"/photos/service/{ticket.id}/items/inverter"
    response = client.post(f"{base}/upload", files={"file": ("inverter.jpg", b"jpeg-bytes", "image/jpeg")})
    assert response.status_code == 200
    body = response.json()
    url = body["url"]
    assert "/files/local/service-photos/" in url
    assert body["photo_urls"] == {"inverter": [url]}
    assert body["checked_photos"] == ["inverter"]

    served = client.get(url.replace("http://testserver", ""))
    assert served.status_code == 200
    assert served.content == b"jpeg-bytes"

    after = client.delete(base, params={"url": url}).json()
    assert after["photo_urls"] == {}
    assert after["checked_photos"] == []
    assert client.get(url.replace("http://testserver", "")).status_code == 404


def test_delete_unknown_photo(client, ticket):
    response = client.delete(
        f"/photos/service/{ticket.id}/items/inverter",
        params={"url": "http://testserver/files/local/service-photos/x.jpg"},
    )
    assert response.status_code == 404


def test_extra_details(client, ticket):
    url = f"/photos/installation/{ticket.id}/extra"
    client.put(url, json={"inverter_type": "micro"})
    data = client.put(url, json={"serial_numbers": ["S1"]}).json()
    assert data["extra"] == {"inverter_type": "micro", "serial_numbers": ["S1"]}


def test_customer_document_upload(client, make_customer):
    customer = make_customer()
    response = client.post(
        f"/customers/{customer.id}/documents",
        data={"document_type": "utility_bill"},
        files={"file": ("bill.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert response.status_code == 200
    assert "/files/local/customer-documents/" in response.json()["url"]

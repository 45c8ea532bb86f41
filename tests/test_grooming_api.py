"""Grooming bookings and their notifications."""
import pytest


@pytest.fixture
def grooming_payload():
    return {
        "user_id": "ravi@example.com",
        "user_name": "Ravi Kumar",
        "user_email": "ravi@example.com",
        "user_phone": "9876543210",
        "center_id": "center-1",
        "center_name": "Fluffy Cuts",
        "center_email": "bookings@fluffycuts.com",
        "date": "2026-03-12",
        "time": "11:00",
        "pet_type": "Dog",
        "pet_name": "Bruno",
        "selected_services": ["Bath", "Nail trim"],
        "total_cost": 1200,
        "status": "completed",
    }


def test_new_booking_emails_customer_center_and_business(client, mailer, grooming_payload):
    resp = client.post("/grooming-bookings", json=grooming_payload)

    assert resp.status_code == 201
    booking = resp.json()
    assert booking["status"] == "pending"
    assert {m["to"] for m in mailer.sent} == {
        "ravi@example.com", "bookings@fluffycuts.com", "business@petzify.com",
    }
    assert mailer.sent[0]["subject"].endswith(booking["id"][-6:])


def test_status_change_emails_customer(client, mailer, grooming_payload):
    booking = client.post("/grooming-bookings", json=grooming_payload).json()
    mailer.sent.clear()

    resp = client.post(f"/grooming-bookings/{booking['id']}/status", json={"status": "confirmed"})

    assert resp.json()["status"] == "confirmed"
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "ravi@example.com"
    assert "pending" in mailer.sent[0]["html"]


def test_repeated_status_sends_nothing(client, mailer, grooming_payload):
    booking = client.post("/grooming-bookings", json=grooming_payload).json()
    client.post(f"/grooming-bookings/{booking['id']}/status", json={"status": "confirmed"})
    mailer.sent.clear()

    client.post(f"/grooming-bookings/{booking['id']}/status", json={"status": "confirmed"})

    assert mailer.sent == []


def test_cancelled_booking_is_final(client, grooming_payload):
    booking = client.post("/grooming-bookings", json=grooming_payload).json()
    client.post(f"/grooming-bookings/{booking['id']}/status", json={"status": "cancelled"})

    resp = client.post(f"/grooming-bookings/{booking['id']}/status", json={"status": "confirmed"})

    assert resp.status_code == 409


def test_list_by_center(client, grooming_payload):
    client.post("/grooming-bookings", json=grooming_payload)
    client.post("/grooming-bookings", json={**grooming_payload, "center_id": "center-2"})

    resp = client.get("/grooming-bookings", params={"center_id": "center-2"})

    assert [b["center_id"] for b in resp.json()] == ["center-2"]

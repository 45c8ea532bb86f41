"""Thirty-minute appointment reminders."""
from datetime import datetime

import pytest

from database import APPOINTMENTS, utcnow
from notifications import send_appointment_reminders

NOW = datetime(2026, 3, 10, 9, 30)


@pytest.fixture
def add_appointment(db, doctor_id):
    def _create(start_time, status="confirmed", date="2026-03-10", reminder_sent=False):
        result = db[APPOINTMENTS].insert_one({
            "doctor_id": doctor_id,
            "doctor_name": "Asha Rao",
            "patient_name": "Ravi Kumar",
            "patient_email": "ravi@example.com",
            "appointment_date": date,
            "start_time": start_time,
            "end_time": "23:59",
            "status": status,
            "reminder_sent": reminder_sent,
            "created_at": utcnow(),
        })
        return result.inserted_id
    return _create


def test_reminds_patient_and_doctor_once(db, mailer, add_appointment):
    appt_id = add_appointment("10:00")

    assert send_appointment_reminders(db, mailer, now=NOW) == 1
    assert {m["to"] for m in mailer.sent} == {"ravi@example.com", "asha@petzify.com"}
    assert db[APPOINTMENTS].find_one({"_id": appt_id})["reminder_sent"] is True

    mailer.sent.clear()
    assert send_appointment_reminders(db, mailer, now=NOW) == 0
    assert mailer.sent == []


@pytest.mark.parametrize("start_time,status,date", [
    ("11:00", "confirmed", "2026-03-10"),  # too far ahead
    ("09:45", "confirmed", "2026-03-10"),  # too close
    ("10:00", "pending", "2026-03-10"),
    ("10:00", "confirmed", "2026-03-11"),
])
def test_outside_window_or_unconfirmed_skipped(db, mailer, add_appointment, start_time, status, date):
    add_appointment(start_time, status=status, date=date)
    assert send_appointment_reminders(db, mailer, now=NOW) == 0
    assert mailer.sent == []


def test_already_reminded_skipped(db, mailer, add_appointment):
    add_appointment("10:00", reminder_sent=True)
    assert send_appointment_reminders(db, mailer, now=NOW) == 0


def test_reminder_endpoint(client):
    resp = client.post("/tasks/appointment-reminders")
    assert resp.status_code == 200
    assert resp.json() == {"reminded": 0}

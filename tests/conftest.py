"""Shared test fixtures."""
import os
import smtplib

# Must be set before the application modules read their configuration
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["BUSINESS_EMAIL"] = "business@petzify.com"
os.environ["BLOB_PUBLIC_URL"] = "https://cdn.petzify.test"

import mongomock
import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from database import ADMIN, DOCTOR_SLOTS, get_db, utcnow
from mailer import Mailer, get_mailer
from main import app
from storage import BlobStorage, get_storage

PUBLIC_URL = "https://cdn.petzify.test"


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_keys = set()
        self.fail_uploads = False

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail_uploads:
            raise ClientError({"Error": {"Code": "500", "Message": "upload failed"}}, "PutObject")
        self.objects[Key] = {"body": Body, "content_type": ContentType}

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        if Key in self.fail_keys:
            raise ClientError({"Error": {"Code": "500", "Message": "delete failed"}}, "DeleteObject")
        self.objects.pop(Key, None)


class FakeMailer(Mailer):
    """Records outgoing emails instead of talking to SMTP."""

    def __init__(self):
        super().__init__(host="localhost", port=25, username=None, password=None)
        self.sent = []
        self.fail = False

    def send(self, to, subject, html):
        if self.fail:
            raise smtplib.SMTPException("relay unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})

    def to(self, address):
        return [m for m in self.sent if m["to"] == address]


@pytest.fixture
def db():
    return mongomock.MongoClient()["petzify_test"]


@pytest.fixture
def s3():
    return FakeS3Client()


@pytest.fixture
def storage(s3):
    return BlobStorage(client=s3, bucket="petzify-test", public_url=PUBLIC_URL)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(db, storage, mailer):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def doctor_id(db):
    """A doctor account stored in the admin collection."""
    now = utcnow()
    result = db[ADMIN].insert_one({
        "name": "Asha Rao",
        "username": "dr_asha",
        "email": "asha@petzify.com",
        "password_hash": "$2b$04$notarealhashnotarealhashnotarealhashnotarealhash12",
        "role": "doctor",
        "permissions": {},
        "profile_info": {"specialization": "Small Animal Surgery", "license_number": "VET-1234"},
        "created_at": now,
        "updated_at": now,
    })
    return str(result.inserted_id)


@pytest.fixture
def make_slot(db, doctor_id):
    """Factory inserting a slot for the doctor and returning its id."""
    def _create(start="10:00", end="10:30", date="2026-03-10", is_booked=False):
        now = utcnow()
        result = db[DOCTOR_SLOTS].insert_one({
            "doctor_id": doctor_id,
            "date": date,
            "start_time": start,
            "end_time": end,
            "is_booked": is_booked,
            "created_at": now,
            "updated_at": now,
        })
        return str(result.inserted_id)
    return _create


@pytest.fixture
def booking_payload():
    def _create(slot_id, **overrides):
        data = {
            "slot_id": slot_id,
            "patient_name": "Ravi Kumar",
            "patient_email": "ravi@example.com",
            "patient_phone": "9876543210",
            "pet_name": "Bruno",
            "pet_type": "Dog",
            "pet_breed": "Labrador",
            "reason": "Annual checkup",
        }
        data.update(overrides)
        return data
    return _create

"""Service-level endpoints and error mapping."""
from pymongo.errors import ServerSelectionTimeoutError

from database import get_db
from main import app


class UnreachableCollection:
    def find(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("no servers available")


class UnreachableDatabase:
    def __getitem__(self, name):
        return UnreachableCollection()


def test_root(client):
    assert client.get("/").json() == {"message": "Petzify Backend running"}


def test_schema_lists_collections(client):
    schema = client.get("/schema").json()
    assert {"appointments", "doctorSlots", "petBoardingCenters", "doctorPrescriptions"} <= set(schema)


def test_database_outage_maps_to_503(client):
    app.dependency_overrides[get_db] = lambda: UnreachableDatabase()

    resp = client.get("/testimonials")

    assert resp.status_code == 503
    assert resp.json()["detail"] == "Failed to reach the database. Please try again."

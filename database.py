"""
Database helpers

A single MongoClient per process. Endpoints receive the database handle
through the `get_db` dependency so tests can swap in another client.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

# Collection names
ADMIN = "admin"
USERS = "users"
PETS = "pets"
APPOINTMENTS = "appointments"
GROOMING_BOOKINGS = "groomingBookings"
BOARDING_CENTERS = "petBoardingCenters"
PRODUCTS = "products"
ORDERS = "orders"
TESTIMONIALS = "testimonials"
MESSAGES = "messages"
DOCTOR_SLOTS = "doctorSlots"
PRESCRIPTIONS = "doctorPrescriptions"
GROOMING_CENTERS = "groomingCenters"
GROOMING_SERVICES = "groomingServices"
GROOMING_PACKAGES = "groomingPackages"
PRODUCT_REVIEWS = "productReviews"
BOARDING_RATINGS = "boardingRatings"
GROOMING_REVIEWS = "groomingReviews"

db: Optional[Database] = None

if DATABASE_URL:
    try:
        _client = MongoClient(DATABASE_URL)
        db = _client[DATABASE_NAME]
        logger.info(f"MongoDB client created for database '{DATABASE_NAME}'")
    except Exception as e:
        logger.error(f"Failed to create MongoDB client: {e}")
        db = None


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=503, detail="Database is not configured")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid id format")


def serialize(doc: Optional[Dict[str, Any]]):
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            d[k] = v.isoformat()
    return d


def _as_dict(data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    doc = _as_dict(data)
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_document(database: Database, collection_name: str, id_str: str, label: str) -> Dict[str, Any]:
    """Fetch one document by id or raise 404 naming the entity."""
    doc = database[collection_name].find_one({"_id": oid(id_str)})
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


def update_document(
    database: Database, collection_name: str, id_str: str, updates: Dict[str, Any], label: str
) -> Dict[str, Any]:
    """Apply a $set with a fresh updated_at and return the updated document."""
    updates = {**updates, "updated_at": utcnow()}
    res = database[collection_name].update_one({"_id": oid(id_str)}, {"$set": updates})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return database[collection_name].find_one({"_id": oid(id_str)})


def delete_document(database: Database, collection_name: str, id_str: str, label: str) -> None:
    res = database[collection_name].delete_one({"_id": oid(id_str)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail=f"{label} not found")

import logging
import os
import re
import time
from typing import Any, Dict, List, Literal, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
from accounts import (
    PREDEFINED_ROLES,
    current_otp,
    ensure_unique_admin,
    find_customer,
    generate_random_password,
    hash_password,
    new_otp_secret,
    permissions_for_role,
    public_account,
    unique_username,
    upgrade_password,
    verify_otp,
    verify_password,
)
from config import LOG_LEVEL
from database import (
    ADMIN,
    APPOINTMENTS,
    BOARDING_CENTERS,
    DOCTOR_SLOTS,
    BOARDING_RATINGS,
    GROOMING_BOOKINGS,
    GROOMING_CENTERS,
    GROOMING_PACKAGES,
    GROOMING_REVIEWS,
    GROOMING_SERVICES,
    MESSAGES,
    ORDERS,
    PETS,
    PRESCRIPTIONS,
    PRODUCT_REVIEWS,
    PRODUCTS,
    TESTIMONIALS,
    USERS,
    create_document,
    delete_document,
    get_db,
    get_document,
    get_documents,
    oid,
    serialize,
    update_document,
    utcnow,
)
from mailer import Mailer, get_mailer
from notifications import (
    on_appointment_created,
    on_appointment_updated,
    on_grooming_booking_created,
    on_grooming_booking_updated,
    on_order_created,
    on_order_updated,
    on_prescription_created,
    send_admin_credentials,
    send_appointment_reminders,
    send_login_code,
)
from prescriptions import PrescriptionPDF, prescription_key
from scheduling import (
    BOARDING_TRANSITIONS,
    BOOKING_TRANSITIONS,
    ORDER_TRANSITIONS,
    InvalidTransition,
    check_transition,
    find_overlap,
    generate_time_slots,
    normalize_time,
)
from schemas import (
    Admin,
    AdminReply,
    Appointment,
    BoardingCenter,
    Customer,
    DoctorProfile,
    DoctorSlot,
    GroomingBooking,
    GroomingCenter,
    GroomingPackage,
    GroomingService,
    Medication,
    Message,
    Order,
    OrderItem,
    Permissions,
    Pet,
    Prescription,
    Product,
    Review,
    Specification,
    Testimonial,
)
from storage import BlobStorage, get_storage, timestamped_key, validate_image

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Petzify API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Failed to reach the database. Please try again."})


# Helpers

def read_upload(file: UploadFile) -> bytes:
    content = file.file.read()
    validate_image(file.content_type, len(content))
    return content


def apply_transition(current: str, new: str, transitions) -> bool:
    try:
        return check_transition(current, new, transitions)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.get("/")
def root():
    return {"message": "Petzify Backend running"}


@app.get("/test")
def test_database():
    resp = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    db = database.db
    if db is not None:
        resp["database"] = "✅ Available"
        resp["database_name"] = db.name
        resp["connection_status"] = "Connected"
        try:
            resp["collections"] = db.list_collection_names()
            resp["database"] = "✅ Connected & Working"
        except PyMongoError as e:
            resp["database"] = f"⚠️ Connected but error: {str(e)[:60]}"
    return resp


@app.get("/schema")
def get_schema():
    return {
        "admin": Admin.model_json_schema(),
        "users": Customer.model_json_schema(),
        "pets": Pet.model_json_schema(),
        "doctorSlots": DoctorSlot.model_json_schema(),
        "appointments": Appointment.model_json_schema(),
        "doctorPrescriptions": Prescription.model_json_schema(),
        "groomingBookings": GroomingBooking.model_json_schema(),
        "petBoardingCenters": BoardingCenter.model_json_schema(),
        "groomingCenters": GroomingCenter.model_json_schema(),
        "groomingServices": GroomingService.model_json_schema(),
        "groomingPackages": GroomingPackage.model_json_schema(),
        "products": Product.model_json_schema(),
        "orders": Order.model_json_schema(),
        "testimonials": Testimonial.model_json_schema(),
        "messages": Message.model_json_schema(),
        "reviews": Review.model_json_schema(),
    }


# Initial setup and login

class AdminCreate(BaseModel):
    name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    password: str = Field(..., min_length=6)
    confirm_password: str
    role: str = "editor"
    permissions: Optional[Permissions] = None


class AdminUpdate(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[str] = None
    permissions: Optional[Permissions] = None


def insert_admin(db: Database, payload: AdminCreate, role: str) -> Dict[str, Any]:
    if payload.password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    ensure_unique_admin(db, payload.username, payload.email)
    requested = payload.permissions.model_dump() if payload.permissions else None
    admin = Admin(
        name=payload.name,
        username=payload.username,
        email=payload.email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        role=role,
        permissions=Permissions(**permissions_for_role(role, requested)),
        profile_info=DoctorProfile() if role == "doctor" else None,
    )
    new_id = create_document(db, ADMIN, admin)
    logger.info(f"Created admin '{admin.username}' with role {role}")
    return db[ADMIN].find_one({"_id": oid(new_id)})


@app.get("/setup/status")
def setup_status(db: Database = Depends(get_db)):
    return {"admin_exists": db[ADMIN].find_one({}, {"_id": 1}) is not None}


@app.post("/setup", status_code=201)
def initial_setup(payload: AdminCreate, db: Database = Depends(get_db)):
    if db[ADMIN].find_one({}, {"_id": 1}) is not None:
        raise HTTPException(status_code=409, detail="Initial setup has already been completed")
    return public_account(insert_admin(db, payload, "superadmin"))


class AdminLogin(BaseModel):
    username: str
    password: str


@app.post("/auth/admin/login")
def admin_login(payload: AdminLogin, db: Database = Depends(get_db)):
    admin = db[ADMIN].find_one({"username": payload.username})
    if not admin:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    ok, needs_upgrade = verify_password(payload.password, admin)
    if not ok:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    if needs_upgrade:
        upgrade_password(db, ADMIN, admin, payload.password)
    return public_account(admin)


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., pattern=r"^\d{10}$")
    password: str = Field(..., min_length=6)
    confirm_password: str


@app.post("/auth/signup", status_code=201)
def customer_signup(payload: SignupRequest, db: Database = Depends(get_db)):
    if payload.password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if find_customer(db, payload.email):
        raise HTTPException(status_code=409, detail="An account with this email already exists")
    customer = Customer(
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
    )
    new_id = create_document(db, USERS, customer)
    return public_account(db[USERS].find_one({"_id": oid(new_id)}))


class CustomerLogin(BaseModel):
    email: EmailStr
    password: str


@app.post("/auth/login")
def customer_login(payload: CustomerLogin, db: Database = Depends(get_db)):
    customer = find_customer(db, payload.email)
    if not customer:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    ok, needs_upgrade = verify_password(payload.password, customer)
    if not ok:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if needs_upgrade:
        upgrade_password(db, USERS, customer, payload.password)
    return public_account(customer)


class OtpRequest(BaseModel):
    email: EmailStr


class OtpVerify(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)


@app.post("/auth/otp/request")
def request_login_code(
    payload: OtpRequest,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    customer = find_customer(db, payload.email)
    # Same answer whether or not the account exists
    if customer:
        secret = new_otp_secret()
        db[USERS].update_one({"_id": customer["_id"]}, {"$set": {"otp_secret": secret}})
        background_tasks.add_task(send_login_code, mailer, customer, current_otp(secret))
    return {"sent": True}


@app.post("/auth/otp/verify")
def verify_login_code(payload: OtpVerify, db: Database = Depends(get_db)):
    customer = find_customer(db, payload.email)
    if not customer or not verify_otp(customer.get("otp_secret"), payload.code):
        raise HTTPException(status_code=401, detail="Invalid or expired code")
    db[USERS].update_one({"_id": customer["_id"]}, {"$unset": {"otp_secret": ""}})
    return public_account(customer)


# User management (admin collection)

@app.get("/admin/users")
def list_admin_users(role: Optional[str] = None, db: Database = Depends(get_db)):
    q = {"role": role} if role else {}
    docs = get_documents(db, ADMIN, q, sort=[("created_at", -1)])
    return [public_account(d) for d in docs]


@app.post("/admin/users", status_code=201)
def create_admin_user(payload: AdminCreate, db: Database = Depends(get_db)):
    return public_account(insert_admin(db, payload, payload.role))


@app.patch("/admin/users/{user_id}")
def update_admin_user(user_id: str, payload: AdminUpdate, db: Database = Depends(get_db)):
    current = get_document(db, ADMIN, user_id, "User")
    updates = payload.model_dump(exclude_none=True)
    ensure_unique_admin(db, updates.get("username"), updates.get("email"), exclude_id=user_id)

    password = updates.pop("password", None)
    if password:
        updates["password_hash"] = hash_password(password)
    role = updates.get("role", current.get("role"))
    if "role" in updates or "permissions" in updates:
        updates["permissions"] = permissions_for_role(role, updates.get("permissions") or current.get("permissions"))
    if not updates:
        return public_account(current)
    return public_account(update_document(db, ADMIN, user_id, updates, "User"))


@app.delete("/admin/users/{user_id}")
def delete_admin_user(user_id: str, db: Database = Depends(get_db)):
    delete_document(db, ADMIN, user_id, "User")
    return {"deleted": True}


@app.get("/roles")
def list_roles():
    return {"roles": list(PREDEFINED_ROLES)}


# Doctors

def get_doctor(db: Database, doctor_id: str) -> Dict[str, Any]:
    doc = db[ADMIN].find_one({"_id": oid(doctor_id), "role": "doctor"})
    if not doc:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return doc


@app.get("/doctors")
def list_doctors(db: Database = Depends(get_db)):
    docs = get_documents(db, ADMIN, {"role": "doctor"})
    return [public_account(d) for d in docs]


@app.get("/doctors/{doctor_id}")
def get_doctor_profile(doctor_id: str, db: Database = Depends(get_db)):
    return public_account(get_doctor(db, doctor_id))


class DoctorProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    specialization: Optional[str] = None
    experience: Optional[str] = None
    about: Optional[str] = None
    consultation_fee: Optional[float] = Field(None, ge=0)
    license_number: Optional[str] = None
    working_days: Optional[Dict[str, bool]] = None


@app.patch("/doctors/{doctor_id}")
def update_doctor(doctor_id: str, payload: DoctorProfileUpdate, db: Database = Depends(get_db)):
    doctor = get_doctor(db, doctor_id)
    changes = payload.model_dump(exclude_none=True)
    updates: Dict[str, Any] = {k: changes.pop(k) for k in ("name", "phone") if k in changes}
    if changes:
        profile = {**(doctor.get("profile_info") or DoctorProfile().model_dump()), **changes}
        updates["profile_info"] = profile
    if not updates:
        return public_account(doctor)
    return public_account(update_document(db, ADMIN, doctor_id, updates, "Doctor"))


# Doctor slots

class SlotRange(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    start_time: str
    end_time: str
    duration_minutes: int = Field(30, gt=0, le=480)


class SlotCreate(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    start_time: str
    end_time: str


def build_slots(payload: SlotRange) -> List[Dict[str, str]]:
    try:
        return generate_time_slots(payload.start_time, payload.end_time, payload.duration_minutes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/doctors/{doctor_id}/slots/preview")
def preview_slots(doctor_id: str, payload: SlotRange, db: Database = Depends(get_db)):
    get_doctor(db, doctor_id)
    return {"date": payload.date, "slots": build_slots(payload)}


@app.post("/doctors/{doctor_id}/slots/bulk", status_code=201)
def create_slots_bulk(doctor_id: str, payload: SlotRange, db: Database = Depends(get_db)):
    get_doctor(db, doctor_id)
    slots = build_slots(payload)
    if not slots:
        raise HTTPException(status_code=400, detail="The time range is shorter than one slot")
    ids = [
        create_document(db, DOCTOR_SLOTS, DoctorSlot(doctor_id=doctor_id, date=payload.date, **slot))
        for slot in slots
    ]
    logger.info(f"Added {len(ids)} slots for doctor {doctor_id} on {payload.date}")
    return {"created": len(ids), "ids": ids}


@app.post("/doctors/{doctor_id}/slots", status_code=201)
def create_slot(doctor_id: str, payload: SlotCreate, db: Database = Depends(get_db)):
    get_doctor(db, doctor_id)
    try:
        start, end = normalize_time(payload.start_time), normalize_time(payload.end_time)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if start >= end:
        raise HTTPException(status_code=400, detail="End time must be after start time")
    existing = get_documents(db, DOCTOR_SLOTS, {"doctor_id": doctor_id, "date": payload.date})
    if find_overlap(start, end, existing):
        raise HTTPException(status_code=409, detail="This time slot overlaps with an existing slot")
    slot = DoctorSlot(doctor_id=doctor_id, date=payload.date, start_time=start, end_time=end)
    new_id = create_document(db, DOCTOR_SLOTS, slot)
    return serialize(db[DOCTOR_SLOTS].find_one({"_id": oid(new_id)}))


@app.get("/doctors/{doctor_id}/slots")
def list_slots(doctor_id: str, date: str, available_only: bool = False, db: Database = Depends(get_db)):
    q: Dict[str, Any] = {"doctor_id": doctor_id, "date": date}
    if available_only:
        q["is_booked"] = False
    docs = get_documents(db, DOCTOR_SLOTS, q, sort=[("start_time", 1)])
    return [serialize(d) for d in docs]


@app.delete("/slots/{slot_id}")
def delete_slot(slot_id: str, db: Database = Depends(get_db)):
    res = db[DOCTOR_SLOTS].delete_one({"_id": oid(slot_id), "is_booked": False})
    if res.deleted_count == 0:
        get_document(db, DOCTOR_SLOTS, slot_id, "Slot")
        raise HTTPException(status_code=409, detail="Cannot delete a booked slot")
    return {"deleted": True}


# Appointments

class BookingRequest(BaseModel):
    slot_id: str
    patient_name: str = Field(..., min_length=1)
    patient_email: EmailStr
    patient_phone: str = Field(..., min_length=1)
    pet_name: Optional[str] = None
    pet_type: Optional[str] = None
    pet_breed: Optional[str] = None
    pet_age: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    # Date and times come from the slot; moving an appointment means picking a new slot
    model_config = ConfigDict(extra="forbid")

    slot_id: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str
    actor: Literal["customer", "admin", "doctor"] = "admin"


def claim_slot(db: Database, slot_id: str) -> Dict[str, Any]:
    # Claim the slot atomically so two bookings cannot both win it
    slot = db[DOCTOR_SLOTS].find_one_and_update(
        {"_id": oid(slot_id), "is_booked": False},
        {"$set": {"is_booked": True, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not slot:
        get_document(db, DOCTOR_SLOTS, slot_id, "Slot")
        raise HTTPException(status_code=409, detail="Sorry, this slot is no longer available. Please select another time.")
    return slot


def release_slot(db: Database, slot_id: Optional[str]) -> None:
    if slot_id:
        db[DOCTOR_SLOTS].update_one({"_id": oid(slot_id)}, {"$set": {"is_booked": False, "updated_at": utcnow()}})


@app.post("/appointments", status_code=201)
def book_appointment(
    payload: BookingRequest,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    slot = claim_slot(db, payload.slot_id)

    try:
        doctor = db[ADMIN].find_one({"_id": oid(slot["doctor_id"])}) or {}
        appointment = Appointment(
            doctor_id=slot["doctor_id"],
            doctor_name=doctor.get("name"),
            appointment_date=slot["date"],
            start_time=slot["start_time"],
            end_time=slot["end_time"],
            **payload.model_dump(),
        )
        appointment_id = create_document(db, APPOINTMENTS, appointment)
    except Exception:
        release_slot(db, payload.slot_id)
        raise

    logger.info(f"Booked appointment {appointment_id} on slot {payload.slot_id}")
    background_tasks.add_task(on_appointment_created, db, mailer, appointment_id)
    return serialize(db[APPOINTMENTS].find_one({"_id": oid(appointment_id)}))


@app.get("/appointments")
def list_appointments(
    doctor_id: Optional[str] = None,
    status: Optional[str] = None,
    patient_email: Optional[str] = None,
    date: Optional[str] = None,
    limit: Optional[int] = None,
    db: Database = Depends(get_db),
):
    q: Dict[str, Any] = {}
    if doctor_id:
        q["doctor_id"] = doctor_id
    if status:
        q["status"] = status
    if patient_email:
        q["patient_email"] = patient_email
    if date:
        q["appointment_date"] = date
    docs = get_documents(db, APPOINTMENTS, q, limit=limit, sort=[("appointment_date", -1), ("start_time", 1)])
    return [serialize(d) for d in docs]


@app.get("/appointments/{appointment_id}")
def get_appointment(appointment_id: str, db: Database = Depends(get_db)):
    return serialize(get_document(db, APPOINTMENTS, appointment_id, "Appointment"))


@app.patch("/appointments/{appointment_id}")
def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdate,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    before = get_document(db, APPOINTMENTS, appointment_id, "Appointment")
    updates = payload.model_dump(exclude_none=True)
    new_slot_id = updates.get("slot_id")
    if new_slot_id == before.get("slot_id"):
        updates.pop("slot_id", None)
        new_slot_id = None
    if not updates:
        return serialize(before)

    if new_slot_id:
        if before.get("status") not in ("pending", "confirmed"):
            raise HTTPException(status_code=409, detail="Only pending or confirmed appointments can be rescheduled")
        target = get_document(db, DOCTOR_SLOTS, new_slot_id, "Slot")
        if target.get("doctor_id") != before.get("doctor_id"):
            raise HTTPException(status_code=400, detail="Slot belongs to a different doctor")
        slot = claim_slot(db, new_slot_id)
        updates.update(appointment_date=slot["date"], start_time=slot["start_time"], end_time=slot["end_time"])

    try:
        after = update_document(db, APPOINTMENTS, appointment_id, updates, "Appointment")
    except Exception:
        if new_slot_id:
            release_slot(db, new_slot_id)
        raise
    if new_slot_id:
        release_slot(db, before.get("slot_id"))
        logger.info(f"Moved appointment {appointment_id} to slot {new_slot_id}")
    background_tasks.add_task(on_appointment_updated, db, mailer, before, after)
    return serialize(after)


@app.post("/appointments/{appointment_id}/status")
def change_appointment_status(
    appointment_id: str,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    before = get_document(db, APPOINTMENTS, appointment_id, "Appointment")
    if not apply_transition(before.get("status", "pending"), payload.status, BOOKING_TRANSITIONS):
        return serialize(before)

    updates: Dict[str, Any] = {"status": payload.status}
    if payload.status == "cancelled":
        updates["cancelled_at"] = utcnow()
        updates["cancelled_by"] = payload.actor
    after = update_document(db, APPOINTMENTS, appointment_id, updates, "Appointment")
    if payload.status == "cancelled":
        release_slot(db, before.get("slot_id"))
    logger.info(f"Appointment {appointment_id} status {before.get('status')} -> {payload.status}")
    background_tasks.add_task(on_appointment_updated, db, mailer, before, after)
    return serialize(after)


@app.delete("/appointments/{appointment_id}")
def delete_appointment(appointment_id: str, db: Database = Depends(get_db)):
    appt = get_document(db, APPOINTMENTS, appointment_id, "Appointment")
    delete_document(db, APPOINTMENTS, appointment_id, "Appointment")
    if appt.get("status") in ("pending", "confirmed"):
        release_slot(db, appt.get("slot_id"))
    return {"deleted": True}


# Prescriptions

class PrescriptionCreate(BaseModel):
    medications: List[Medication] = Field(..., min_length=1)
    notes: Optional[str] = None


def save_prescription(
    db: Database,
    storage: BlobStorage,
    appointment: Dict[str, Any],
    pdf: bytes,
    kind: str,
    medications: Optional[List[Dict[str, str]]] = None,
    notes: Optional[str] = None,
) -> str:
    appointment_id = str(appointment["_id"])
    key = prescription_key(appointment_id, int(time.time() * 1000))
    url = storage.upload(key, pdf, "application/pdf")
    prescription = Prescription(
        appointment_id=appointment_id,
        doctor_id=appointment.get("doctor_id") or "unknown",
        doctor_name=appointment.get("doctor_name") or "Unknown Doctor",
        patient_name=appointment.get("patient_name") or "Unknown Patient",
        patient_email=appointment.get("patient_email"),
        pet_name=appointment.get("pet_name") or "N/A",
        medications=medications or [],
        notes=notes,
        prescription_url=url,
        file_path=key,
        type=kind,
    )
    return create_document(db, PRESCRIPTIONS, prescription)


@app.post("/appointments/{appointment_id}/prescriptions", status_code=201)
def create_prescription(
    appointment_id: str,
    payload: PrescriptionCreate,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    mailer: Mailer = Depends(get_mailer),
):
    appointment = get_document(db, APPOINTMENTS, appointment_id, "Appointment")
    doctor = db[ADMIN].find_one({"_id": oid(appointment["doctor_id"])}) if appointment.get("doctor_id") else None
    medications = [m.model_dump() for m in payload.medications]
    pdf = PrescriptionPDF(doctor or {}, appointment, medications, payload.notes).generate()
    prescription_id = save_prescription(db, storage, appointment, pdf, "generated", medications, payload.notes)
    background_tasks.add_task(on_prescription_created, db, mailer, prescription_id)
    return serialize(db[PRESCRIPTIONS].find_one({"_id": oid(prescription_id)}))


@app.post("/appointments/{appointment_id}/prescriptions/upload", status_code=201)
def upload_prescription(
    appointment_id: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    mailer: Mailer = Depends(get_mailer),
):
    appointment = get_document(db, APPOINTMENTS, appointment_id, "Appointment")
    if file.content_type != "application/pdf":
        raise HTTPException(status_code=400, detail="Prescriptions must be PDF files")
    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    prescription_id = save_prescription(db, storage, appointment, content, "uploaded")
    background_tasks.add_task(on_prescription_created, db, mailer, prescription_id)
    return serialize(db[PRESCRIPTIONS].find_one({"_id": oid(prescription_id)}))


@app.get("/prescriptions")
def list_prescriptions(
    patient_email: Optional[str] = None,
    doctor_id: Optional[str] = None,
    appointment_id: Optional[str] = None,
    db: Database = Depends(get_db),
):
    q: Dict[str, Any] = {}
    if patient_email:
        q["patient_email"] = patient_email
    if doctor_id:
        q["doctor_id"] = doctor_id
    if appointment_id:
        q["appointment_id"] = appointment_id
    docs = get_documents(db, PRESCRIPTIONS, q, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


# Grooming bookings

@app.post("/grooming-bookings", status_code=201)
def create_grooming_booking(
    payload: GroomingBooking,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    data = payload.model_dump()
    data["status"] = "pending"
    booking_id = create_document(db, GROOMING_BOOKINGS, data)
    background_tasks.add_task(on_grooming_booking_created, db, mailer, booking_id)
    return serialize(db[GROOMING_BOOKINGS].find_one({"_id": oid(booking_id)}))


@app.get("/grooming-bookings")
def list_grooming_bookings(
    center_id: Optional[str] = None,
    user_email: Optional[str] = None,
    status: Optional[str] = None,
    db: Database = Depends(get_db),
):
    q: Dict[str, Any] = {}
    if center_id:
        q["center_id"] = center_id
    if user_email:
        q["user_email"] = user_email
    if status:
        q["status"] = status
    docs = get_documents(db, GROOMING_BOOKINGS, q, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@app.get("/grooming-bookings/{booking_id}")
def get_grooming_booking(booking_id: str, db: Database = Depends(get_db)):
    return serialize(get_document(db, GROOMING_BOOKINGS, booking_id, "Booking"))


@app.post("/grooming-bookings/{booking_id}/status")
def change_grooming_status(
    booking_id: str,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    before = get_document(db, GROOMING_BOOKINGS, booking_id, "Booking")
    if not apply_transition(before.get("status", "pending"), payload.status, BOOKING_TRANSITIONS):
        return serialize(before)
    after = update_document(db, GROOMING_BOOKINGS, booking_id, {"status": payload.status}, "Booking")
    background_tasks.add_task(on_grooming_booking_updated, mailer, before, after)
    return serialize(after)


# Partner centers

class CenterStatusUpdate(BaseModel):
    status: str


def create_center_admin(
    db: Database,
    background_tasks: BackgroundTasks,
    mailer: Mailer,
    kind: str,
    center_id: str,
    center_name: str,
    contact_name: Optional[str],
    email: str,
    phone: Optional[str],
) -> Dict[str, Any]:
    """Create the managing account for an approved center and email its credentials."""
    ensure_unique_admin(db, None, email)
    slug = "_".join((center_name or "center").lower().split())
    password = generate_random_password(12)
    role = f"{kind}_admin"
    new_admin = Admin(
        name=contact_name or center_name,
        username=unique_username(db, f"{kind}_{slug}"),
        email=email,
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        permissions=Permissions(**permissions_for_role(role)),
        center_id=center_id,
    )
    admin_id = create_document(db, ADMIN, new_admin)
    admin = db[ADMIN].find_one({"_id": oid(admin_id)})
    background_tasks.add_task(send_admin_credentials, mailer, center_name or "", admin, password)
    logger.info(f"Approved {kind} center {center_id}, created admin {new_admin.username}")
    return admin


# Pet boarding centers

@app.post("/boarding-centers", status_code=201)
def register_boarding_center(payload: BoardingCenter, db: Database = Depends(get_db)):
    data = payload.model_dump()
    data["status"] = "pending"
    data["admin_id"] = None
    center_id = create_document(db, BOARDING_CENTERS, data)
    logger.info(f"Boarding center '{payload.center_name}' registered, awaiting approval")
    return serialize(db[BOARDING_CENTERS].find_one({"_id": oid(center_id)}))


@app.get("/boarding-centers")
def list_boarding_centers(status: Optional[str] = None, city: Optional[str] = None, db: Database = Depends(get_db)):
    q: Dict[str, Any] = {}
    if status:
        q["status"] = status
    if city:
        q["city"] = {"$regex": f"^{re.escape(city)}$", "$options": "i"}
    docs = get_documents(db, BOARDING_CENTERS, q, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@app.get("/boarding-centers/{center_id}")
def get_boarding_center(center_id: str, db: Database = Depends(get_db)):
    return serialize(get_document(db, BOARDING_CENTERS, center_id, "Boarding center"))


@app.post("/boarding-centers/{center_id}/status")
def change_boarding_status(
    center_id: str,
    payload: CenterStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    center = get_document(db, BOARDING_CENTERS, center_id, "Boarding center")
    if not apply_transition(center.get("status", "pending"), payload.status, BOARDING_TRANSITIONS):
        return {"center": serialize(center), "admin": None}

    updates: Dict[str, Any] = {"status": payload.status}
    admin = None
    if payload.status == "approved":
        admin = create_center_admin(
            db, background_tasks, mailer, "boarding", center_id, center.get("center_name"),
            center.get("owner_name"), center["email"], center.get("phone_number"),
        )
        updates["admin_id"] = str(admin["_id"])

    center = update_document(db, BOARDING_CENTERS, center_id, updates, "Boarding center")
    return {"center": serialize(center), "admin": public_account(admin)}


# Grooming centers

class GroomingServiceCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    duration: int = Field(30, gt=0)


class GroomingServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[int] = Field(None, gt=0)


class GroomingPackageCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    service_ids: List[str] = Field(..., min_length=1)


class GroomingPackageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    service_ids: Optional[List[str]] = Field(None, min_length=1)


def bundle_services(db: Database, center_id: str, service_ids: List[str], price: float) -> Dict[str, Any]:
    """
    Resolve a package's services and price it against them.

    Every service must belong to the package's center. The discount is the
    share of the services' total value the package price saves, in whole
    percent, and never negative.
    """
    ids = list(dict.fromkeys(service_ids))
    docs = {str(d["_id"]): d for d in db[GROOMING_SERVICES].find(
        {"_id": {"$in": [oid(i) for i in ids]}, "center_id": center_id}
    )}
    missing = [i for i in ids if i not in docs]
    if missing:
        raise HTTPException(status_code=400, detail=f"Services not offered by this center: {', '.join(missing)}")

    services = [{"id": i, "name": docs[i]["name"], "price": float(docs[i]["price"])} for i in ids]
    original_value = round(sum(s["price"] for s in services), 2)
    discount = round((original_value - price) / original_value * 100) if original_value > 0 else 0
    return {"services": services, "original_value": original_value, "discount_percentage": max(discount, 0)}


@app.post("/grooming-centers", status_code=201)
def register_grooming_center(payload: GroomingCenter, db: Database = Depends(get_db)):
    data = payload.model_dump()
    data["status"] = "pending"
    data["admin_id"] = None
    center_id = create_document(db, GROOMING_CENTERS, data)
    logger.info(f"Grooming center '{payload.name}' registered, awaiting approval")
    return serialize(db[GROOMING_CENTERS].find_one({"_id": oid(center_id)}))


@app.get("/grooming-centers")
def list_grooming_centers(status: Optional[str] = None, city: Optional[str] = None, db: Database = Depends(get_db)):
    q: Dict[str, Any] = {}
    if status:
        q["status"] = status
    if city:
        q["city"] = {"$regex": f"^{re.escape(city)}$", "$options": "i"}
    docs = get_documents(db, GROOMING_CENTERS, q, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@app.get("/grooming-centers/{center_id}")
def get_grooming_center(center_id: str, db: Database = Depends(get_db)):
    return serialize(get_document(db, GROOMING_CENTERS, center_id, "Grooming center"))


@app.post("/grooming-centers/{center_id}/status")
def change_grooming_center_status(
    center_id: str,
    payload: CenterStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    center = get_document(db, GROOMING_CENTERS, center_id, "Grooming center")
    if not apply_transition(center.get("status", "pending"), payload.status, BOARDING_TRANSITIONS):
        return {"center": serialize(center), "admin": None}

    updates: Dict[str, Any] = {"status": payload.status}
    admin = None
    if payload.status == "approved":
        admin = create_center_admin(
            db, background_tasks, mailer, "grooming", center_id, center.get("name"),
            None, center["email"], center.get("phone"),
        )
        updates["admin_id"] = str(admin["_id"])

    center = update_document(db, GROOMING_CENTERS, center_id, updates, "Grooming center")
    return {"center": serialize(center), "admin": public_account(admin)}


@app.post("/grooming-centers/{center_id}/services", status_code=201)
def create_grooming_service(center_id: str, payload: GroomingServiceCreate, db: Database = Depends(get_db)):
    get_document(db, GROOMING_CENTERS, center_id, "Grooming center")
    service = GroomingService(center_id=center_id, **payload.model_dump())
    new_id = create_document(db, GROOMING_SERVICES, service)
    return serialize(db[GROOMING_SERVICES].find_one({"_id": oid(new_id)}))


@app.get("/grooming-centers/{center_id}/services")
def list_grooming_services(center_id: str, db: Database = Depends(get_db)):
    docs = get_documents(db, GROOMING_SERVICES, {"center_id": center_id}, sort=[("name", 1)])
    return [serialize(d) for d in docs]


@app.patch("/grooming-services/{service_id}")
def update_grooming_service(service_id: str, payload: GroomingServiceUpdate, db: Database = Depends(get_db)):
    updates = payload.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    return serialize(update_document(db, GROOMING_SERVICES, service_id, updates, "Grooming service"))


@app.delete("/grooming-services/{service_id}")
def delete_grooming_service(service_id: str, db: Database = Depends(get_db)):
    delete_document(db, GROOMING_SERVICES, service_id, "Grooming service")
    return {"deleted": True}


@app.post("/grooming-centers/{center_id}/packages", status_code=201)
def create_grooming_package(center_id: str, payload: GroomingPackageCreate, db: Database = Depends(get_db)):
    get_document(db, GROOMING_CENTERS, center_id, "Grooming center")
    package = GroomingPackage(
        center_id=center_id,
        name=payload.name,
        description=payload.description,
        price=payload.price,
        **bundle_services(db, center_id, payload.service_ids, payload.price),
    )
    new_id = create_document(db, GROOMING_PACKAGES, package)
    return serialize(db[GROOMING_PACKAGES].find_one({"_id": oid(new_id)}))


@app.get("/grooming-centers/{center_id}/packages")
def list_grooming_packages(center_id: str, db: Database = Depends(get_db)):
    docs = get_documents(db, GROOMING_PACKAGES, {"center_id": center_id}, sort=[("price", 1)])
    return [serialize(d) for d in docs]


@app.patch("/grooming-packages/{package_id}")
def update_grooming_package(package_id: str, payload: GroomingPackageUpdate, db: Database = Depends(get_db)):
    package = get_document(db, GROOMING_PACKAGES, package_id, "Grooming package")
    updates = payload.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    service_ids = updates.pop("service_ids", None)
    if service_ids is not None or "price" in updates:
        ids = service_ids or [s["id"] for s in package.get("services", [])]
        updates.update(bundle_services(db, package["center_id"], ids, updates.get("price", package["price"])))
    return serialize(update_document(db, GROOMING_PACKAGES, package_id, updates, "Grooming package"))


@app.delete("/grooming-packages/{package_id}")
def delete_grooming_package(package_id: str, db: Database = Depends(get_db)):
    delete_document(db, GROOMING_PACKAGES, package_id, "Grooming package")
    return {"deleted": True}


# Products

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    featured: Optional[bool] = None
    images: Optional[List[str]] = None
    specifications: Optional[List[Specification]] = None
    tags: Optional[List[str]] = None


@app.get("/products")
def list_products(
    q: Optional[str] = None,
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    db: Database = Depends(get_db),
):
    filt: Dict[str, Any] = {}
    if q:
        pattern = re.escape(q)
        filt["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
            {"tags": {"$regex": pattern, "$options": "i"}},
        ]
    if category:
        filt["category"] = category
    if featured is not None:
        filt["featured"] = featured
    docs = get_documents(db, PRODUCTS, filt, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return serialize(get_document(db, PRODUCTS, product_id, "Product"))


@app.post("/products", status_code=201)
def create_product(payload: Product, db: Database = Depends(get_db)):
    data = payload.model_dump()
    data["specifications"] = [s for s in data["specifications"] if s["key"].strip() and s["value"].strip()]
    pid = create_document(db, PRODUCTS, data)
    return serialize(db[PRODUCTS].find_one({"_id": oid(pid)}))


@app.patch("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, db: Database = Depends(get_db)):
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if updates.get("specifications") is not None:
        updates["specifications"] = [s for s in updates["specifications"] if s["key"].strip() and s["value"].strip()]
    return serialize(update_document(db, PRODUCTS, product_id, updates, "Product"))


@app.post("/products/{product_id}/images")
def upload_product_image(
    product_id: str,
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
):
    get_document(db, PRODUCTS, product_id, "Product")
    content = read_upload(file)
    url = storage.upload(timestamped_key("products", file.filename), content, file.content_type)
    db[PRODUCTS].update_one({"_id": oid(product_id)}, {"$push": {"images": url}, "$set": {"updated_at": utcnow()}})
    return serialize(db[PRODUCTS].find_one({"_id": oid(product_id)}))


@app.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    product = get_document(db, PRODUCTS, product_id, "Product")
    delete_document(db, PRODUCTS, product_id, "Product")
    failed = [url for url in product.get("images") or [] if not storage.delete_quietly(storage.key_from_url(url))]
    if failed:
        logger.warning(f"Product {product_id} deleted but {len(failed)} image(s) could not be removed")
    return {"deleted": True, "images_not_removed": failed}


# Orders

class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    user_email: EmailStr
    user_name: Optional[str] = None
    phone: Optional[str] = None
    shipping_address: Optional[str] = None
    items: List[CartItem] = Field(..., min_length=1)


@app.post("/orders", status_code=201)
def create_order(
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    # Repeated lines for one product draw on the same stock
    quantities: Dict[str, int] = {}
    for item in payload.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

    order_items: List[OrderItem] = []
    total = 0.0
    names: Dict[str, str] = {}
    for product_id, quantity in quantities.items():
        prod = get_document(db, PRODUCTS, product_id, f"Product {product_id}")
        names[product_id] = prod.get("name", "")
        if prod.get("stock", 0) < quantity:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {prod.get('name')}")
        price = float(prod.get("sale_price") or prod.get("price", 0))
        total += price * quantity
        order_items.append(OrderItem(product_id=product_id, name=names[product_id], price=price, quantity=quantity))

    reserved: List[str] = []
    for product_id, quantity in quantities.items():
        res = db[PRODUCTS].update_one(
            {"_id": oid(product_id), "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}},
        )
        if res.modified_count == 0:
            for done in reserved:
                db[PRODUCTS].update_one({"_id": oid(done)}, {"$inc": {"stock": quantities[done]}})
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {names[product_id]}")
        reserved.append(product_id)

    order = Order(
        user_email=payload.user_email,
        user_name=payload.user_name,
        phone=payload.phone,
        shipping_address=payload.shipping_address,
        items=order_items,
        total_amount=round(total, 2),
    )
    order_id = create_document(db, ORDERS, order)
    background_tasks.add_task(on_order_created, db, mailer, order_id)
    return serialize(db[ORDERS].find_one({"_id": oid(order_id)}))


@app.get("/orders")
def list_orders(user_email: Optional[str] = None, status: Optional[str] = None, db: Database = Depends(get_db)):
    q: Dict[str, Any] = {}
    if user_email:
        q["user_email"] = user_email
    if status:
        q["status"] = status
    docs = get_documents(db, ORDERS, q, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@app.post("/orders/{order_id}/status")
def change_order_status(
    order_id: str,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    before = get_document(db, ORDERS, order_id, "Order")
    if not apply_transition(before.get("status", "pending"), payload.status, ORDER_TRANSITIONS):
        return serialize(before)
    after = update_document(db, ORDERS, order_id, {"status": payload.status}, "Order")
    background_tasks.add_task(on_order_updated, mailer, before, after)
    return serialize(after)


# Testimonials

class TestimonialUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    content: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)


@app.get("/testimonials")
def list_testimonials(db: Database = Depends(get_db)):
    docs = get_documents(db, TESTIMONIALS, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@app.post("/testimonials", status_code=201)
def create_testimonial(payload: Testimonial, db: Database = Depends(get_db)):
    tid = create_document(db, TESTIMONIALS, payload)
    return serialize(db[TESTIMONIALS].find_one({"_id": oid(tid)}))


@app.patch("/testimonials/{testimonial_id}")
def update_testimonial(testimonial_id: str, payload: TestimonialUpdate, db: Database = Depends(get_db)):
    updates = payload.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    return serialize(update_document(db, TESTIMONIALS, testimonial_id, updates, "Testimonial"))


@app.post("/testimonials/{testimonial_id}/image")
def upload_testimonial_image(
    testimonial_id: str,
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
):
    current = get_document(db, TESTIMONIALS, testimonial_id, "Testimonial")
    content = read_upload(file)
    key = timestamped_key("testimonials", file.filename)
    url = storage.upload(key, content, file.content_type)
    # Old image goes only after the new one is stored
    storage.delete_quietly(current.get("file_name"))
    return serialize(update_document(db, TESTIMONIALS, testimonial_id, {"image": url, "file_name": key}, "Testimonial"))


@app.delete("/testimonials/{testimonial_id}")
def delete_testimonial(testimonial_id: str, db: Database = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    testimonial = get_document(db, TESTIMONIALS, testimonial_id, "Testimonial")
    delete_document(db, TESTIMONIALS, testimonial_id, "Testimonial")
    storage.delete_quietly(testimonial.get("file_name"))
    return {"deleted": True}


# Contact messages

@app.post("/messages", status_code=201)
def create_message(payload: Message, db: Database = Depends(get_db)):
    data = payload.model_dump()
    data["status"] = "unread"
    mid = create_document(db, MESSAGES, data)
    return {"id": mid}


@app.get("/messages")
def list_messages(status: Optional[str] = None, limit: int = 50, db: Database = Depends(get_db)):
    q = {"status": status} if status else {}
    docs = get_documents(db, MESSAGES, q, limit=limit, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@app.post("/messages/{message_id}/read")
def mark_message_read(message_id: str, db: Database = Depends(get_db)):
    return serialize(update_document(db, MESSAGES, message_id, {"status": "read"}, "Message"))


@app.delete("/messages/{message_id}")
def delete_message(message_id: str, db: Database = Depends(get_db)):
    delete_document(db, MESSAGES, message_id, "Message")
    return {"deleted": True}


# Pets

class PetUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    breed: Optional[str] = None
    birth_date: Optional[str] = None
    gender: Optional[str] = None
    weight: Optional[str] = None
    color: Optional[str] = None
    microchip_number: Optional[str] = None
    notes: Optional[str] = None


@app.get("/pets")
def list_pets(user_id: str, db: Database = Depends(get_db)):
    docs = get_documents(db, PETS, {"user_id": user_id})
    return [serialize(d) for d in docs]


@app.post("/pets", status_code=201)
def create_pet(payload: Pet, db: Database = Depends(get_db)):
    pid = create_document(db, PETS, payload)
    return serialize(db[PETS].find_one({"_id": oid(pid)}))


@app.patch("/pets/{pet_id}")
def update_pet(pet_id: str, payload: PetUpdate, db: Database = Depends(get_db)):
    updates = payload.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    return serialize(update_document(db, PETS, pet_id, updates, "Pet"))


@app.post("/pets/{pet_id}/image")
def upload_pet_image(
    pet_id: str,
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
):
    pet = get_document(db, PETS, pet_id, "Pet")
    content = read_upload(file)
    url = storage.upload(timestamped_key(f"pet-images/{pet['user_id']}", file.filename), content, file.content_type)
    storage.delete_quietly(storage.key_from_url(pet.get("image_url") or ""))
    return serialize(update_document(db, PETS, pet_id, {"image_url": url}, "Pet"))


@app.delete("/pets/{pet_id}")
def delete_pet(pet_id: str, db: Database = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    pet = get_document(db, PETS, pet_id, "Pet")
    delete_document(db, PETS, pet_id, "Pet")
    storage.delete_quietly(storage.key_from_url(pet.get("image_url") or ""))
    return {"deleted": True}


# Reviews

# Review kind -> (review collection, reviewed collection, label, name field)
REVIEW_TARGETS: Dict[str, tuple] = {
    "products": (PRODUCT_REVIEWS, PRODUCTS, "Product", "name"),
    "boarding": (BOARDING_RATINGS, BOARDING_CENTERS, "Boarding center", "center_name"),
    "grooming": (GROOMING_REVIEWS, GROOMING_CENTERS, "Grooming center", "name"),
}

ReviewKind = Literal["products", "boarding", "grooming"]


class ReviewCreate(BaseModel):
    user_email: EmailStr
    user_name: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    order_id: Optional[str] = None
    booking_id: Optional[str] = None


class ReplyCreate(BaseModel):
    text: str = Field(..., min_length=1)
    admin_name: Optional[str] = None
    center_name: Optional[str] = None


def add_review(db: Database, kind: str, target_id: str, payload: ReviewCreate) -> Dict[str, Any]:
    collection, target_collection, label, name_field = REVIEW_TARGETS[kind]
    target = get_document(db, target_collection, target_id, label)
    if db[collection].find_one({"target_id": target_id, "user_email": payload.user_email}, {"_id": 1}):
        raise HTTPException(status_code=409, detail=f"You have already reviewed this {label.lower()}")
    if kind == "products" and payload.order_id:
        order = get_document(db, ORDERS, payload.order_id, "Order")
        if order.get("user_email") != payload.user_email or target_id not in [i.get("product_id") for i in order.get("items", [])]:
            raise HTTPException(status_code=400, detail="This order does not include the product")
    review = Review(target_id=target_id, target_name=target.get(name_field), **payload.model_dump())
    review_id = create_document(db, collection, review)
    logger.info(f"New {payload.rating}-star review {review_id} for {label.lower()} {target_id}")
    return serialize(db[collection].find_one({"_id": oid(review_id)}))


def review_summary(db: Database, kind: str, target_id: str) -> Dict[str, Any]:
    collection, target_collection, label, _ = REVIEW_TARGETS[kind]
    get_document(db, target_collection, target_id, label)
    docs = get_documents(db, collection, {"target_id": target_id}, sort=[("created_at", -1)])
    ratings = [d["rating"] for d in docs]
    return {
        "reviews": [serialize(d) for d in docs],
        "count": len(ratings),
        "average_rating": round(sum(ratings) / len(ratings), 1) if ratings else 0,
    }


@app.post("/products/{product_id}/reviews", status_code=201)
def review_product(product_id: str, payload: ReviewCreate, db: Database = Depends(get_db)):
    return add_review(db, "products", product_id, payload)


@app.get("/products/{product_id}/reviews")
def product_reviews(product_id: str, db: Database = Depends(get_db)):
    return review_summary(db, "products", product_id)


@app.post("/boarding-centers/{center_id}/reviews", status_code=201)
def review_boarding_center(center_id: str, payload: ReviewCreate, db: Database = Depends(get_db)):
    return add_review(db, "boarding", center_id, payload)


@app.get("/boarding-centers/{center_id}/reviews")
def boarding_center_reviews(center_id: str, db: Database = Depends(get_db)):
    return review_summary(db, "boarding", center_id)


@app.post("/grooming-centers/{center_id}/reviews", status_code=201)
def review_grooming_center(center_id: str, payload: ReviewCreate, db: Database = Depends(get_db)):
    return add_review(db, "grooming", center_id, payload)


@app.get("/grooming-centers/{center_id}/reviews")
def grooming_center_reviews(center_id: str, db: Database = Depends(get_db)):
    return review_summary(db, "grooming", center_id)


@app.get("/reviews/{kind}")
def list_reviews(
    kind: ReviewKind,
    target_id: Optional[str] = None,
    max_rating: Optional[int] = None,
    db: Database = Depends(get_db),
):
    q: Dict[str, Any] = {}
    if target_id:
        q["target_id"] = target_id
    if max_rating is not None:
        q["rating"] = {"$lte": max_rating}
    docs = get_documents(db, REVIEW_TARGETS[kind][0], q, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@app.post("/reviews/{kind}/{review_id}/reply")
def reply_to_review(kind: ReviewKind, review_id: str, payload: ReplyCreate, db: Database = Depends(get_db)):
    reply = AdminReply(replied_at=utcnow(), **payload.model_dump())
    return serialize(update_document(db, REVIEW_TARGETS[kind][0], review_id, {"admin_reply": reply.model_dump()}, "Review"))


@app.delete("/reviews/{kind}/{review_id}")
def delete_review(kind: ReviewKind, review_id: str, db: Database = Depends(get_db)):
    delete_document(db, REVIEW_TARGETS[kind][0], review_id, "Review")
    logger.info(f"Removed {kind} review {review_id}")
    return {"deleted": True}


# Customers

@app.get("/customers")
def list_customers(search: Optional[str] = None, db: Database = Depends(get_db)):
    q: Dict[str, Any] = {}
    if search:
        pattern = re.escape(search)
        q["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
        ]
    docs = get_documents(db, USERS, q, sort=[("created_at", -1)])
    return [public_account(d) for d in docs]


@app.get("/customers/{customer_id}")
def get_customer(customer_id: str, db: Database = Depends(get_db)):
    customer = get_document(db, USERS, customer_id, "Customer")
    result = public_account(customer)
    result["pets"] = [serialize(p) for p in get_documents(db, PETS, {"user_id": customer["email"]})]
    return result


@app.delete("/customers/{customer_id}")
def delete_customer(customer_id: str, db: Database = Depends(get_db)):
    delete_document(db, USERS, customer_id, "Customer")
    return {"deleted": True}


# Dashboard metrics

@app.get("/metrics")
def get_metrics(doctor_id: Optional[str] = None, db: Database = Depends(get_db)):
    q_appt: Dict[str, Any] = {"doctor_id": doctor_id} if doctor_id else {}

    total_appts = db[APPOINTMENTS].count_documents(q_appt)
    counts = {s: db[APPOINTMENTS].count_documents({**q_appt, "status": s}) for s in BOOKING_TRANSITIONS}

    return {
        "cards": [
            {"label": "Total Appointments", "value": total_appts},
            {"label": "Pending", "value": counts["pending"]},
            {"label": "Confirmed", "value": counts["confirmed"]},
            {"label": "Completed", "value": counts["completed"]},
            {"label": "Cancelled", "value": counts["cancelled"]},
        ]
    }


# Scheduled jobs (invoked by an external cron every few minutes)

@app.post("/tasks/appointment-reminders")
def run_appointment_reminders(db: Database = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    return {"reminded": send_appointment_reminders(db, mailer)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

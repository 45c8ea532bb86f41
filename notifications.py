"""
Email notifications fired after document writes.

Every handler swallows and logs mail failures: a notification must never
fail the write that triggered it.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId
from pymongo.database import Database

from config import BUSINESS_EMAIL
from database import ADMIN, APPOINTMENTS, GROOMING_BOOKINGS, ORDERS, PRESCRIPTIONS
from email_templates import (
    admin_credentials_template,
    appointment_cancelled_template,
    appointment_completed_template,
    appointment_confirmed_template,
    appointment_created_template,
    appointment_doctor_notification_template,
    appointment_reminder_doctor_template,
    appointment_reminder_patient_template,
    grooming_booking_center_template,
    grooming_booking_customer_template,
    grooming_status_update_template,
    login_code_template,
    order_created_business_template,
    order_created_customer_template,
    order_status_update_template,
    prescription_ready_template,
    short_id,
)
from mailer import Mailer
from scheduling import minutes_until

logger = logging.getLogger(__name__)

REMINDER_WINDOW_MINUTES = (25, 35)

STATUS_EMAILS = {
    "confirmed": ("Appointment Confirmed - Petzify", appointment_confirmed_template),
    "completed": ("Appointment Completed - Petzify", appointment_completed_template),
    "cancelled": ("Appointment Cancelled - Petzify", appointment_cancelled_template),
}


def _send(mailer: Mailer, to: Optional[str], subject: str, html: str) -> bool:
    if not to:
        return False
    try:
        mailer.send(to, subject, html)
        return True
    except Exception as e:
        logger.error(f"Email to {to} failed ({subject}): {e}")
        return False


def _doctor_email(db: Database, doctor_id: Optional[str]) -> Optional[str]:
    if not doctor_id or not ObjectId.is_valid(doctor_id):
        return None
    doctor = db[ADMIN].find_one({"_id": ObjectId(doctor_id)}, {"email": 1})
    return doctor.get("email") if doctor else None


def _find(db: Database, collection_name: str, doc_id: str) -> Optional[Dict[str, Any]]:
    if not ObjectId.is_valid(doc_id):
        return None
    return db[collection_name].find_one({"_id": ObjectId(doc_id)})


# Appointments

def on_appointment_created(db: Database, mailer: Mailer, appointment_id: str) -> None:
    appt = _find(db, APPOINTMENTS, appointment_id)
    if not appt or not appt.get("patient_email"):
        logger.error(f"Missing appointment data or patient email for {appointment_id}")
        return

    _send(mailer, appt["patient_email"], "Appointment Booked - Petzify", appointment_created_template(appt))

    doctor_email = _doctor_email(db, appt.get("doctor_id"))
    if doctor_email:
        _send(
            mailer,
            doctor_email,
            f"New Appointment Request - {appt.get('patient_name')}",
            appointment_doctor_notification_template(appt),
        )
    logger.info(f"Appointment creation notification sent for appointment {appointment_id}")


def on_appointment_updated(db: Database, mailer: Mailer, before: Dict[str, Any], after: Dict[str, Any]) -> None:
    appointment_id = str(after["_id"])

    rescheduled = (
        before.get("start_time") != after.get("start_time")
        or before.get("appointment_date") != after.get("appointment_date")
    )
    if rescheduled:
        db[APPOINTMENTS].update_one({"_id": after["_id"]}, {"$set": {"reminder_sent": False}})
        logger.info(f"Appointment {appointment_id} was rescheduled, reset reminder flag")

    if before.get("status") == after.get("status"):
        return
    email = STATUS_EMAILS.get(after.get("status"))
    if email and after.get("patient_email"):
        subject, template = email
        if _send(mailer, after["patient_email"], subject, template(after)):
            logger.info(f"Appointment {after['status']} notification sent for appointment {appointment_id}")


def on_prescription_created(db: Database, mailer: Mailer, prescription_id: str) -> None:
    prescription = _find(db, PRESCRIPTIONS, prescription_id)
    if not prescription or not prescription.get("appointment_id"):
        logger.error(f"Missing prescription data or appointment id for {prescription_id}")
        return
    appt = _find(db, APPOINTMENTS, prescription["appointment_id"])
    if not appt:
        logger.error(f"Appointment {prescription['appointment_id']} not found for prescription {prescription_id}")
        return
    if _send(mailer, appt.get("patient_email"), "Prescription Ready - Petzify", prescription_ready_template(appt, prescription)):
        logger.info(f"Prescription notification sent for prescription {prescription_id}")


def send_appointment_reminders(db: Database, mailer: Mailer, now: Optional[datetime] = None) -> int:
    """
    Email patient and doctor for confirmed appointments starting in about
    30 minutes, then mark them so each is reminded once. Returns the number
    of appointments reminded.
    """
    now = now or datetime.now()
    low, high = REMINDER_WINDOW_MINUTES
    candidates = db[APPOINTMENTS].find({
        "status": "confirmed",
        "appointment_date": now.strftime("%Y-%m-%d"),
        "reminder_sent": False,
    })

    reminded = 0
    for appt in candidates:
        try:
            delta = minutes_until(appt["appointment_date"], appt["start_time"], now)
        except (KeyError, ValueError) as e:
            logger.warning(f"Skipping appointment {appt['_id']} with unreadable time: {e}")
            continue
        if not low <= delta <= high:
            continue

        _send(
            mailer,
            appt.get("patient_email"),
            "Reminder: Your Appointment in 30 Minutes - Petzify",
            appointment_reminder_patient_template(appt),
        )
        doctor_email = _doctor_email(db, appt.get("doctor_id"))
        if doctor_email:
            _send(
                mailer,
                doctor_email,
                f"Reminder: Appointment with {appt.get('patient_name')} in 30 Minutes",
                appointment_reminder_doctor_template(appt),
            )
        db[APPOINTMENTS].update_one({"_id": appt["_id"]}, {"$set": {"reminder_sent": True}})
        reminded += 1

    logger.info(f"Sent reminders for {reminded} appointments")
    return reminded


# Grooming

def on_grooming_booking_created(db: Database, mailer: Mailer, booking_id: str) -> None:
    booking = _find(db, GROOMING_BOOKINGS, booking_id)
    if not booking or not booking.get("user_email"):
        logger.warning(f"Insufficient data for grooming booking {booking_id} notification")
        return

    ref = short_id(booking_id)
    _send(
        mailer,
        booking["user_email"],
        f"Grooming Booking Confirmation - #{ref}",
        grooming_booking_customer_template(booking, booking_id),
    )
    center_html = grooming_booking_center_template(booking, booking_id)
    _send(mailer, booking.get("center_email"), f"New Grooming Booking - #{ref}", center_html)
    _send(mailer, BUSINESS_EMAIL, f"New Grooming Booking - #{ref}", center_html)
    logger.info(f"Emails sent for new grooming booking: {booking_id}")


def on_grooming_booking_updated(mailer: Mailer, before: Dict[str, Any], after: Dict[str, Any]) -> None:
    if before.get("status") == after.get("status"):
        return
    booking_id = str(after["_id"])
    if _send(
        mailer,
        after.get("user_email"),
        f"Grooming Booking Update - #{short_id(booking_id)}",
        grooming_status_update_template(after, booking_id, before.get("status", "")),
    ):
        logger.info(f"Status update email sent for grooming booking: {booking_id}")


# Orders

def on_order_created(db: Database, mailer: Mailer, order_id: str) -> None:
    order = _find(db, ORDERS, order_id)
    if not order:
        logger.error(f"Order {order_id} not found for notification")
        return
    ref = short_id(order_id)
    _send(mailer, order.get("user_email"), f"Petzify Order Confirmation - #{ref}", order_created_customer_template(order, order_id))
    _send(mailer, BUSINESS_EMAIL, f"New Order Received - #{ref}", order_created_business_template(order, order_id))


def on_order_updated(mailer: Mailer, before: Dict[str, Any], after: Dict[str, Any]) -> None:
    if before.get("status") == after.get("status"):
        return
    order_id = str(after["_id"])
    _send(
        mailer,
        after.get("user_email"),
        f"Petzify Order Status Updated - #{short_id(order_id)}",
        order_status_update_template(after, order_id),
    )


# Accounts

def send_admin_credentials(mailer: Mailer, center_name: str, admin: Dict[str, Any], password: str) -> bool:
    return _send(
        mailer,
        admin.get("email"),
        f"Your Petzify Admin Credentials - {center_name}",
        admin_credentials_template(center_name, admin.get("name", ""), admin["username"], password),
    )


def send_login_code(mailer: Mailer, customer: Dict[str, Any], code: str) -> bool:
    return _send(mailer, customer.get("email"), "Your Petzify Login Code", login_code_template(customer.get("name", ""), code))

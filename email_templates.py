"""
HTML Email Templates
Static HTML bodies interpolated with booking, appointment and order fields
"""

from html import escape
from typing import Any, Dict, List, Optional

from config import FRONTEND_URL

THEME = {
    "primary": "#4f46e5",
    "background": "#f5f5f5",
    "card_bg": "#ffffff",
    "text_primary": "#1f2937",
    "text_muted": "#6b7280",
    "success": "#16a34a",
    "warning": "#d97706",
    "danger": "#dc2626",
}

BRAND = "Petzify"


def _v(data: Dict[str, Any], key: str, default: str = "N/A") -> str:
    value = data.get(key)
    if value in (None, ""):
        return default
    return escape(str(value))


def short_id(doc_id: str) -> str:
    return doc_id[-6:]


def _rows(pairs: List[tuple]) -> str:
    return "".join(
        f'<tr><td style="padding:6px 12px;color:{THEME["text_muted"]}">{label}</td>'
        f'<td style="padding:6px 12px;font-weight:600">{value}</td></tr>'
        for label, value in pairs
    )


def get_base_template(
    title: str,
    content_sections: str,
    status_color: str = THEME["primary"],
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base HTML wrapper shared by all emails"""
    cta = ""
    if cta_url and cta_label:
        cta = (
            f'<p style="text-align:center;margin:24px 0">'
            f'<a href="{cta_url}" style="background:{THEME["primary"]};color:#ffffff;'
            f'padding:12px 24px;border-radius:6px;text-decoration:none">{cta_label}</a></p>'
        )
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{escape(title)}</title></head>
<body style="font-family:Arial,sans-serif;line-height:1.6;background:{THEME['background']};margin:0;padding:20px">
  <div style="max-width:600px;margin:0 auto;background:{THEME['card_bg']};border-radius:8px;overflow:hidden">
    <div style="background:{status_color};color:#ffffff;padding:20px;text-align:center">
      <h1 style="margin:0;font-size:22px">{escape(title)}</h1>
    </div>
    <div style="padding:24px;color:{THEME['text_primary']}">
      {content_sections}
      {cta}
    </div>
    <div style="text-align:center;font-size:12px;color:{THEME['text_muted']};padding:16px">
      {BRAND} - Your trusted pet healthcare partner
    </div>
  </div>
</body>
</html>"""


def _appointment_table(appt: Dict[str, Any]) -> str:
    return "<table>" + _rows([
        ("Doctor", f"Dr. {_v(appt, 'doctor_name')}"),
        ("Date", _v(appt, "appointment_date")),
        ("Time", f"{_v(appt, 'start_time')} - {_v(appt, 'end_time')}"),
        ("Pet", f"{_v(appt, 'pet_name')} ({_v(appt, 'pet_type')})"),
        ("Reason", _v(appt, "reason")),
    ]) + "</table>"


# Appointments

def appointment_created_template(appt: Dict[str, Any]) -> str:
    content = f"""
    <p>Hi {_v(appt, 'patient_name')},</p>
    <p>Your appointment request has been received and is awaiting confirmation by the doctor.</p>
    {_appointment_table(appt)}
    <p>We will email you again once it is confirmed.</p>
    """
    return get_base_template("Appointment Booked", content)


def appointment_doctor_notification_template(appt: Dict[str, Any]) -> str:
    content = f"""
    <p>A new appointment has been requested.</p>
    <table>{_rows([
        ("Patient", _v(appt, "patient_name")),
        ("Email", _v(appt, "patient_email")),
        ("Phone", _v(appt, "patient_phone")),
        ("Date", _v(appt, "appointment_date")),
        ("Time", f"{_v(appt, 'start_time')} - {_v(appt, 'end_time')}"),
        ("Pet", f"{_v(appt, 'pet_name')} ({_v(appt, 'pet_type')}, {_v(appt, 'pet_breed')})"),
        ("Reason", _v(appt, "reason")),
    ])}</table>
    """
    return get_base_template("New Appointment Request", content, cta_url=f"{FRONTEND_URL}/admin", cta_label="Open Dashboard")


def appointment_confirmed_template(appt: Dict[str, Any]) -> str:
    content = f"""
    <p>Hi {_v(appt, 'patient_name')},</p>
    <p>Good news! Your appointment has been confirmed.</p>
    {_appointment_table(appt)}
    <p>Please arrive 10 minutes early and bring any previous medical records for your pet.</p>
    """
    return get_base_template("Appointment Confirmed", content, status_color=THEME["success"])


def appointment_completed_template(appt: Dict[str, Any]) -> str:
    content = f"""
    <p>Hi {_v(appt, 'patient_name')},</p>
    <p>Thank you for visiting us with {_v(appt, 'pet_name', 'your pet')}. Your appointment is complete.</p>
    {_appointment_table(appt)}
    <p>If a prescription was issued you will receive it in a separate email.</p>
    """
    return get_base_template("Appointment Completed", content, status_color=THEME["success"])


def appointment_cancelled_template(appt: Dict[str, Any]) -> str:
    content = f"""
    <p>Hi {_v(appt, 'patient_name')},</p>
    <p>Your appointment has been cancelled.</p>
    {_appointment_table(appt)}
    <p>You can book a new slot at any time.</p>
    """
    return get_base_template(
        "Appointment Cancelled", content, status_color=THEME["danger"],
        cta_url=f"{FRONTEND_URL}/book-appointment", cta_label="Book Again",
    )


def appointment_reminder_patient_template(appt: Dict[str, Any]) -> str:
    content = f"""
    <p>Hi {_v(appt, 'patient_name')},</p>
    <p>This is a reminder that your appointment starts in about 30 minutes.</p>
    {_appointment_table(appt)}
    """
    return get_base_template("Appointment Reminder", content, status_color=THEME["warning"])


def appointment_reminder_doctor_template(appt: Dict[str, Any]) -> str:
    content = f"""
    <p>Your appointment with {_v(appt, 'patient_name')} starts in about 30 minutes.</p>
    <table>{_rows([
        ("Time", f"{_v(appt, 'start_time')} - {_v(appt, 'end_time')}"),
        ("Pet", f"{_v(appt, 'pet_name')} ({_v(appt, 'pet_type')})"),
        ("Reason", _v(appt, "reason")),
    ])}</table>
    """
    return get_base_template("Upcoming Appointment", content, status_color=THEME["warning"])


def prescription_ready_template(appt: Dict[str, Any], prescription: Dict[str, Any]) -> str:
    content = f"""
    <p>Hi {_v(appt, 'patient_name')},</p>
    <p>Dr. {_v(prescription, 'doctor_name')} has issued a prescription for {_v(prescription, 'pet_name', 'your pet')}.</p>
    """
    return get_base_template(
        "Prescription Ready", content,
        cta_url=escape(prescription.get("prescription_url") or f"{FRONTEND_URL}/profile"),
        cta_label="View Prescription",
    )


# Grooming

def _grooming_table(booking: Dict[str, Any], booking_id: str) -> str:
    services = ", ".join(escape(s) for s in booking.get("selected_services") or []) or "N/A"
    return "<table>" + _rows([
        ("Booking", f"#{short_id(booking_id)}"),
        ("Center", _v(booking, "center_name")),
        ("Date", _v(booking, "date")),
        ("Time", _v(booking, "time")),
        ("Pet", f"{_v(booking, 'pet_name')} ({_v(booking, 'pet_type')})"),
        ("Services", services),
        ("Package", _v(booking, "selected_package", "None")),
        ("Total", f"&#8377;{_v(booking, 'total_cost', '0')}"),
    ]) + "</table>"


def grooming_booking_customer_template(booking: Dict[str, Any], booking_id: str) -> str:
    content = f"""
    <p>Hi {_v(booking, 'user_name', 'there')},</p>
    <p>Thank you for booking with us. Your grooming appointment is pending confirmation.</p>
    {_grooming_table(booking, booking_id)}
    """
    return get_base_template("Grooming Booking Confirmation", content)


def grooming_booking_center_template(booking: Dict[str, Any], booking_id: str) -> str:
    content = f"""
    <p>A new grooming booking has been placed.</p>
    {_grooming_table(booking, booking_id)}
    <table>{_rows([
        ("Customer", _v(booking, "user_name")),
        ("Email", _v(booking, "user_email")),
        ("Phone", _v(booking, "user_phone")),
        ("Instructions", _v(booking, "special_instructions", "None")),
    ])}</table>
    """
    return get_base_template("New Grooming Booking", content)


def grooming_status_update_template(booking: Dict[str, Any], booking_id: str, previous_status: str) -> str:
    status = booking.get("status", "")
    color = {"cancelled": THEME["danger"], "completed": THEME["success"]}.get(status, THEME["primary"])
    rating_note = ""
    if status == "completed":
        rating_note = "<p>We hope your pet enjoyed the visit. Please take a moment to rate the center.</p>"
    content = f"""
    <p>Hi {_v(booking, 'user_name', 'there')},</p>
    <p>Your booking status changed from <b>{escape(previous_status)}</b> to <b>{escape(status)}</b>.</p>
    {_grooming_table(booking, booking_id)}
    {rating_note}
    """
    return get_base_template("Grooming Booking Update", content, status_color=color)


# Orders

def _order_table(order: Dict[str, Any], order_id: str) -> str:
    items = [
        (escape(f"{item.get('name')} x {item.get('quantity')}"), f"&#8377;{item.get('price', 0) * item.get('quantity', 1):.2f}")
        for item in order.get("items") or []
    ]
    return "<table>" + _rows([("Order", f"#{short_id(order_id)}")] + items + [
        ("Total", f"&#8377;{order.get('total_amount', 0):.2f}"),
    ]) + "</table>"


def order_created_customer_template(order: Dict[str, Any], order_id: str) -> str:
    content = f"""
    <p>Hi {_v(order, 'user_name', 'there')},</p>
    <p>Thank you for your order. We will let you know when it ships.</p>
    {_order_table(order, order_id)}
    """
    return get_base_template("Order Received", content)


def order_created_business_template(order: Dict[str, Any], order_id: str) -> str:
    content = f"""
    <p>A new order was placed by {_v(order, 'user_name')} ({_v(order, 'user_email')}).</p>
    {_order_table(order, order_id)}
    <p>Ship to: {_v(order, 'shipping_address')}</p>
    """
    return get_base_template("New Order", content)


def order_status_update_template(order: Dict[str, Any], order_id: str) -> str:
    content = f"""
    <p>Hi {_v(order, 'user_name', 'there')},</p>
    <p>Your order is now <b>{_v(order, 'status')}</b>.</p>
    {_order_table(order, order_id)}
    """
    return get_base_template("Order Status Updated", content)


# Accounts

def admin_credentials_template(center_name: str, admin_name: str, username: str, password: str) -> str:
    content = f"""
    <p>Hi {escape(admin_name)},</p>
    <p>{escape(center_name)} has been approved. Use these credentials to manage it:</p>
    <table>{_rows([("Username", escape(username)), ("Password", escape(password))])}</table>
    <p style="color:{THEME['warning']}">Please change your password after the first login.</p>
    """
    return get_base_template(
        "Your Admin Credentials", content, cta_url=f"{FRONTEND_URL}/admin", cta_label="Log In",
    )


def login_code_template(name: str, code: str) -> str:
    content = f"""
    <p>Hi {escape(name)},</p>
    <p>Your login code is:</p>
    <p style="font-size:28px;letter-spacing:6px;font-weight:700;text-align:center">{escape(code)}</p>
    <p>The code expires in 10 minutes. If you did not request it you can ignore this email.</p>
    """
    return get_base_template("Your Login Code", content)

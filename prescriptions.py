"""
Prescription PDF layout
"""

import io
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

BRAND_BLUE = colors.Color(65 / 255, 105 / 255, 225 / 255)
DIVIDER_GRAY = colors.Color(200 / 255, 200 / 255, 200 / 255)
HEADER_FILL = colors.Color(240 / 255, 240 / 255, 240 / 255)

COLUMNS = (("Medication", 50), ("Dosage", 40), ("Frequency", 40), ("Duration", 40))
DEFAULT_NOTE = "Take medications as prescribed. Contact for any concerns."


def prescription_key(appointment_id: str, timestamp_ms: int) -> str:
    return f"prescriptions/{appointment_id}_{timestamp_ms}.pdf"


class PrescriptionPDF:
    """Lays out a one-page A4 prescription. Coordinates are mm from the top-left."""

    def __init__(
        self,
        doctor: Dict[str, Any],
        appointment: Dict[str, Any],
        medications: List[Dict[str, str]],
        notes: Optional[str] = None,
        issued_on: Optional[date] = None,
    ):
        self.doctor = doctor
        self.appointment = appointment
        self.medications = medications
        self.notes = notes or DEFAULT_NOTE
        self.issued_on = issued_on or date.today()
        self.page_width, self.page_height = A4

    def _y(self, top_mm: float) -> float:
        return self.page_height - top_mm * mm

    def _text(self, c: canvas.Canvas, x_mm: float, top_mm: float, text: str, align: str = "left") -> None:
        x, y = x_mm * mm, self._y(top_mm)
        if align == "center":
            c.drawCentredString(x, y, text)
        else:
            c.drawString(x, y, text)

    def _line(self, c: canvas.Canvas, x1: float, top: float, x2: float) -> None:
        c.line(x1 * mm, self._y(top), x2 * mm, self._y(top))

    def generate(self) -> bytes:
        logger.info(f"Generating prescription PDF for appointment {self.appointment.get('_id')}")
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4)
        c.setTitle(f"Prescription - {self.appointment.get('patient_name', '')}")

        profile = self.doctor.get("profile_info") or {}

        c.setFillColor(BRAND_BLUE)
        c.setFont("Helvetica-Bold", 22)
        self._text(c, 105, 20, f"Dr. {self.doctor.get('name') or 'Doctor Name'}", align="center")
        c.setFont("Helvetica", 14)
        self._text(c, 105, 28, profile.get("specialization") or "Qualification", align="center")
        c.setFont("Helvetica", 12)
        self._text(c, 105, 35, f"Certification: {profile.get('license_number') or 'License #'}", align="center")

        c.setStrokeColor(DIVIDER_GRAY)
        self._line(c, 20, 40, 190)

        c.setFillColor(colors.black)
        self._text(c, 20, 50, f"Patient Name: {self.appointment.get('patient_name', '')}")
        self._text(c, 20, 58, f"Pet Name: {self.appointment.get('pet_name') or 'N/A'}")
        self._text(c, 150, 50, f"Date: {self.issued_on.strftime('%d/%m/%Y')}")

        c.setFillColor(BRAND_BLUE)
        c.setFont("Helvetica-Bold", 18)
        self._text(c, 20, 75, "Rx")

        table_top = 85
        c.setFillColor(HEADER_FILL)
        c.rect(20 * mm, self._y(table_top + 2), 170 * mm, 8 * mm, stroke=0, fill=1)
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold", 12)
        x = 20
        for title, width in COLUMNS:
            self._text(c, x + 2, table_top, title)
            x += width

        c.setFont("Helvetica", 12)
        row_top = table_top + 10
        for med in self.medications:
            x = 20
            for field, (_, width) in zip(("name", "dosage", "frequency", "duration"), COLUMNS):
                self._text(c, x + 2, row_top, str(med.get(field, "")))
                x += width
            row_top += 10
            self._line(c, 20, row_top - 5, 190)

        row_top += 5
        c.setFont("Helvetica-Bold", 14)
        self._text(c, 20, row_top, "Notes:")
        c.setFont("Helvetica", 11)
        row_top += 8
        for line in self.notes.splitlines() or [""]:
            self._text(c, 20, row_top, line)
            row_top += 6

        footer = 270
        self._line(c, 20, footer - 15, 190)
        c.setFont("Helvetica", 10)
        self._text(c, 20, footer, "Petzify")
        self._text(c, 20, footer + 5, "Your trusted pet healthcare partner")
        self._text(c, 20, footer + 10, "www.petzify.com")
        self._line(c, 140, footer, 180)
        self._text(c, 160, footer + 5, "Doctor's Signature", align="center")

        c.showPage()
        c.save()
        return buffer.getvalue()

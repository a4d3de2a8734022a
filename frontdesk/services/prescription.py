"""Prescription sheet generated from a registered record.

Used when `PRESCRIPTION_SOURCE` is "generate": the sheet is drawn locally
instead of being fetched from the backend. The layout is the outpatient slip
handed to the patient: hospital header, OP number and visit date, patient
details, consultation details and an empty prescription box for the doctor.
"""
from datetime import date, datetime
from typing import List, Optional, Tuple
import io

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

from ..core.config import Settings, settings as default_settings
from ..models.patient import RegisteredPatient

FOOTER_NOTE = "This is a computer generated prescription and does not require physical signature."

def display_date(value: Optional[str]) -> str:
    """Format an ISO date or timestamp as dd/mm/yyyy; anything else is shown as is."""
    if not value:
        return "-"
    try:
        return date.fromisoformat(value).strftime("%d/%m/%Y")
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%d/%m/%Y")
    except ValueError:
        return value

def _doctor_name(record: RegisteredPatient) -> str:
    if isinstance(record.doctor, dict) and record.doctor.get("name"):
        return record.doctor["name"]
    return "Assigned Doctor"

def _address(record: RegisteredPatient) -> str:
    if record.address:
        return record.address
    return ", ".join(part for part in (record.home_name, record.place) if part) or "-"

def patient_lines(record: RegisteredPatient) -> List[Tuple[str, str]]:
    sex = (record.sex or "-").capitalize()
    age = "-" if record.age is None else str(record.age)
    return [
        ("Name", record.name or "-"),
        ("Age/Sex", f"{age} / {sex}"),
        ("Address", _address(record)),
        ("Phone", record.phone or "-"),
    ]

def consultation_lines(record: RegisteredPatient) -> List[Tuple[str, str]]:
    fee = "-" if record.consultation_fee is None else f"Rs. {record.consultation_fee}"
    return [
        ("Department", record.department or "-"),
        ("Doctor", _doctor_name(record)),
        ("Consultation Fee", fee),
        ("Next Visit", display_date(record.renewal_date)),
    ]

def render_prescription(record: RegisteredPatient, config: Optional[Settings] = None) -> bytes:
    """Draw the prescription sheet for `record` and return the PDF bytes."""
    config = config or default_settings
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(record.document_title)
    width, height = A4
    y = height - 2*cm

    c.setFont("Helvetica-Bold", 16)
    c.drawString(2*cm, y, config.HOSPITAL_NAME)
    y -= 0.6*cm
    c.setFont("Helvetica", 10)
    c.drawString(2*cm, y, config.HOSPITAL_TAGLINE)
    y -= 0.6*cm
    c.line(2*cm, y, width - 2*cm, y)
    y -= 0.7*cm

    c.setFont("Helvetica", 11)
    c.drawString(2*cm, y, f"OP Number: {record.op_number or '-'}")
    c.drawString(width/2, y, f"Date: {display_date(record.visit_date)}")
    y -= 0.5*cm
    c.line(2*cm, y, width - 2*cm, y)
    y -= 1*cm

    def section(title, lines):
        nonlocal y
        c.setFont("Helvetica-Bold", 12)
        c.drawString(2*cm, y, title)
        y -= 0.7*cm
        c.setFont("Helvetica", 10)
        for label, value in lines:
            c.drawString(2.2*cm, y, f"{label}:")
            c.drawString(6*cm, y, value[:80])
            y -= 0.5*cm
        y -= 0.5*cm

    section("Patient Information", patient_lines(record))
    section("Consultation Details", consultation_lines(record))

    c.setFont("Helvetica-Bold", 12)
    c.drawString(2*cm, y, "Prescription")
    y -= 0.3*cm
    box_height = max(4*cm, y - 5*cm)
    c.rect(2*cm, y - box_height, width - 4*cm, box_height)
    y -= box_height + 1.5*cm

    sig_y = max(3*cm, y)
    c.setFont("Helvetica", 9)
    c.drawString(2*cm, sig_y, "Patient Signature: ____________________")
    c.drawString(width/2, sig_y, "Doctor Signature: ____________________")

    c.setFont("Helvetica-Oblique", 8)
    c.drawString(2*cm, 1.6*cm, f"{config.HOSPITAL_NAME} - {config.HOSPITAL_TAGLINE}")
    c.drawString(2*cm, 1.2*cm, FOOTER_NOTE)
    c.showPage()
    c.save()
    return buffer.getvalue()

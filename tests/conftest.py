import asyncio
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from frontdesk.clients.base import BackendError, BackendUnavailableError
from frontdesk.core.config import Settings
from frontdesk.models.doctor import Doctor
from frontdesk.models.patient import PatientSummary, RegisteredPatient
from frontdesk.services.printing import PrintError, PrintQueue

TODAY = date(2026, 10, 18)

DOCTORS = [
    {"_id": "D1", "name": "Dr. Asha Menon", "department": "Cardiology", "consultationFees": 500, "status": True},
    {"_id": "D2", "name": "Dr. Rahul Nair", "department": "Orthopedics", "consultationFees": 350, "status": True},
    {"_id": "D3", "name": "Dr. Retired", "department": "Dermatology", "consultationFees": 200, "status": False},
]

EXISTING_PATIENT = {
    "_id": "P1",
    "name": "Mohammed Ali",
    "age": 54,
    "sex": "male",
    "homeName": "Green House",
    "place": "Malappuram",
    "phone": "9447012345",
    "opNumber": "OP-000412",
}


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeReceptionistClient:
    """Stands in for ReceptionistClient and records every call."""

    def __init__(self, doctors: Optional[List[Dict[str, Any]]] = None):
        self.doctors = DOCTORS if doctors is None else doctors
        self.doctor_error: Optional[BackendError] = None
        self.create_error: Optional[BackendError] = None
        self.create_gate: Optional[asyncio.Event] = None
        self.created: List[tuple] = []
        self.document = b"%PDF-1.4 prescription"
        self.document_error: Optional[BackendError] = None
        self.document_requests: List[str] = []
        self.prescription_url = "https://files.example.org/prescriptions/R1.pdf"
        self.downloads: List[str] = []

    async def list_active_doctors(self):
        if self.doctor_error is not None:
            raise self.doctor_error
        return [Doctor.model_validate(item) for item in self.doctors]

    async def add_patient(self, payload: Dict[str, Any]):
        return await self._create("add", payload)

    async def add_existing_patient_appointment(self, payload: Dict[str, Any]):
        return await self._create("existing", payload)

    async def get_patient(self, patient_id: str):
        if patient_id != EXISTING_PATIENT["_id"]:
            raise BackendError("Patient not found", 404)
        return PatientSummary.model_validate(EXISTING_PATIENT)

    async def fetch_prescription_document(self, record_id: str):
        self.document_requests.append(record_id)
        if self.document_error is not None:
            raise self.document_error
        return self.document

    async def fetch_prescription_url(self, record_id: str):
        self.document_requests.append(record_id)
        if self.document_error is not None:
            raise self.document_error
        return self.prescription_url

    async def download(self, url: str):
        self.downloads.append(url)
        return self.document

    async def _create(self, kind: str, payload: Dict[str, Any]):
        self.created.append((kind, payload))
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.create_error is not None:
            raise self.create_error

        number = len(self.created)
        record = dict(payload)
        record.update({"_id": f"R{number}", "opNumber": f"OP-{number:06d}"})
        if kind == "existing":
            record.update({"name": EXISTING_PATIENT["name"], "opNumber": EXISTING_PATIENT["opNumber"]})
        return RegisteredPatient.model_validate(record)


class RecordingPrinter:
    def __init__(self):
        self.jobs: List[Dict[str, Any]] = []
        self.error: Optional[PrintError] = None

    async def print_file(self, path: Path, title: str):
        self.jobs.append({"path": path, "title": title, "content": path.read_bytes()})
        if self.error is not None:
            raise self.error


@pytest.fixture
def test_settings():
    return Settings(PRINT_LOAD_DELAY=0, PRINT_RELEASE_DELAY=0)


@pytest.fixture
def receptionist_client():
    return FakeReceptionistClient()


@pytest.fixture
def printer():
    return RecordingPrinter()


@pytest.fixture
def print_queue(printer: RecordingPrinter, test_settings: Settings):
    return PrintQueue(printer, test_settings)


def unavailable():
    return BackendUnavailableError("Backend request failed")

from typing import Any, Dict, List, Optional

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from frontdesk.api.deps import (
    get_admin_client, get_admin_session, get_form_registry, get_print_queue,
    get_receptionist_client, get_receptionist_session, get_session_store,
)
from frontdesk.clients.base import BackendError, BackendRejectedError
from frontdesk.core.config import Settings
from frontdesk.core.session import SessionCredentials, SessionStore, StaffRole
from frontdesk.main import app
from frontdesk.services.printing import PrintError
from frontdesk.services.registration import FormRegistry
from tests.conftest import unavailable

DESK = {"Authorization": "Bearer desk-token"}
ADMIN = {"Authorization": "Bearer admin-token"}

JANE_DOE = {
    "name": "Jane Doe",
    "sex": "female",
    "age": 30,
    "phone": "9876543210",
    "homeName": "Rose Villa",
    "place": "Kozhikode",
}

VALID_DOCTOR = {
    "name": "Dr. Meera Pillai",
    "qualification": "MBBS, MD",
    "specialization": "Paediatrics",
    "department": "Paediatrics",
    "gender": "female",
    "age": 41,
    "phone": "9895012345",
    "email": "meera.pillai@example.org",
    "consultationFees": 400,
}

class FakeAdminClient:
    def __init__(self):
        self.added: List[Dict[str, Any]] = []
        self.error: Optional[BackendError] = None

    async def add_doctor(self, payload: Dict[str, Any]):
        if self.error is not None:
            raise self.error
        self.added.append(payload)
        return dict(payload, _id=f"D{len(self.added) + 10}")

@pytest.fixture
def admin_client():
    return FakeAdminClient()

@pytest.fixture
def client(receptionist_client, admin_client, print_queue):
    sessions = SessionStore(Settings())
    sessions.start(SessionCredentials(token="desk-token", role=StaffRole.RECEPTIONIST))
    sessions.start(SessionCredentials(token="admin-token", role=StaffRole.ADMIN))
    forms = FormRegistry()

    async def receptionist_override(session=Depends(get_receptionist_session)):
        return receptionist_client

    async def admin_override(session=Depends(get_admin_session)):
        return admin_client

    app.dependency_overrides[get_session_store] = lambda: sessions
    app.dependency_overrides[get_form_registry] = lambda: forms
    app.dependency_overrides[get_print_queue] = lambda: print_queue
    app.dependency_overrides[get_receptionist_client] = receptionist_override
    app.dependency_overrides[get_admin_client] = admin_override
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()

def mount(client, **body):
    response = client.post("/api/v1/registration/forms", json=body, headers=DESK)
    assert response.status_code == 201, response.text
    return response.json()

def fill(client, form_id: str, fields: Dict[str, Any]):
    snapshot = None
    for name, value in fields.items():
        response = client.patch(
            f"/api/v1/registration/forms/{form_id}/fields",
            json={"name": name, "value": value},
            headers=DESK,
        )
        assert response.status_code == 200, response.text
        snapshot = response.json()
    return snapshot

def choose_doctor(client, form_id: str, doctor_id: str):
    response = client.put(
        f"/api/v1/registration/forms/{form_id}/doctor",
        json={"doctorId": doctor_id},
        headers=DESK,
    )
    assert response.status_code == 200, response.text
    return response.json()

def submit(client, form_id: str):
    return client.post(f"/api/v1/registration/forms/{form_id}/submit", headers=DESK)

class TestRegistrationApi:

    def test_register_and_print(self, client, receptionist_client, print_queue, printer):
        """A valid registration is persisted once and its prescription printed."""
        form = mount(client, variant="new-patient")
        assert form["state"] == "empty"
        assert [doctor["id"] for doctor in form["doctors"]] == ["D1", "D2"]
        assert form["warnings"] == []

        fill(client, form["id"], JANE_DOE)
        snapshot = choose_doctor(client, form["id"], "D1")
        assert snapshot["draft"]["department"] == "Cardiology"
        assert snapshot["draft"]["consultationFees"] == 500

        response = submit(client, form["id"])
        assert response.status_code == 200, response.text
        result = response.json()
        assert result["record"]["_id"] == "R1"
        assert result["record"]["opNumber"] == "OP-000001"
        assert result["form"]["state"] == "submitted"
        assert result["form"]["draft"]["name"] == ""
        assert result["form"]["last_result"]["_id"] == "R1"

        kind, payload = receptionist_client.created[0]
        assert kind == "add"
        assert payload["department"] == "Cardiology"
        assert payload["consultationFees"] == 500
        assert payload["homeName"] == "Rose Villa"

        client.portal.call(print_queue.drain)

        task_id = result["print_task"]["id"]
        assert result["form"]["print_task_id"] == task_id
        job = client.get(f"/api/v1/print-jobs/{task_id}", headers=DESK).json()
        assert job["status"] == "completed"
        assert job["warning"] is None
        assert printer.jobs[0]["title"] == "Prescription_Jane Doe"

    def test_invalid_form_is_not_sent(self, client, receptionist_client):
        form = mount(client, variant="new-patient")

        response = submit(client, form["id"])
        assert response.status_code == 422

        detail = response.json()["detail"]
        assert detail["message"] == "Please correct the highlighted fields"
        assert detail["errors"]["name"] == "Name must be at least 2 characters"
        assert detail["errors"]["doctorId"] == "Please select a doctor"
        assert receptionist_client.created == []

        snapshot = client.get(f"/api/v1/registration/forms/{form['id']}", headers=DESK).json()
        assert snapshot["state"] == "invalid"
        assert "phone" in snapshot["errors"]

    def test_validate_endpoint(self, client):
        form = mount(client, variant="new-patient-address")
        fill(client, form["id"], {"name": "Jane Doe", "sex": "female", "age": "3O", "address": "Kochi"})

        result = client.post(
            f"/api/v1/registration/forms/{form['id']}/validate", headers=DESK
        ).json()

        assert result["valid"] is False
        assert result["errors"]["age"] == "Age must be a number"
        assert "address" not in result["errors"]
        assert "homeName" not in result["errors"]

    def test_doctor_list_failure_keeps_form_usable(self, client, receptionist_client):
        receptionist_client.doctor_error = unavailable()

        form = mount(client, variant="new-patient")
        assert form["doctors"] == []
        assert form["warnings"] == ["Failed to load doctors"]

        snapshot = fill(client, form["id"], {"name": "Jane Doe"})
        assert snapshot["draft"]["name"] == "Jane Doe"

    def test_backend_rejection_keeps_draft(self, client, receptionist_client):
        receptionist_client.create_error = BackendRejectedError("Phone already registered", 400)
        form = mount(client, variant="new-patient")
        fill(client, form["id"], JANE_DOE)
        choose_doctor(client, form["id"], "D2")

        response = submit(client, form["id"])
        assert response.status_code == 502
        assert response.json()["detail"] == {
            "message": "Failed to register patient",
            "reason": "Phone already registered",
        }

        snapshot = client.get(f"/api/v1/registration/forms/{form['id']}", headers=DESK).json()
        assert snapshot["draft"]["name"] == "Jane Doe"
        assert snapshot["draft"]["doctorId"] == "D2"
        assert snapshot["submission_error"] == "Failed to register patient"
        assert snapshot["submitting"] is False

    def test_derived_fields_are_read_only(self, client):
        form = mount(client, variant="new-patient")

        response = client.patch(
            f"/api/v1/registration/forms/{form['id']}/fields",
            json={"name": "consultationFees", "value": 0},
            headers=DESK,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Field 'consultationFees' cannot be edited"

        response = client.patch(
            f"/api/v1/registration/forms/{form['id']}/fields",
            json={"name": "bloodGroup", "value": "O+"},
            headers=DESK,
        )
        assert response.status_code == 400

    def test_existing_patient_appointment(self, client, receptionist_client):
        form = mount(client, variant="existing-patient", patientId="P1")
        assert form["patient"]["opNumber"] == "OP-000412"
        assert form["draft"]["existingPatientId"] == "P1"

        response = client.patch(
            f"/api/v1/registration/forms/{form['id']}/fields",
            json={"name": "name", "value": "Someone Else"},
            headers=DESK,
        )
        assert response.status_code == 400

        choose_doctor(client, form["id"], "D2")
        response = submit(client, form["id"])
        assert response.status_code == 200, response.text

        kind, payload = receptionist_client.created[0]
        assert kind == "existing"
        assert payload["existingPatientId"] == "P1"
        assert payload["doctorId"] == "D2"
        assert response.json()["record"]["opNumber"] == "OP-000412"

    def test_existing_patient_requires_patient(self, client):
        response = client.post(
            "/api/v1/registration/forms", json={"variant": "existing-patient"}, headers=DESK
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Patient information is missing"

        response = client.post(
            "/api/v1/registration/forms",
            json={"variant": "existing-patient", "patientId": "P404"},
            headers=DESK,
        )
        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to fetch patient details"

    def test_unknown_form(self, client):
        response = client.get("/api/v1/registration/forms/missing", headers=DESK)
        assert response.status_code == 404
        assert response.json() == {
            "error": "Not Found",
            "message": "Form 'missing' was not found",
            "path": "/api/v1/registration/forms/missing",
        }

    def test_closed_form_is_gone(self, client):
        form = mount(client, variant="new-patient")

        response = client.delete(f"/api/v1/registration/forms/{form['id']}", headers=DESK)
        assert response.status_code == 200
        assert response.json()["message"] == "Form closed"

        response = client.get(f"/api/v1/registration/forms/{form['id']}", headers=DESK)
        assert response.status_code == 404

    def test_requires_session(self, client):
        response = client.post("/api/v1/registration/forms", json={})
        assert response.status_code == 401

        response = client.post(
            "/api/v1/registration/forms", json={}, headers={"Authorization": "Bearer stale"}
        )
        assert response.status_code == 401

    def test_requires_receptionist_role(self, client):
        response = client.post("/api/v1/registration/forms", json={}, headers=ADMIN)
        assert response.status_code == 403

class TestPrintJobsApi:

    def test_failed_print_can_be_retried(self, client, print_queue, printer):
        printer.error = PrintError("printer offline")
        form = mount(client, variant="new-patient")
        fill(client, form["id"], JANE_DOE)
        choose_doctor(client, form["id"], "D1")

        result = submit(client, form["id"]).json()
        task_id = result["print_task"]["id"]
        client.portal.call(print_queue.drain)

        job = client.get(f"/api/v1/print-jobs/{task_id}", headers=DESK).json()
        assert job["status"] == "failed"
        assert job["error"] == "printer offline"
        assert job["warning"] == "Patient was registered, but the prescription could not be printed"

        printer.error = None
        response = client.post(f"/api/v1/print-jobs/{task_id}/retry", headers=DESK)
        assert response.status_code == 200
        client.portal.call(print_queue.drain)

        job = client.get(f"/api/v1/print-jobs/{task_id}", headers=DESK).json()
        assert job["status"] == "completed"
        assert job["attempts"] == 2

        response = client.post(f"/api/v1/print-jobs/{task_id}/retry", headers=DESK)
        assert response.status_code == 409

    def test_unknown_print_job(self, client):
        response = client.get("/api/v1/print-jobs/nope", headers=DESK)
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"
        assert response.json()["message"] == "Print job 'nope' was not found"

    def test_print_jobs_require_receptionist(self, client):
        assert client.get("/api/v1/print-jobs/nope").status_code == 401
        assert client.get("/api/v1/print-jobs/nope", headers=ADMIN).status_code == 403

class TestAdminApi:

    def test_add_doctor(self, client, admin_client):
        response = client.post("/api/v1/admin/doctors", json=VALID_DOCTOR, headers=ADMIN)
        assert response.status_code == 201, response.text
        assert response.json()["message"] == "Doctor added successfully"
        assert admin_client.added[0]["consultationFees"] == 400
        assert admin_client.added[0]["email"] == "meera.pillai@example.org"

    def test_invalid_doctor_record(self, client, admin_client):
        record = dict(VALID_DOCTOR, name="", age=17, email="not-an-email")

        response = client.post("/api/v1/admin/doctors", json=record, headers=ADMIN)
        assert response.status_code == 422

        errors = response.json()["detail"]["errors"]
        assert errors == {
            "name": "Name is required",
            "age": "Age must be at least 18",
            "email": "Email is invalid",
        }
        assert admin_client.added == []

    def test_backend_rejects_doctor(self, client, admin_client):
        admin_client.error = BackendRejectedError("Email already in use", 400)

        response = client.post("/api/v1/admin/doctors", json=VALID_DOCTOR, headers=ADMIN)
        assert response.status_code == 502
        assert response.json()["detail"] == {
            "message": "Failed to add doctor",
            "reason": "Email already in use",
        }

    def test_admin_only(self, client):
        response = client.post("/api/v1/admin/doctors", json=VALID_DOCTOR, headers=DESK)
        assert response.status_code == 403

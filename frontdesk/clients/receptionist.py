from typing import Any, Dict, List
from pydantic import ValidationError
import httpx

from .base import BackendClient, BackendRejectedError
from ..models.doctor import Doctor
from ..models.patient import PatientSummary, RegisteredPatient

class ReceptionistClient(BackendClient):
    """Calls under the receptionist base path."""

    async def list_active_doctors(self) -> List[Doctor]:
        data = await self._request("GET", "/doctors/active")
        if data is not None and not isinstance(data, list):
            raise BackendRejectedError("Backend returned a malformed doctor list")
        try:
            return [Doctor.model_validate(item) for item in data or []]
        except ValidationError as e:
            raise BackendRejectedError("Backend returned a malformed doctor list") from e

    async def add_patient(self, payload: Dict[str, Any]) -> RegisteredPatient:
        data = await self._request("POST", "/patients/add", json=payload)
        return _registered(data)

    async def add_existing_patient_appointment(self, payload: Dict[str, Any]) -> RegisteredPatient:
        data = await self._request("POST", "/patients/existing/add", json=payload)
        return _registered(data)

    async def get_patient(self, patient_id: str) -> PatientSummary:
        data = await self._request("GET", f"/patients/{patient_id}")
        if not isinstance(data, dict):
            raise BackendRejectedError("Patient not found", 404)
        try:
            return PatientSummary.model_validate(data)
        except ValidationError as e:
            raise BackendRejectedError("Backend returned a malformed patient record") from e

    async def fetch_prescription_document(self, record_id: str) -> bytes:
        """Download the rendered prescription for a record."""
        return await self._download("GET", f"/patients/{record_id}/print-prescription")

    async def fetch_prescription_url(self, record_id: str) -> str:
        payload = await self._request_raw("GET", f"/patients/{record_id}/prescription-url")
        url = payload.get("url")
        if not payload.get("status") or not url:
            raise BackendRejectedError(payload.get("message") or "Prescription not found")
        return url

    async def download(self, url: str) -> bytes:
        """Fetch a document from an absolute URL handed out by the backend.

        Relative URLs resolve against the receptionist base path. For absolute
        URLs the session token is not sent along; they are expected to be
        self-authorizing.
        """
        if httpx.URL(url).is_relative_url:
            return await self._download("GET", url)

        async with httpx.AsyncClient(timeout=self._http.timeout) as http:
            response = await self._send("GET", url, http=http)
        return response.content

def _registered(data: Any) -> RegisteredPatient:
    if not isinstance(data, dict):
        raise BackendRejectedError("Backend response missing the created record")
    try:
        return RegisteredPatient.model_validate(data)
    except ValidationError as e:
        raise BackendRejectedError("Backend returned a malformed record") from e

from fastapi import HTTPException, status
import logging

from ..clients.base import BackendError
from ..clients.receptionist import ReceptionistClient
from ..models.patient import FormVariant, RegistrationDraft, RegisteredPatient
from .printing import PrintQueue, PrintTask

logger = logging.getLogger(__name__)

FAILURE_MESSAGES = {
    FormVariant.NEW_PATIENT: "Failed to register patient",
    FormVariant.NEW_PATIENT_ADDRESS: "Failed to register patient",
    FormVariant.EXISTING_PATIENT: "Failed to create appointment",
}

class SubmissionFailedError(HTTPException):
    def __init__(self, message: str, reason: str = ""):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": message, "reason": reason},
        )
        self.message = message
        self.reason = reason

class SubmissionPipeline:
    """Persists validated drafts and starts the prescription print for them."""

    def __init__(self, client: ReceptionistClient, print_queue: PrintQueue):
        self.client = client
        self.print_queue = print_queue

    async def submit(self, draft: RegistrationDraft, variant: FormVariant) -> RegisteredPatient:
        """Send one create call. Nothing is retried."""
        payload = draft.to_payload(variant)
        try:
            if variant == FormVariant.EXISTING_PATIENT:
                record = await self.client.add_existing_patient_appointment(payload)
            else:
                record = await self.client.add_patient(payload)
        except BackendError as e:
            logger.warning(f"Submission of {variant.value} form failed: {e.message}")
            raise SubmissionFailedError(FAILURE_MESSAGES[variant], e.message) from e

        logger.info(f"Created record {record.id} (OP number {record.op_number})")
        return record

    def print_prescription(self, record: RegisteredPatient) -> PrintTask:
        """Queue the prescription print for a persisted record."""
        return self.print_queue.enqueue(
            record.id, self.client, record.document_title, record=record
        )

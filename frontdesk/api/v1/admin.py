from fastapi import APIRouter, Depends, HTTPException, status
import logging

from ...clients.admin import AdminClient
from ...clients.base import BackendError
from ...api.deps import get_admin_client
from ...models.doctor import DoctorRecordDraft
from ...services.registration import FormValidationError
from ...services.validation import validate_doctor_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Administration"])

@router.post("/doctors", status_code=status.HTTP_201_CREATED)
async def add_doctor(
    record: DoctorRecordDraft,
    client: AdminClient = Depends(get_admin_client),
):
    """Add a doctor record after checking the staff-record rules."""
    errors = validate_doctor_record(record)
    if errors:
        raise FormValidationError(errors)

    try:
        doctor = await client.add_doctor(record.to_payload())
    except BackendError as e:
        logger.warning(f"Failed to add doctor: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": "Failed to add doctor", "reason": e.message},
        )

    return {"message": "Doctor added successfully", "doctor": doctor}

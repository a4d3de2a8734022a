from fastapi import APIRouter, Depends, HTTPException, status
import logging

from ...clients.base import BackendError
from ...clients.receptionist import ReceptionistClient
from ...core.config import Settings
from ...core.session import Session
from ...api.deps import (
    get_form_registry, get_receptionist_client, get_receptionist_session,
    get_settings, get_submission_pipeline
)
from ...models.patient import FormVariant
from ...services.doctor_directory import DoctorDirectory
from ...services.registration import FormRegistry, RegistrationForm
from ...services.submission import SubmissionPipeline
from ...schemas.registration import (
    DoctorSelection, FieldUpdate, FormMount, FormSnapshot,
    PrintTaskResponse, SubmissionResponse, ValidationResult
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/registration", tags=["Registration"])

@router.post("/forms", response_model=FormSnapshot, status_code=status.HTTP_201_CREATED)
async def mount_form(
    mount: FormMount,
    session: Session = Depends(get_receptionist_session),
    client: ReceptionistClient = Depends(get_receptionist_client),
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
    forms: FormRegistry = Depends(get_form_registry),
    config: Settings = Depends(get_settings),
):
    """Open a registration or appointment form and load the doctor list."""
    patient = None
    if mount.variant == FormVariant.EXISTING_PATIENT:
        if not mount.patient_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Patient information is missing",
            )
        try:
            patient = await client.get_patient(mount.patient_id)
        except BackendError as e:
            logger.warning(f"Failed to fetch patient {mount.patient_id}: {e.message}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to fetch patient details",
            )

    form = RegistrationForm(
        mount.variant,
        DoctorDirectory(client),
        pipeline,
        owner=session.token,
        patient=patient,
        config=config,
    )
    await form.mount()
    forms.add(form)

    return FormSnapshot.from_form(form)

@router.get("/forms/{form_id}", response_model=FormSnapshot)
async def get_form(
    form_id: str,
    session: Session = Depends(get_receptionist_session),
    forms: FormRegistry = Depends(get_form_registry),
):
    """Current state of a form."""
    return FormSnapshot.from_form(forms.get(form_id, session.token))

@router.patch("/forms/{form_id}/fields", response_model=FormSnapshot)
async def set_field(
    form_id: str,
    update: FieldUpdate,
    session: Session = Depends(get_receptionist_session),
    forms: FormRegistry = Depends(get_form_registry),
):
    form = forms.get(form_id, session.token)
    form.set_field(update.name, update.value)
    return FormSnapshot.from_form(form)

@router.put("/forms/{form_id}/doctor", response_model=FormSnapshot)
async def select_doctor(
    form_id: str,
    selection: DoctorSelection,
    session: Session = Depends(get_receptionist_session),
    forms: FormRegistry = Depends(get_form_registry),
):
    """Choose the consulting doctor; department and fee follow."""
    form = forms.get(form_id, session.token)
    form.select_doctor(selection.doctor_id)
    return FormSnapshot.from_form(form)

@router.post("/forms/{form_id}/validate", response_model=ValidationResult)
async def validate_form(
    form_id: str,
    session: Session = Depends(get_receptionist_session),
    forms: FormRegistry = Depends(get_form_registry),
):
    errors = forms.get(form_id, session.token).validate()
    return ValidationResult(valid=not errors, errors=errors)

@router.post("/forms/{form_id}/submit", response_model=SubmissionResponse)
async def submit_form(
    form_id: str,
    session: Session = Depends(get_receptionist_session),
    forms: FormRegistry = Depends(get_form_registry),
):
    """Persist the form and start printing the prescription."""
    form = forms.get(form_id, session.token)
    outcome = await form.submit()

    return SubmissionResponse(
        record=outcome.record.model_dump(mode="json", by_alias=True),
        print_task=PrintTaskResponse.from_task(outcome.print_task) if outcome.print_task else None,
        form=FormSnapshot.from_form(form),
    )

@router.delete("/forms/{form_id}")
async def close_form(
    form_id: str,
    session: Session = Depends(get_receptionist_session),
    forms: FormRegistry = Depends(get_form_registry),
):
    forms.remove(form_id, session.token)
    return {"message": "Form closed"}

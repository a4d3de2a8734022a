from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.doctor import Fee
from ..models.patient import FormVariant, PatientSummary
from ..services.printing import PrintStatus, PrintTask
from ..services.registration import FormState, RegistrationForm

class FormMount(BaseModel):
    variant: FormVariant = FormVariant.NEW_PATIENT
    patient_id: Optional[str] = Field(None, alias="patientId")

class FieldUpdate(BaseModel):
    name: str
    value: Any = None

class DoctorSelection(BaseModel):
    doctor_id: Optional[str] = Field(None, alias="doctorId")

class DoctorOption(BaseModel):
    id: str
    name: str
    department: str
    consultation_fee: Fee

class FormSnapshot(BaseModel):
    id: str
    variant: FormVariant
    state: FormState
    draft: Dict[str, Any]
    errors: Dict[str, str]
    doctors: List[DoctorOption]
    warnings: List[str]
    patient: Optional[PatientSummary] = None
    submitting: bool = False
    submission_error: Optional[str] = None
    last_result: Optional[Dict[str, Any]] = None
    print_task_id: Optional[str] = None

    @classmethod
    def from_form(cls, form: RegistrationForm) -> "FormSnapshot":
        return cls(
            id=form.id,
            variant=form.variant,
            state=form.state,
            draft=form.draft.model_dump(mode="json", by_alias=True),
            errors=form.errors,
            doctors=[
                DoctorOption(
                    id=doctor.id,
                    name=doctor.name,
                    department=doctor.department,
                    consultation_fee=doctor.consultation_fee,
                )
                for doctor in form.directory.options()
            ],
            warnings=form.warnings,
            patient=form.patient,
            submitting=form.in_flight,
            submission_error=form.submission_error,
            last_result=(
                form.last_result.model_dump(mode="json", by_alias=True)
                if form.last_result else None
            ),
            print_task_id=form.print_task_id,
        )

class ValidationResult(BaseModel):
    valid: bool
    errors: Dict[str, str]

class PrintTaskResponse(BaseModel):
    id: str
    record_id: str
    title: str
    status: PrintStatus
    attempts: int
    error: Optional[str] = None
    warning: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None

    @classmethod
    def from_task(cls, task: PrintTask) -> "PrintTaskResponse":
        return cls(
            id=task.id,
            record_id=task.record_id,
            title=task.title,
            status=task.status,
            attempts=task.attempts,
            error=task.error,
            warning=(
                "Patient was registered, but the prescription could not be printed"
                if task.status == PrintStatus.FAILED else None
            ),
            created_at=task.created_at,
            finished_at=task.finished_at,
        )

class SubmissionResponse(BaseModel):
    record: Dict[str, Any]
    print_task: Optional[PrintTaskResponse] = None
    form: FormSnapshot

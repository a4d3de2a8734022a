"""Registration form state.

`apply_event` is the only place a draft changes. It is a pure function of the
current draft, one event and the doctor directory, so the department and fee
that follow a doctor selection can be checked without any HTTP wiring.
`RegistrationForm` wraps it with validation, the submit guard and the hand-off
to the submission pipeline.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import uuid4
from fastapi import HTTPException, status
import enum
import logging

from ..core.config import Settings, settings as default_settings
from ..models.patient import (
    DERIVED_FIELDS, FIELD_NAMES, IDENTITY_FIELDS, WIRE_NAMES,
    FormVariant, PatientSummary, RegisteredPatient, RegistrationDraft,
)
from .doctor_directory import DoctorDirectory
from .printing import PrintTask
from .submission import SubmissionFailedError, SubmissionPipeline
from .validation import validate_draft

logger = logging.getLogger(__name__)

class FormState(str, enum.Enum):
    EMPTY = "empty"
    EDITING = "editing"
    VALIDATING = "validating"
    INVALID = "invalid"
    VALID = "valid"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"

# Form exceptions
class UnknownFieldError(HTTPException):
    def __init__(self, name: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown field '{name}'",
        )

class ReadOnlyFieldError(HTTPException):
    def __init__(self, name: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Field '{name}' cannot be edited",
        )

class FormValidationError(HTTPException):
    def __init__(self, errors: Dict[str, str]):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Please correct the highlighted fields", "errors": errors},
        )
        self.errors = errors

class SubmissionInProgressError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="A submission for this form is already in progress",
        )

class FormNotFoundError(HTTPException):
    def __init__(self, form_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Form '{form_id}' was not found",
        )

# Events
@dataclass(frozen=True)
class FieldChanged:
    name: str
    value: Any

@dataclass(frozen=True)
class DoctorSelected:
    doctor_id: Optional[str]

FormEvent = Union[FieldChanged, DoctorSelected]

def apply_event(
    draft: RegistrationDraft,
    event: FormEvent,
    directory: DoctorDirectory,
    variant: FormVariant = FormVariant.NEW_PATIENT,
) -> RegistrationDraft:
    """Return the draft that results from `event`."""
    if isinstance(event, DoctorSelected):
        return _select_doctor(draft, event.doctor_id, directory)

    attr = FIELD_NAMES.get(event.name)
    if attr is None:
        raise UnknownFieldError(event.name)
    if attr == "doctor_id":
        return _select_doctor(draft, _coerce_text(event.value) or None, directory)
    if attr in DERIVED_FIELDS:
        raise ReadOnlyFieldError(event.name)
    if variant == FormVariant.EXISTING_PATIENT and attr in IDENTITY_FIELDS:
        raise ReadOnlyFieldError(event.name)
    if variant != FormVariant.EXISTING_PATIENT and attr == "existing_patient_id":
        raise ReadOnlyFieldError(event.name)

    if attr == "age":
        value = _coerce_age(event.value)
    elif attr in ("visit_date", "renewal_date"):
        value = _coerce_date(event.value)
    elif attr == "sex":
        value = _coerce_text(event.value) or None
    else:
        value = _coerce_text(event.value)

    return draft.model_copy(update={attr: value})

def _select_doctor(
    draft: RegistrationDraft, doctor_id: Optional[str], directory: DoctorDirectory
) -> RegistrationDraft:
    doctor = directory.lookup(doctor_id)
    if doctor is None:
        # Unknown id: keep the derived values already on the draft
        return draft.model_copy(update={"doctor_id": doctor_id})

    return draft.model_copy(update={
        "doctor_id": doctor.id,
        "department": doctor.department,
        "consultation_fee": doctor.consultation_fee,
    })

def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)

def _coerce_age(value: Any) -> Optional[Union[int, str]]:
    # Keep unparsable input as typed so validation can report it
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else str(value)

    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return text

def _coerce_date(value: Any) -> Optional[Union[date, str]]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return text

@dataclass
class SubmissionOutcome:
    record: RegisteredPatient
    print_task: Optional[PrintTask]

class RegistrationForm:
    """Controller for one mounted registration or appointment form."""

    def __init__(
        self,
        variant: FormVariant,
        directory: DoctorDirectory,
        pipeline: SubmissionPipeline,
        owner: str = "",
        patient: Optional[PatientSummary] = None,
        config: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.id = uuid4().hex
        self.variant = variant
        self.directory = directory
        self.pipeline = pipeline
        self.owner = owner
        self.patient = patient
        self.config = config or default_settings
        self._today = today

        self.draft = self._new_draft()
        self.state = FormState.EMPTY
        self.errors: Dict[str, str] = {}
        self.submission_error: Optional[str] = None
        self.last_result: Optional[RegisteredPatient] = None
        self.print_task_id: Optional[str] = None
        self.in_flight = False
        self.closed = False

    async def mount(self) -> "RegistrationForm":
        """Load the doctor directory. A failed load leaves the form usable."""
        await self.directory.load()
        return self

    @property
    def warnings(self) -> List[str]:
        return [self.directory.load_error] if self.directory.load_error else []

    def dispatch(self, event: FormEvent) -> RegistrationDraft:
        self.draft = apply_event(self.draft, event, self.directory, self.variant)
        self.state = FormState.EDITING

        changed = "doctor_id" if isinstance(event, DoctorSelected) else FIELD_NAMES[event.name]
        self.errors.pop(WIRE_NAMES[changed], None)
        return self.draft

    def set_field(self, name: str, value: Any) -> RegistrationDraft:
        return self.dispatch(FieldChanged(name, value))

    def select_doctor(self, doctor_id: Optional[str]) -> RegistrationDraft:
        return self.dispatch(DoctorSelected(doctor_id))

    def validate(self) -> Dict[str, str]:
        if self.in_flight:
            raise SubmissionInProgressError()
        return self._validate()

    def _validate(self) -> Dict[str, str]:
        self.state = FormState.VALIDATING
        self.errors = validate_draft(
            self.draft, self.variant, self.config.ENFORCE_RENEWAL_ORDER
        )
        self.state = FormState.INVALID if self.errors else FormState.VALID
        return dict(self.errors)

    async def submit(self) -> SubmissionOutcome:
        """Validate, persist, then start printing.

        Raises `SubmissionInProgressError` while an earlier submit is still
        waiting on the backend, `FormValidationError` without touching the
        network, or `SubmissionFailedError` with the draft left as it was.
        """
        if self.in_flight:
            raise SubmissionInProgressError()

        self.in_flight = True
        try:
            errors = self._validate()
            if errors:
                raise FormValidationError(errors)

            self.state = FormState.SUBMITTING
            self.submission_error = None
            try:
                record = await self.pipeline.submit(self.draft, self.variant)
            except SubmissionFailedError as e:
                self.state = FormState.EDITING
                self.submission_error = e.message
                raise

            if self.closed:
                logger.info(f"Form {self.id} was closed before record {record.id} came back")
                return SubmissionOutcome(record, None)

            self.state = FormState.SUBMITTED
            self.last_result = record
            self.draft = self._new_draft()
            self.errors = {}

            task = self.pipeline.print_prescription(record)
            self.print_task_id = task.id
            return SubmissionOutcome(record, task)
        finally:
            if self.state == FormState.SUBMITTING:
                self.state = FormState.EDITING
            self.in_flight = False

    def _new_draft(self) -> RegistrationDraft:
        return RegistrationDraft.empty(
            today=self._today(),
            renewal_days=self.config.RENEWAL_PERIOD_DAYS,
            existing_patient_id=self.patient.id if self.patient else None,
        )

class FormRegistry:
    """Mounted forms, each owned by the session that opened it."""

    def __init__(self):
        self._forms: Dict[str, RegistrationForm] = {}

    def add(self, form: RegistrationForm) -> RegistrationForm:
        self._forms[form.id] = form
        return form

    def get(self, form_id: str, owner: str) -> RegistrationForm:
        form = self._forms.get(form_id)
        if form is None or form.owner != owner:
            raise FormNotFoundError(form_id)
        return form

    def remove(self, form_id: str, owner: str) -> RegistrationForm:
        form = self.get(form_id, owner)
        form.closed = True
        del self._forms[form_id]
        return form

    def discard_owner(self, owner: str) -> int:
        """Close every form of one session."""
        form_ids = [form.id for form in self._forms.values() if form.owner == owner]
        for form_id in form_ids:
            self.remove(form_id, owner)
        return len(form_ids)

    def __len__(self):
        return len(self._forms)

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, timedelta
from typing import Optional, Union, Any, Dict
import enum

from .doctor import Fee

class Sex(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

class FormVariant(str, enum.Enum):
    NEW_PATIENT = "new-patient"
    NEW_PATIENT_ADDRESS = "new-patient-address"
    EXISTING_PATIENT = "existing-patient"

class RegistrationDraft(BaseModel):
    """The in-progress registration form.

    Drafts are immutable; every edit produces a new draft. ``age`` and the two
    dates keep whatever the user typed when it cannot be parsed, so that
    validation can report it instead of the value silently becoming 0.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = ""
    sex: Optional[str] = None
    age: Optional[Union[int, str]] = None
    home_name: str = Field("", alias="homeName")
    place: str = ""
    address: str = ""
    phone: str = ""
    visit_date: Optional[Union[date, str]] = Field(None, alias="date")
    renewal_date: Optional[Union[date, str]] = Field(None, alias="renewalDate")
    doctor_id: Optional[str] = Field(None, alias="doctorId")
    department: str = ""
    consultation_fee: Fee = Field(0, alias="consultationFees")
    existing_patient_id: Optional[str] = Field(None, alias="existingPatientId")

    @classmethod
    def empty(
        cls,
        today: Optional[date] = None,
        renewal_days: int = 7,
        existing_patient_id: Optional[str] = None,
    ) -> "RegistrationDraft":
        """A fresh draft: visit today, renewal `renewal_days` later."""
        today = today or date.today()
        return cls(
            visit_date=today,
            renewal_date=today + timedelta(days=renewal_days),
            existing_patient_id=existing_patient_id,
        )

    def to_payload(self, variant: FormVariant) -> Dict[str, Any]:
        """Request body for the backend create call of `variant`."""
        if variant == FormVariant.EXISTING_PATIENT:
            return {
                "existingPatientId": self.existing_patient_id,
                "doctorId": self.doctor_id,
                "date": _iso(self.visit_date),
                "renewalDate": _iso(self.renewal_date),
            }

        payload = {
            "name": self.name.strip(),
            "sex": self.sex,
            "age": self.age,
            "phone": self.phone.strip(),
            "date": _iso(self.visit_date),
            "renewalDate": _iso(self.renewal_date),
            "doctorId": self.doctor_id,
            "department": self.department,
            "consultationFees": self.consultation_fee,
        }
        if variant == FormVariant.NEW_PATIENT_ADDRESS:
            payload["address"] = self.address.strip()
        else:
            payload["homeName"] = self.home_name.strip()
            payload["place"] = self.place.strip()
        return payload

# Draft attribute -> name used by the browser and in error maps
WIRE_NAMES = {
    "name": "name",
    "sex": "sex",
    "age": "age",
    "home_name": "homeName",
    "place": "place",
    "address": "address",
    "phone": "phone",
    "visit_date": "date",
    "renewal_date": "renewalDate",
    "doctor_id": "doctorId",
    "department": "department",
    "consultation_fee": "consultationFees",
    "existing_patient_id": "existingPatientId",
}

# Accepts either spelling
FIELD_NAMES = {wire: attr for attr, wire in WIRE_NAMES.items()}
FIELD_NAMES.update({attr: attr for attr in WIRE_NAMES})

DERIVED_FIELDS = frozenset({"department", "consultation_fee"})
IDENTITY_FIELDS = frozenset({
    "name", "sex", "age", "home_name", "place", "address", "phone", "existing_patient_id",
})

class PatientSummary(BaseModel):
    """Read-only patient identity shown on the existing-patient form."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    name: str = ""
    age: Optional[int] = None
    sex: Optional[str] = None
    home_name: Optional[str] = Field(None, alias="homeName")
    place: Optional[str] = None
    phone: Optional[str] = None
    op_number: Optional[str] = Field(None, alias="opNumber")

class RegisteredPatient(BaseModel):
    """A record the backend created for a registration or appointment."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    name: Optional[str] = None
    sex: Optional[str] = None
    age: Optional[int] = None
    home_name: Optional[str] = Field(None, alias="homeName")
    place: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    doctor: Optional[Union[str, Dict[str, Any]]] = None
    department: Optional[str] = None
    consultation_fee: Optional[Fee] = Field(None, alias="consultationFees")
    op_number: Optional[str] = Field(None, alias="opNumber")
    reg_number: Optional[str] = Field(None, alias="regNumber")
    visit_date: Optional[str] = Field(None, alias="date")
    renewal_date: Optional[str] = Field(None, alias="renewalDate")
    prescription_added: Optional[str] = Field(None, alias="prescriptionAdded")

    @property
    def document_title(self) -> str:
        return f"Prescription_{self.name or self.op_number or self.id}"

    def __repr__(self):
        return f"<RegisteredPatient(id={self.id}, op_number='{self.op_number}')>"

def _iso(value: Optional[Union[date, str]]) -> Optional[str]:
    if isinstance(value, date):
        return value.isoformat()
    return value

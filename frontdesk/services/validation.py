"""Client-side form rules.

These checks are advisory: the hospital backend remains the authority and may
still reject a record that passes here. Every function returns a mapping of
field name to message, empty when the input is acceptable, and never mutates
its argument.
"""
from datetime import date
from typing import Dict, Optional, Union, Any
import re

from ..models.doctor import DoctorRecordDraft
from ..models.patient import FormVariant, RegistrationDraft, Sex

SEX_VALUES = frozenset(sex.value for sex in Sex)
EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

MIN_NAME_LENGTH = 2
MIN_ADDRESS_LENGTH = 5
MIN_PHONE_LENGTH = 10
MIN_STAFF_AGE = 18

def validate_draft(
    draft: RegistrationDraft,
    variant: FormVariant,
    enforce_renewal_order: bool = False,
) -> Dict[str, str]:
    """Validate a registration or appointment draft."""
    errors: Dict[str, str] = {}

    if variant == FormVariant.EXISTING_PATIENT:
        if not draft.existing_patient_id:
            errors["existingPatientId"] = "Patient information is missing"
    else:
        if len(draft.name.strip()) < MIN_NAME_LENGTH:
            errors["name"] = "Name must be at least 2 characters"

        if draft.sex not in SEX_VALUES:
            errors["sex"] = "Please select a gender"

        age_error = _check_age(draft.age)
        if age_error:
            errors["age"] = age_error

        if variant == FormVariant.NEW_PATIENT_ADDRESS:
            if len(draft.address.strip()) < MIN_ADDRESS_LENGTH:
                errors["address"] = "Address must be at least 5 characters"
        else:
            if len(draft.home_name.strip()) < MIN_NAME_LENGTH:
                errors["homeName"] = "Home name must be at least 2 characters"
            if len(draft.place.strip()) < MIN_NAME_LENGTH:
                errors["place"] = "Place must be at least 2 characters"

        if len(draft.phone.strip()) < MIN_PHONE_LENGTH:
            errors["phone"] = "Phone number must be at least 10 digits"

    date_error = _check_date(draft.visit_date, "Date")
    if date_error:
        errors["date"] = date_error

    renewal_error = _check_date(draft.renewal_date, "Renewal date")
    if renewal_error:
        errors["renewalDate"] = renewal_error

    if not draft.doctor_id:
        errors["doctorId"] = "Please select a doctor"

    if (
        enforce_renewal_order
        and not date_error
        and not renewal_error
        and draft.renewal_date < draft.visit_date
    ):
        errors["renewalDate"] = "Renewal date cannot be before the visit date"

    return errors

def validate_doctor_record(record: DoctorRecordDraft) -> Dict[str, str]:
    """Validate a doctor record entered by an administrator."""
    errors: Dict[str, str] = {}

    for field, label in (
        ("name", "Name"),
        ("qualification", "Qualification"),
        ("specialization", "Specialization"),
        ("department", "Department"),
    ):
        if not getattr(record, field).strip():
            errors[field] = f"{label} is required"

    if record.gender not in SEX_VALUES:
        errors["gender"] = "Please select a gender"

    phone = record.phone.strip()
    if not phone:
        errors["phone"] = "Phone number is required"
    elif len(phone) < MIN_PHONE_LENGTH:
        errors["phone"] = "Phone number must be at least 10 digits"

    email = record.email.strip()
    if not email:
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.fullmatch(email):
        errors["email"] = "Email is invalid"

    age = parse_int(record.age)
    if age is None or age < MIN_STAFF_AGE:
        errors["age"] = "Age must be at least 18"

    if record.consultation_fee is not None:
        fee = _parse_number(record.consultation_fee)
        if fee is None:
            errors["consultationFees"] = "Consultation fee must be a number"
        elif fee < 0:
            errors["consultationFees"] = "Consultation fee cannot be negative"

    return errors

def parse_int(value: Any) -> Optional[int]:
    """Return `value` as an int, or None when it is not a whole number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None

def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

def _check_age(age: Optional[Union[int, str]]) -> Optional[str]:
    if age is None or (isinstance(age, str) and not age.strip()):
        return "Age is required"
    if not isinstance(age, int):
        return "Age must be a number"
    if age < 0:
        return "Age must be a positive number"
    return None

def _check_date(value: Optional[Union[date, str]], label: str) -> Optional[str]:
    if value is None or value == "":
        return f"{label} is required"
    if not isinstance(value, date):
        return f"{label} must be a valid date"
    return None

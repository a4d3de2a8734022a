from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Union

Fee = Union[int, float]

class Doctor(BaseModel):
    """A doctor as listed by the backend's active-doctor endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    name: str
    department: str = ""
    consultation_fee: Fee = Field(0, alias="consultationFees", ge=0)
    active: bool = Field(True, alias="status")

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', department='{self.department}')>"

class DoctorRecordDraft(BaseModel):
    """Doctor record entered by an administrator."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    qualification: str = ""
    specialization: str = ""
    department: str = ""
    gender: str = "male"
    age: Optional[Union[int, str]] = None
    phone: str = ""
    email: str = ""
    consultation_fee: Optional[Union[int, float, str]] = Field(None, alias="consultationFees")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

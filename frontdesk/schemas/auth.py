from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict

from ..core.session import StaffRole

class StaffLogin(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    role: StaffRole = StaffRole.RECEPTIONIST

class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: StaffRole
    user: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime

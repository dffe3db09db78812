from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_serializer, field_validator

from app.api.attendance_tokens.schemas import AttendanceAction
from app.core.utils import is_numeric_code


class ScanRequest(BaseModel):
    raw_input: str
    action_time: Optional[datetime] = None

    @field_validator('raw_input')
    def validate_raw_input(cls, v):
        if not v or not v.strip():
            raise ValueError('Token is required')
        return v


class CodeVerifyRequest(BaseModel):
    code: str
    action_time: Optional[datetime] = None

    @field_validator('code')
    def validate_code(cls, v):
        v = (v or '').strip()
        if not is_numeric_code(v):
            raise ValueError('Code must be exactly 6 digits')
        return v


class AttendanceOutcome(BaseModel):
    success: bool = True
    action: AttendanceAction
    project_id: int
    project_name: Optional[str] = None
    action_time: datetime
    record_id: int
    hours_worked: Optional[float] = None
    message: str

    @field_serializer('hours_worked')
    def serialize_hours_worked(self, v: Optional[float]) -> Optional[float]:
        return round(v, 2) if v is not None else None


class AttendanceFailure(BaseModel):
    success: bool = False
    error_class: str
    message: str

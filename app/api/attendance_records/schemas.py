from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_serializer


class RecordStatus(str, Enum):
    ALL = 'all'
    CHECKED_IN = 'checked-in'
    CHECKED_OUT = 'checked-out'


class RecordFilter(BaseModel):
    status: RecordStatus = RecordStatus.ALL
    on_date: Optional[date] = None
    volunteer_id: Optional[int] = None


class AttendanceRecord(BaseModel):
    id: int
    volunteer_id: int
    project_id: int
    check_in_at: datetime
    check_in_method: Optional[str] = None
    check_out_at: Optional[datetime] = None
    check_out_method: Optional[str] = None
    hours_worked: Optional[float] = None

    model_config = ConfigDict(
        from_attributes=True,
    )

    @field_serializer('hours_worked')
    def serialize_hours_worked(self, v: Optional[float]) -> Optional[float]:
        return round(v, 2) if v is not None else None


class RecordSummary(BaseModel):
    project_id: int
    total_hours: float
    checked_in_count: int
    checked_out_count: int

# Import all models here to ensure SQLAlchemy registers every table
from app.api.attendance_records.models import AttendanceRecord
from app.api.attendance_tokens.models import AttendanceCode, AttendanceToken
from app.api.projects.models import Project

# Re-export all models
__all__ = [
    'AttendanceCode',
    'AttendanceRecord',
    'AttendanceToken',
    'Project',
]

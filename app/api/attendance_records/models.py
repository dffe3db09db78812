from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, text

from app.core.database import Base
from app.core.utils import current_time

OPEN_RECORD_CONDITION = text('check_out_at IS NULL')


class AttendanceRecord(Base):
    __tablename__ = 'attendance_records'
    __table_args__ = (
        # At most one open session per volunteer and project
        Index(
            'uix_open_attendance_record',
            'volunteer_id',
            'project_id',
            unique=True,
            postgresql_where=OPEN_RECORD_CONDITION,
            sqlite_where=OPEN_RECORD_CONDITION,
        ),
    )

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        unique=True,
        index=True,
    )
    volunteer_id = Column(Integer, index=True, nullable=False)
    project_id = Column(Integer, ForeignKey('projects.id'), index=True, nullable=False)
    check_in_at = Column(DateTime, nullable=False)
    check_in_method = Column(String)
    check_out_at = Column(DateTime)
    check_out_method = Column(String)
    hours_worked = Column(Float)

    created_at = Column(DateTime, default=current_time)
    updated_at = Column(DateTime, default=current_time, onupdate=current_time)
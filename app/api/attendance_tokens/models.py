from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import declared_attr

from app.api.attendance_tokens.schemas import AttendanceAction
from app.core.database import Base
from app.core.utils import current_time


class AttendanceCredentialMixin:
    """Columns shared by scannable tokens and typed codes."""

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        unique=True,
        index=True,
    )
    action = Column(
        Enum(AttendanceAction, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    issued_at = Column(DateTime, nullable=False, default=current_time)
    expires_at = Column(DateTime, nullable=False)
    issued_by = Column(Integer)

    consumed = Column(Boolean, nullable=False, default=False)
    consumed_by = Column(Integer)
    consumed_at = Column(DateTime)

    @declared_attr
    def project_id(cls):
        return Column(Integer, ForeignKey('projects.id'), index=True, nullable=False)

    def is_expired(self, at) -> bool:
        return self.expires_at < at


class AttendanceToken(AttendanceCredentialMixin, Base):
    __tablename__ = 'attendance_tokens'

    value = Column(String, unique=True, index=True, nullable=False)


class AttendanceCode(AttendanceCredentialMixin, Base):
    __tablename__ = 'attendance_codes'

    # Values are reused over time; issuance keeps them unique among active codes
    value = Column(String(6), index=True, nullable=False)

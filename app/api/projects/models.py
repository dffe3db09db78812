from sqlalchemy import Column, DateTime, Integer, String

from app.core.database import Base
from app.core.utils import current_time


class Project(Base):
    """Read-only copy of the project directory, used for display and scoping."""

    __tablename__ = 'projects'

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        unique=True,
        index=True,
    )
    name = Column(String, index=True, nullable=False)
    organization_name = Column(String)
    location = Column(String)
    start_date = Column(DateTime)
    end_date = Column(DateTime)

    created_at = Column(DateTime, default=current_time)
    updated_at = Column(DateTime, default=current_time, onupdate=current_time)

from datetime import datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from app.api.attendance_records import models, schemas
from app.api.attendance_records.schemas import RecordStatus
from app.api.base_crud import CRUDBase
from app.core.logger import logger

SECONDS_PER_HOUR = 3600


def compute_hours_worked(check_in_at: datetime, check_out_at: datetime) -> float:
    elapsed = (check_out_at - check_in_at).total_seconds()
    return max(0.0, elapsed / SECONDS_PER_HOUR)


class CRUDAttendanceRecord(
    CRUDBase[models.AttendanceRecord, schemas.AttendanceRecord, schemas.AttendanceRecord]
):
    def _apply_filters(
        self, query: Query, filters: Optional[BaseModel] = None
    ) -> Query:
        if not filters:
            return query

        if filters.status == RecordStatus.CHECKED_IN:
            query = query.filter(self.model.check_out_at.is_(None))
        elif filters.status == RecordStatus.CHECKED_OUT:
            query = query.filter(self.model.check_out_at.isnot(None))

        if filters.on_date:
            day_start = datetime.combine(filters.on_date, time.min)
            query = query.filter(
                self.model.check_in_at >= day_start,
                self.model.check_in_at < day_start + timedelta(days=1),
            )

        if filters.volunteer_id is not None:
            query = query.filter(self.model.volunteer_id == filters.volunteer_id)
        return query

    def get_open(
        self, db: Session, volunteer_id: int, project_id: int
    ) -> Optional[models.AttendanceRecord]:
        return (
            db.query(self.model)
            .filter(
                self.model.volunteer_id == volunteer_id,
                self.model.project_id == project_id,
                self.model.check_out_at.is_(None),
            )
            .first()
        )

    def open_session(
        self,
        db: Session,
        volunteer_id: int,
        project_id: int,
        at: datetime,
        method: str,
    ) -> models.AttendanceRecord:
        """Add an open record. Flushes only, the caller owns the commit."""
        record = self.model(
            volunteer_id=volunteer_id,
            project_id=project_id,
            check_in_at=at,
            check_in_method=method,
        )
        db.add(record)
        db.flush()
        logger.info(
            'Opened attendance record %s for volunteer %s in project %s',
            record.id,
            volunteer_id,
            project_id,
        )
        return record

    def close_session(
        self,
        db: Session,
        record: models.AttendanceRecord,
        at: datetime,
        method: str,
    ) -> Optional[float]:
        """
        Close an open record and return the hours worked, or None if it was
        closed concurrently. The caller owns the commit.
        """
        hours_worked = compute_hours_worked(record.check_in_at, at)
        updated = (
            db.query(self.model)
            .filter(self.model.id == record.id, self.model.check_out_at.is_(None))
            .update(
                {
                    self.model.check_out_at: at,
                    self.model.check_out_method: method,
                    self.model.hours_worked: hours_worked,
                },
                synchronize_session='fetch',
            )
        )
        if updated != 1:
            return None

        logger.info(
            'Closed attendance record %s for volunteer %s: %.2f hours',
            record.id,
            record.volunteer_id,
            hours_worked,
        )
        return hours_worked

    def find_for_project(
        self,
        db: Session,
        project_id: int,
        filters: schemas.RecordFilter,
        skip: int = 0,
        limit: int = 100,
    ):
        query = db.query(self.model).filter(self.model.project_id == project_id)
        query = self._apply_filters(query, filters)
        total = query.count()
        items = (
            query.order_by(self.model.check_in_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return items, total

    def summarize(
        self, db: Session, project_id: int, filters: schemas.RecordFilter
    ) -> schemas.RecordSummary:
        query = db.query(
            func.coalesce(func.sum(self.model.hours_worked), 0.0),
            func.count(self.model.check_out_at),
            func.count(self.model.id),
        ).filter(self.model.project_id == project_id)
        total_hours, checked_out, total = self._apply_filters(query, filters).one()
        return schemas.RecordSummary(
            project_id=project_id,
            total_hours=round(total_hours, 2),
            checked_in_count=total - checked_out,
            checked_out_count=checked_out,
        )


attendance_record = CRUDAttendanceRecord(models.AttendanceRecord)

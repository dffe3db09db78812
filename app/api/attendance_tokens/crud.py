from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from app.api.attendance_tokens import models, schemas
from app.api.attendance_tokens.schemas import AttendanceAction, CredentialKind
from app.api.base_crud import CRUDBase
from app.api.projects.crud import project as project_crud
from app.core.config import settings
from app.core.exceptions.attendance_exceptions import CodeSpaceExhausted
from app.core.logger import logger
from app.core.utils import (
    create_numeric_code,
    create_token_value,
    current_time,
    format_code,
    generate_qr_base64,
)


class CRUDAttendanceCredential(
    CRUDBase[
        models.AttendanceToken,
        schemas.InternalCredentialCreate,
        schemas.InternalCredentialCreate,
    ],
    ABC,
):
    kind: CredentialKind

    @abstractmethod
    def _lifetime(self, action: AttendanceAction) -> timedelta:
        """How long a freshly issued credential stays valid."""

    @abstractmethod
    def _new_value(self, db: Session, now: datetime) -> str:
        """Draw a value that does not clash with an active credential."""

    @abstractmethod
    def _renderable_form(self, value: str, action: AttendanceAction) -> str:
        """What the operator screen shows for the value."""

    def issue(
        self,
        db: Session,
        project_id: int,
        action: AttendanceAction,
        issued_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> schemas.IssuedCredential:
        project_crud.get(db, project_id)
        now = now or current_time()

        credential = self.create(
            db,
            schemas.InternalCredentialCreate(
                value=self._new_value(db, now),
                project_id=project_id,
                action=action,
                issued_at=now,
                expires_at=now + self._lifetime(action),
                issued_by=issued_by,
            ),
        )
        logger.info(
            'Issued %s %s for project %s (id %s), expires at %s',
            action.value,
            self.kind.value,
            project_id,
            credential.id,
            credential.expires_at,
        )
        return schemas.IssuedCredential(
            kind=self.kind,
            value=credential.value,
            renderable_form=self._renderable_form(credential.value, action),
            project_id=credential.project_id,
            action=action,
            issued_at=credential.issued_at,
            expires_at=credential.expires_at,
        )

    def get_by_value(self, db: Session, value: str):
        return (
            db.query(self.model)
            .filter(self.model.value == value)
            .order_by(self.model.issued_at.desc(), self.model.id.desc())
            .first()
        )

    def consume(self, db: Session, credential_id: int, account_id: int, at: datetime) -> bool:
        """
        Compare-and-set the consumed flag. Returns False when another request
        consumed the credential first. The caller owns the commit.
        """
        updated = (
            db.query(self.model)
            .filter(self.model.id == credential_id, self.model.consumed.is_(False))
            .update(
                {
                    self.model.consumed: True,
                    self.model.consumed_by: account_id,
                    self.model.consumed_at: at,
                },
                synchronize_session='fetch',
            )
        )
        return updated == 1


class CRUDAttendanceToken(CRUDAttendanceCredential):
    kind = CredentialKind.TOKEN

    def _lifetime(self, action: AttendanceAction) -> timedelta:
        if action == AttendanceAction.CHECK_OUT:
            return timedelta(minutes=settings.CHECK_OUT_TOKEN_TTL_MINUTES)
        return timedelta(minutes=settings.CHECK_IN_TOKEN_TTL_MINUTES)

    def _new_value(self, db: Session, now: datetime) -> str:
        return create_token_value()

    def scan_url(self, value: str, action: AttendanceAction) -> str:
        if not settings.FRONTEND_URL:
            return value
        query = urlencode({'action': action.value})
        return f'{settings.FRONTEND_URL.rstrip("/")}/attendance/{value}?{query}'

    def _renderable_form(self, value: str, action: AttendanceAction) -> str:
        return generate_qr_base64(self.scan_url(value, action))


class CRUDAttendanceCode(CRUDAttendanceCredential):
    kind = CredentialKind.CODE

    def _lifetime(self, action: AttendanceAction) -> timedelta:
        return timedelta(minutes=settings.ATTENDANCE_CODE_TTL_MINUTES)

    def _is_active(self, db: Session, value: str, now: datetime) -> bool:
        return (
            db.query(self.model.id)
            .filter(
                self.model.value == value,
                self.model.consumed.is_(False),
                self.model.expires_at >= now,
            )
            .first()
            is not None
        )

    def _new_value(self, db: Session, now: datetime) -> str:
        for _ in range(settings.CODE_ISSUE_MAX_ATTEMPTS):
            value = create_numeric_code()
            if not self._is_active(db, value, now):
                return value
            logger.info('Code collision with an active code, drawing again')
        logger.error(
            'No free attendance code after %s attempts',
            settings.CODE_ISSUE_MAX_ATTEMPTS,
        )
        raise CodeSpaceExhausted()

    def _renderable_form(self, value: str, action: AttendanceAction) -> str:
        return format_code(value)


attendance_token = CRUDAttendanceToken(models.AttendanceToken)
attendance_code = CRUDAttendanceCode(models.AttendanceCode)

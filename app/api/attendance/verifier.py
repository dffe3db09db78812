"""
Shared validation and consumption engine for attendance tokens and codes.

Scan and code entry points both end up in :func:`resolve`, which checks the
credential, applies its effect on the attendance ledger and consumes it in a
single transaction. Consumption is a compare-and-set on the ``consumed``
flag, so two concurrent calls on the same credential can never both succeed.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.attendance.schemas import AttendanceOutcome
from app.api.attendance_records.crud import attendance_record as record_crud
from app.api.attendance_tokens.crud import attendance_code as code_crud
from app.api.attendance_tokens.crud import attendance_token as token_crud
from app.api.attendance_tokens.schemas import AttendanceAction, CredentialKind
from app.api.projects.crud import project as project_crud
from app.core.config import settings
from app.core.database import transaction
from app.core.exceptions.attendance_exceptions import (
    AlreadyCheckedIn,
    AlreadyUsed,
    AttendanceError,
    Expired,
    InvalidToken,
    NoOpenSession,
    Unauthenticated,
    WrongAction,
)
from app.core.logger import log_attendance_rejection, logger
from app.core.utils import current_time, is_numeric_code, to_naive_utc

STORES = {
    CredentialKind.TOKEN: token_crud,
    CredentialKind.CODE: code_crud,
}

METHODS = {
    CredentialKind.TOKEN: 'qr',
    CredentialKind.CODE: 'code',
}


def parse_raw_input(raw_input: Optional[str]) -> Tuple[CredentialKind, str]:
    """
    Classify scanned or typed input. Six digits are a code; anything else is
    a token, and a scanned link is reduced to its last path segment.
    """
    value = (raw_input or '').strip()
    if not value:
        raise InvalidToken('Empty attendance token or code')

    if is_numeric_code(value):
        return CredentialKind.CODE, value

    if '://' in value:
        path = urlparse(value).path.rstrip('/')
        value = unquote(path.rsplit('/', 1)[-1])
        if not value:
            raise InvalidToken('The scanned link does not contain a token')

    return CredentialKind.TOKEN, value


def effective_action_time(
    requested: Optional[datetime], now: Optional[datetime] = None
) -> datetime:
    """Use the client's capture time unless it is too far from the server clock."""
    now = now or current_time()
    if requested is None:
        return now

    requested = to_naive_utc(requested)
    skew = abs(requested - now)
    if skew > timedelta(seconds=settings.ACTION_TIME_MAX_SKEW_SECONDS):
        logger.warning(
            'Client action time %s is %s away from server time, using %s',
            requested,
            skew,
            now,
        )
        return now
    return requested


def _apply_check_in(db: Session, account_id: int, project_id: int, at, method):
    if record_crud.get_open(db, account_id, project_id):
        raise AlreadyCheckedIn()
    try:
        return record_crud.open_session(db, account_id, project_id, at, method), None
    except IntegrityError:
        # Lost a race against another check-in for the same volunteer and project
        raise AlreadyCheckedIn()


def _apply_check_out(db: Session, account_id: int, project_id: int, at, method):
    record = record_crud.get_open(db, account_id, project_id)
    if not record:
        raise NoOpenSession()
    hours_worked = record_crud.close_session(db, record, at, method)
    if hours_worked is None:
        raise NoOpenSession()
    return record, hours_worked


def resolve(
    db: Session,
    raw_input: Optional[str],
    account_id: Optional[int],
    action_time: datetime,
    expected_action: Optional[AttendanceAction] = None,
) -> AttendanceOutcome:
    try:
        if account_id is None:
            raise Unauthenticated('Sign in to record attendance')

        action_time = to_naive_utc(action_time)
        kind, value = parse_raw_input(raw_input)
        store = STORES[kind]

        credential = store.get_by_value(db, value)
        if not credential:
            raise InvalidToken()
        if credential.is_expired(action_time):
            raise Expired()
        if credential.consumed:
            raise AlreadyUsed()

        action = AttendanceAction(credential.action)
        if expected_action is not None and action != expected_action:
            raise WrongAction(
                f'Expected a {expected_action.value} {kind.value}, '
                f'received a {action.value} {kind.value}'
            )

        credential_id = credential.id
        project_id = credential.project_id
        method = METHODS[kind]

        with transaction(db):
            if not store.consume(db, credential_id, account_id, action_time):
                raise AlreadyUsed()

            if action == AttendanceAction.CHECK_OUT:
                record, hours_worked = _apply_check_out(
                    db, account_id, project_id, action_time, method
                )
            else:
                record, hours_worked = _apply_check_in(
                    db, account_id, project_id, action_time, method
                )
            record_id = record.id
    except AttendanceError as e:
        log_attendance_rejection(e.error_class, account_id, e.detail)
        raise

    logger.info(
        'Consumed %s %s for account %s in project %s (record %s)',
        action.value,
        kind.value,
        account_id,
        project_id,
        record_id,
    )
    project = project_crud.get_or_none(db, project_id)
    verb = 'Checked in to' if action == AttendanceAction.CHECK_IN else 'Checked out of'
    project_name = project.name if project else None
    return AttendanceOutcome(
        action=action,
        project_id=project_id,
        project_name=project_name,
        action_time=action_time,
        record_id=record_id,
        hours_worked=hours_worked,
        message=f'{verb} {project_name or f"project {project_id}"}',
    )

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.attendance import schemas, verifier
from app.api.attendance_records import schemas as record_schemas
from app.api.attendance_records.crud import attendance_record as record_crud
from app.api.attendance_tokens import schemas as token_schemas
from app.api.attendance_tokens.crud import attendance_code as code_crud
from app.api.attendance_tokens.crud import attendance_token as token_crud
from app.api.attendance_tokens.schemas import AttendanceAction
from app.api.common.schemas import PaginatedResponse, PaginationMetadata
from app.api.projects.crud import project as project_crud
from app.core.database import get_db
from app.core.logger import logger
from app.core.security import TokenData, get_current_operator, get_current_user

router = APIRouter()

FAILURE_RESPONSES = {
    401: {'model': schemas.AttendanceFailure},
    404: {'model': schemas.AttendanceFailure},
    409: {'model': schemas.AttendanceFailure},
    410: {'model': schemas.AttendanceFailure},
}


@router.post('/tokens', response_model=token_schemas.IssuedCredential)
def issue_token(
    request: token_schemas.IssueRequest,
    current_user: TokenData = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    logger.info(
        'POST /attendance/tokens by %s: %s', current_user.account_id, request
    )
    return token_crud.issue(
        db=db,
        project_id=request.project_id,
        action=request.action,
        issued_by=current_user.account_id,
    )


@router.post('/codes', response_model=token_schemas.IssuedCredential)
def issue_code(
    request: token_schemas.IssueRequest,
    current_user: TokenData = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    logger.info('POST /attendance/codes by %s: %s', current_user.account_id, request)
    return code_crud.issue(
        db=db,
        project_id=request.project_id,
        action=request.action,
        issued_by=current_user.account_id,
    )


def _resolve(
    db: Session,
    raw_input: str,
    action_time,
    current_user: TokenData,
    expected_action: Optional[AttendanceAction] = None,
) -> schemas.AttendanceOutcome:
    return verifier.resolve(
        db=db,
        raw_input=raw_input,
        account_id=current_user.account_id,
        action_time=verifier.effective_action_time(action_time),
        expected_action=expected_action,
    )


@router.post(
    '/scan', response_model=schemas.AttendanceOutcome, responses=FAILURE_RESPONSES
)
def scan(
    request: schemas.ScanRequest,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _resolve(db, request.raw_input, request.action_time, current_user)


@router.post(
    '/check-in', response_model=schemas.AttendanceOutcome, responses=FAILURE_RESPONSES
)
def check_in(
    request: schemas.ScanRequest,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _resolve(
        db,
        request.raw_input,
        request.action_time,
        current_user,
        expected_action=AttendanceAction.CHECK_IN,
    )


@router.post(
    '/check-out', response_model=schemas.AttendanceOutcome, responses=FAILURE_RESPONSES
)
def check_out(
    request: schemas.ScanRequest,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _resolve(
        db,
        request.raw_input,
        request.action_time,
        current_user,
        expected_action=AttendanceAction.CHECK_OUT,
    )


@router.post(
    '/codes/verify',
    response_model=schemas.AttendanceOutcome,
    responses=FAILURE_RESPONSES,
)
def verify_code(
    request: schemas.CodeVerifyRequest,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _resolve(db, request.code, request.action_time, current_user)


@router.get(
    '/projects/{project_id}/records',
    response_model=PaginatedResponse[record_schemas.AttendanceRecord],
)
def get_project_records(
    project_id: int,
    status: record_schemas.RecordStatus = Query(default=record_schemas.RecordStatus.ALL),
    date: Optional[date] = Query(default=None),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=100),
    current_user: TokenData = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    project_crud.get(db, project_id)
    filters = record_schemas.RecordFilter(status=status, on_date=date)
    records, total = record_crud.find_for_project(
        db=db, project_id=project_id, filters=filters, skip=skip, limit=limit
    )
    return PaginatedResponse(
        items=[record_schemas.AttendanceRecord.model_validate(r) for r in records],
        pagination=PaginationMetadata(skip=skip, limit=limit, total=total),
    )


@router.get(
    '/projects/{project_id}/summary', response_model=record_schemas.RecordSummary
)
def get_project_summary(
    project_id: int,
    status: record_schemas.RecordStatus = Query(default=record_schemas.RecordStatus.ALL),
    date: Optional[date] = Query(default=None),
    current_user: TokenData = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    project_crud.get(db, project_id)
    filters = record_schemas.RecordFilter(status=status, on_date=date)
    return record_crud.summarize(db=db, project_id=project_id, filters=filters)


@router.get(
    '/me/records', response_model=PaginatedResponse[record_schemas.AttendanceRecord]
)
def get_my_records(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=100),
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = record_schemas.RecordFilter(volunteer_id=current_user.account_id)
    records, total = record_crud.find(
        db=db,
        skip=skip,
        limit=limit,
        filters=filters,
        sort_by='check_in_at',
    )
    return PaginatedResponse(
        items=[record_schemas.AttendanceRecord.model_validate(r) for r in records],
        pagination=PaginationMetadata(skip=skip, limit=limit, total=total),
    )

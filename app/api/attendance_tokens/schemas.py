from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AttendanceAction(str, Enum):
    CHECK_IN = 'checkin'
    CHECK_OUT = 'checkout'


class CredentialKind(str, Enum):
    TOKEN = 'token'
    CODE = 'code'


class IssueRequest(BaseModel):
    project_id: int
    action: AttendanceAction


class InternalCredentialCreate(BaseModel):
    value: str
    project_id: int
    action: AttendanceAction
    issued_at: datetime
    expires_at: datetime
    issued_by: Optional[int] = None


class IssuedCredential(BaseModel):
    kind: CredentialKind
    value: str
    renderable_form: str
    project_id: int
    action: AttendanceAction
    issued_at: datetime
    expires_at: datetime

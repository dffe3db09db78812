from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ErrorClass(str, Enum):
    INVALID_TOKEN = 'InvalidToken'
    EXPIRED = 'Expired'
    ALREADY_USED = 'AlreadyUsed'
    WRONG_ACTION = 'WrongAction'
    NO_OPEN_SESSION = 'NoOpenSession'
    ALREADY_CHECKED_IN = 'AlreadyCheckedIn'
    PERMISSION_DENIED = 'PermissionDenied'
    UNAUTHENTICATED = 'Unauthenticated'
    NETWORK_FAILURE = 'NetworkFailure'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'ErrorClass':
        """Server classes the client has no policy for are handled as InvalidToken."""
        try:
            return cls(value)
        except ValueError:
            return cls.INVALID_TOKEN


BUSINESS_RULE_ERRORS = frozenset(
    {
        ErrorClass.INVALID_TOKEN,
        ErrorClass.EXPIRED,
        ErrorClass.ALREADY_USED,
        ErrorClass.WRONG_ACTION,
        ErrorClass.NO_OPEN_SESSION,
        ErrorClass.ALREADY_CHECKED_IN,
    }
)


class NextStep(str, Enum):
    DONE = 'done'
    RETRY = 'retry'
    REDIRECT = 'redirect'
    LOG_IN = 'log-in'
    GRANT_PERMISSION = 'grant-permission'


class VerificationResult(BaseModel):
    """Client side view of the Verifier response envelope."""

    success: bool
    action: Optional[str] = None
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    action_time: Optional[datetime] = None
    hours_worked: Optional[float] = None
    message: str = ''
    error_class: Optional[ErrorClass] = None

    @classmethod
    def failure(cls, error_class: ErrorClass, message: str) -> 'VerificationResult':
        return cls(success=False, error_class=error_class, message=message)


class ResultView(BaseModel):
    success: bool
    title: str
    message: str
    next_step: NextStep
    action: Optional[str] = None
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    timestamp: Optional[datetime] = None
    hours_worked: Optional[str] = None
    error_class: Optional[ErrorClass] = None
    redirect_to: Optional[str] = None
    redirect_after: Optional[float] = None

from typing import Optional

from fastapi import HTTPException, status


class AttendanceError(HTTPException):
    """Base class for attendance failures rendered as the failure envelope."""

    error_class = 'AttendanceError'
    status_code = status.HTTP_400_BAD_REQUEST
    message = 'Attendance could not be recorded'

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(type(self).status_code, detail or self.message, headers)


class InvalidToken(AttendanceError):
    error_class = 'InvalidToken'
    status_code = status.HTTP_404_NOT_FOUND
    message = 'Invalid attendance token or code'


class Expired(AttendanceError):
    error_class = 'Expired'
    status_code = status.HTTP_410_GONE
    message = 'This attendance token or code has expired'


class AlreadyUsed(AttendanceError):
    error_class = 'AlreadyUsed'
    status_code = status.HTTP_409_CONFLICT
    message = 'This attendance token or code has already been used'


class WrongAction(AttendanceError):
    error_class = 'WrongAction'
    status_code = status.HTTP_409_CONFLICT
    message = 'This token is not valid for this attendance action'


class NoOpenSession(AttendanceError):
    error_class = 'NoOpenSession'
    status_code = status.HTTP_409_CONFLICT
    message = 'You have not checked in to this project'


class AlreadyCheckedIn(AttendanceError):
    error_class = 'AlreadyCheckedIn'
    status_code = status.HTTP_409_CONFLICT
    message = 'You are already checked in to this project'


class Unauthenticated(AttendanceError):
    error_class = 'Unauthenticated'
    status_code = status.HTTP_401_UNAUTHORIZED
    message = 'Could not validate credentials'

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={'WWW-Authenticate': 'Bearer'})


class Forbidden(AttendanceError):
    error_class = 'Forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    message = 'Not authorized to perform this action'


class NotFound(AttendanceError):
    error_class = 'NotFound'
    status_code = status.HTTP_404_NOT_FOUND
    message = 'Resource not found'


class CodeSpaceExhausted(AttendanceError):
    error_class = 'CodeSpaceExhausted'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = 'Could not allocate a unique attendance code, please try again'

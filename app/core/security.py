from datetime import timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions.attendance_exceptions import Forbidden, Unauthenticated
from app.core.logger import logger
from app.core.utils import current_time


class TokenData(BaseModel):
    account_id: int
    role: str = 'volunteer'


# Constants
ALGORITHM = 'HS256'
OPERATOR_ROLES = ('organization', 'admin')

# OAuth2 scheme; a missing header is reported through Unauthenticated
oauth2_scheme = OAuth2PasswordBearer(tokenUrl='auth/token', auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        to_encode.update({'exp': current_time() + expires_delta})

    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
) -> TokenData:
    if not token:
        logger.error('Missing bearer token')
        raise Unauthenticated('Not authenticated')

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.error('Token has expired')
        raise Unauthenticated('Token has expired')
    except JWTError as e:
        logger.error('Error decoding token: %s', str(e))
        raise Unauthenticated()

    account_id = payload.get('account_id')
    if account_id is None:
        logger.error('Invalid token payload: %s', payload)
        raise Unauthenticated()

    return TokenData(account_id=account_id, role=payload.get('role') or 'volunteer')


async def get_current_operator(
    current_user: TokenData = Depends(get_current_user),
) -> TokenData:
    if current_user.role not in OPERATOR_ROLES:
        logger.error('Account %s is not an operator', current_user.account_id)
        raise Forbidden('Only project operators can issue attendance tokens')
    return current_user

from datetime import datetime
from typing import Optional

import httpx

from app.client.schemas import ErrorClass, VerificationResult
from app.core.logger import logger

SCAN_PATHS = {
    None: '/attendance/scan',
    'checkin': '/attendance/check-in',
    'checkout': '/attendance/check-out',
}
CODE_PATH = '/attendance/codes/verify'


class VerifierClient:
    """
    HTTP adapter for the Verifier endpoints. Transport problems never raise;
    they come back as NetworkFailure results so the caller can offer a retry.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )

    async def aclose(self):
        await self._client.aclose()

    async def submit_scan(
        self,
        access_token: Optional[str],
        payload: str,
        action_time: datetime,
        expected_action: Optional[str] = None,
    ) -> VerificationResult:
        body = {'raw_input': payload, 'action_time': action_time.isoformat()}
        return await self._post(SCAN_PATHS[expected_action], body, access_token)

    async def submit_code(
        self, access_token: Optional[str], code: str, action_time: datetime
    ) -> VerificationResult:
        body = {'code': code, 'action_time': action_time.isoformat()}
        return await self._post(CODE_PATH, body, access_token)

    async def _post(
        self, path: str, body: dict, access_token: Optional[str]
    ) -> VerificationResult:
        headers = {}
        if access_token:
            headers['Authorization'] = f'Bearer {access_token}'

        try:
            response = await self._client.post(path, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error('Attendance request to %s failed: %s', path, str(e))
            return VerificationResult.failure(
                ErrorClass.NETWORK_FAILURE,
                'Could not reach the attendance service, please try again',
            )

        if response.status_code >= 500:
            logger.error(
                'Attendance service error %s on %s', response.status_code, path
            )
            return VerificationResult.failure(
                ErrorClass.NETWORK_FAILURE,
                'The attendance service is unavailable, please try again',
            )

        try:
            data = response.json()
        except ValueError:
            logger.error('Invalid attendance response body on %s', path)
            return VerificationResult.failure(
                ErrorClass.NETWORK_FAILURE, 'Unexpected response, please try again'
            )

        if not isinstance(data, dict):
            logger.error('Unexpected attendance response shape on %s: %s', path, data)
            return VerificationResult.failure(
                ErrorClass.NETWORK_FAILURE, 'Unexpected response, please try again'
            )

        if response.status_code == 422:
            return VerificationResult.failure(
                ErrorClass.INVALID_TOKEN, 'The scanned value is not a valid token'
            )

        if data.get('success'):
            return VerificationResult(**data)

        return VerificationResult.failure(
            ErrorClass.parse(data.get('error_class')),
            data.get('message') or 'Attendance could not be recorded',
        )

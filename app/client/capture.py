"""
Volunteer-side attendance flows.

``CaptureOrchestrator`` drives one camera scanning session:

    idle -> scanning -> decoded -> submitting -> success | failed

The camera keeps producing frames, and consecutive frames usually decode to
the same payload. A ``SubmissionGate`` turns that stream into a single event:
only the payload that opens the gate is submitted, and the decode loop stops
as soon as it is open. Frames are decoded in a worker thread so a slow
decoder never delays teardown. ``CodeEntry`` is the same flow without the scanning
phase, for the 6-digit code typed by hand.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from app.client.api import VerifierClient
from app.client.reporter import ResultReporter
from app.client.schemas import ErrorClass, ResultView, VerificationResult
from app.client.session import AttendanceSession
from app.core.logger import logger
from app.core.utils import current_time, is_numeric_code


class CaptureState(str, Enum):
    IDLE = 'idle'
    SCANNING = 'scanning'
    DECODED = 'decoded'
    SUBMITTING = 'submitting'
    SUCCESS = 'success'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


class CameraUnavailable(Exception):
    pass


class InvalidCodeFormat(ValueError):
    pass


class Camera(Protocol):
    async def open(self) -> None: ...

    async def read_frame(self) -> Any: ...

    async def close(self) -> None: ...


Decoder = Callable[[Any], Optional[str]]


class SubmissionGate:
    """Lets exactly one payload through; every later offer is refused."""

    def __init__(self):
        self._opened = False
        self._payload: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._opened

    @property
    def payload(self) -> Optional[str]:
        return self._payload

    def offer(self, payload: str) -> bool:
        if self._opened:
            return False
        self._payload = payload
        self._opened = True
        return True


@asynccontextmanager
async def camera_stream(camera: Camera):
    """
    Hold the camera for the duration of the block. Any failure to acquire it
    surfaces as CameraUnavailable; a camera that was opened is always closed.
    """
    try:
        await camera.open()
    except CameraUnavailable:
        raise
    except Exception as e:
        raise CameraUnavailable(str(e)) from e

    try:
        yield camera
    finally:
        await camera.close()
        logger.info('Camera released')


class SubmissionFlow(ABC):
    def __init__(
        self,
        session: AttendanceSession,
        verifier_client: VerifierClient,
        reporter: ResultReporter,
        clock: Callable[[], datetime] = current_time,
    ):
        self.session = session
        self.client = verifier_client
        self.reporter = reporter
        self.clock = clock
        self.state = CaptureState.IDLE
        self.payload: Optional[str] = None
        self.result: Optional[VerificationResult] = None
        self.view: Optional[ResultView] = None
        session.add_teardown(reporter.cancel_pending)

    @property
    def can_retry(self) -> bool:
        return (
            self.state == CaptureState.FAILED
            and self.result is not None
            and self.result.error_class == ErrorClass.NETWORK_FAILURE
        )

    async def retry(self) -> Optional[ResultView]:
        """Submit the same payload again after a network failure."""
        if not self.can_retry:
            raise RuntimeError(f'Cannot retry from state {self.state.value}')
        logger.info('Retrying attendance submission')
        return await self._submit(self.payload)

    @abstractmethod
    async def _send(self, payload: str, action_time: datetime) -> VerificationResult:
        """Deliver the payload to the Verifier."""

    async def _submit(self, payload: str) -> Optional[ResultView]:
        generation = self.session.generation
        self.state = CaptureState.SUBMITTING
        try:
            result = await self._send(payload, self.clock())
        except asyncio.CancelledError:
            self.state = CaptureState.CANCELLED
            raise

        if not self.session.is_current(generation):
            logger.info('Discarding attendance response received after teardown')
            self.state = CaptureState.CANCELLED
            return None

        self.result = result
        if result.success:
            self.state = CaptureState.SUCCESS
            self.view = self.reporter.report_success(result)
        else:
            self.state = CaptureState.FAILED
            self.view = self.reporter.report_failure(result.error_class, result.message)
        return self.view

    def _fail(self, error_class: ErrorClass, message: str) -> ResultView:
        self.state = CaptureState.FAILED
        self.result = VerificationResult.failure(error_class, message)
        self.view = self.reporter.report_failure(error_class, message)
        return self.view


class CaptureOrchestrator(SubmissionFlow):
    def __init__(
        self,
        session: AttendanceSession,
        camera: Camera,
        decoder: Decoder,
        verifier_client: VerifierClient,
        reporter: ResultReporter,
        poll_interval: float = 0.0,
        clock: Callable[[], datetime] = current_time,
    ):
        super().__init__(session, verifier_client, reporter, clock)
        self.camera = camera
        self.decoder = decoder
        self.poll_interval = poll_interval
        self.gate = SubmissionGate()
        self.frames_processed = 0

    def start(self) -> asyncio.Task:
        """Run the flow as a task owned by the session, so closing it cancels us."""
        return self.session.spawn(self.run())

    async def run(self) -> Optional[ResultView]:
        if self.state != CaptureState.IDLE:
            raise RuntimeError(f'Scanning session already {self.state.value}')

        payload = await self._scan()
        if payload is None:
            return self.view
        return await self._submit(payload)

    async def _scan(self) -> Optional[str]:
        self.state = CaptureState.SCANNING
        try:
            async with camera_stream(self.camera):
                await self._decode_until_gate_opens()
        except CameraUnavailable as e:
            logger.error('Camera could not be acquired: %s', str(e))
            self._fail(
                ErrorClass.PERMISSION_DENIED, 'Camera access is required to scan'
            )
            return None
        except asyncio.CancelledError:
            self.state = CaptureState.CANCELLED
            raise

        if not self.gate.is_open:
            self.state = CaptureState.CANCELLED
            return None

        self.payload = self.gate.payload
        self.state = CaptureState.DECODED
        logger.info('Decoded attendance payload after %s frame(s)', self.frames_processed)
        return self.payload

    async def _decode_until_gate_opens(self):
        while not self.gate.is_open and not self.session.closed:
            frame = await self.camera.read_frame()
            self.frames_processed += 1
            payload = await self._decode(frame)
            if payload and self.gate.offer(payload):
                break
            if self.poll_interval:
                await asyncio.sleep(self.poll_interval)

    async def _decode(self, frame: Any) -> Optional[str]:
        try:
            return await asyncio.to_thread(self.decoder, frame)
        except Exception as e:
            # An unreadable frame is not a failure, the next one may decode
            logger.debug('Frame could not be decoded: %s', str(e))
            return None

    async def _send(self, payload: str, action_time: datetime) -> VerificationResult:
        return await self.client.submit_scan(
            self.session.access_token,
            payload,
            action_time,
            self.session.expected_action,
        )


class CodeEntry(SubmissionFlow):
    async def submit(self, code: str) -> Optional[ResultView]:
        code = (code or '').strip()
        if not is_numeric_code(code):
            raise InvalidCodeFormat('Enter the 6-digit attendance code')
        if self.state == CaptureState.SUBMITTING:
            logger.info('Code submission already in progress, ignoring')
            return None

        self.payload = code
        self.state = CaptureState.DECODED
        return await self._submit(code)

    async def _send(self, payload: str, action_time: datetime) -> VerificationResult:
        return await self.client.submit_code(
            self.session.access_token, payload, action_time
        )

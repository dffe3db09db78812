import asyncio
from typing import Callable, Optional

from app.client.schemas import (
    BUSINESS_RULE_ERRORS,
    ErrorClass,
    NextStep,
    ResultView,
    VerificationResult,
)
from app.core.logger import logger

DEFAULT_REDIRECT_DELAY = 3.0

REMEDIATIONS = {
    ErrorClass.INVALID_TOKEN: 'Ask the project operator for a new QR code or code.',
    ErrorClass.EXPIRED: 'Ask the project operator for a new QR code or code.',
    ErrorClass.ALREADY_USED: 'Ask the project operator for a new QR code or code.',
    ErrorClass.WRONG_ACTION: 'Make sure you scan the code for the right action.',
    ErrorClass.NO_OPEN_SESSION: 'Check in to the project before checking out.',
    ErrorClass.ALREADY_CHECKED_IN: 'Check out of the project before checking in again.',
    ErrorClass.PERMISSION_DENIED: 'Allow camera access in your browser settings, or enter the code instead.',
    ErrorClass.UNAUTHENTICATED: 'Log in again to record your attendance.',
    ErrorClass.NETWORK_FAILURE: 'Check your connection and try again.',
}


class ResultReporter:
    """Turns attendance outcomes into views and schedules follow-up navigation."""

    def __init__(
        self,
        navigate: Callable[[str], None],
        redirect_delay: float = DEFAULT_REDIRECT_DELAY,
        fallback_location: str = '/volunteer',
        login_location: str = '/login',
    ):
        self.navigate = navigate
        self.redirect_delay = redirect_delay
        self.fallback_location = fallback_location
        self.login_location = login_location
        self.last_view: Optional[ResultView] = None
        self._pending: Optional[asyncio.TimerHandle] = None

    def report_success(self, result: VerificationResult) -> ResultView:
        hours_worked = None
        if result.action == 'checkout' and result.hours_worked is not None:
            hours_worked = f'{result.hours_worked:.2f}'

        verb = 'Check-in' if result.action == 'checkin' else 'Check-out'
        view = ResultView(
            success=True,
            title=f'{verb} for {result.project_name or "your project"} recorded',
            message=result.message,
            next_step=NextStep.DONE,
            action=result.action,
            project_id=result.project_id,
            project_name=result.project_name,
            timestamp=result.action_time,
            hours_worked=hours_worked,
            redirect_to=self.fallback_location,
        )
        return self._show(view)

    def report_failure(self, error_class: ErrorClass, message: str) -> ResultView:
        view = ResultView(
            success=False,
            title=REMEDIATIONS[error_class],
            message=message,
            next_step=NextStep.REDIRECT,
            error_class=error_class,
        )

        if error_class in BUSINESS_RULE_ERRORS:
            view.redirect_to = self.fallback_location
            view.redirect_after = self.redirect_delay
            self._schedule_redirect(self.fallback_location)
        elif error_class == ErrorClass.NETWORK_FAILURE:
            view.next_step = NextStep.RETRY
        elif error_class == ErrorClass.UNAUTHENTICATED:
            view.next_step = NextStep.LOG_IN
            view.redirect_to = self.login_location
        else:
            view.next_step = NextStep.GRANT_PERMISSION

        logger.warning('Attendance failed: %s - %s', error_class.value, message)
        return self._show(view)

    def cancel_pending(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _schedule_redirect(self, location: str):
        self.cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self.redirect_delay, self._redirect, location)

    def _redirect(self, location: str):
        self._pending = None
        logger.info('Redirecting to %s', location)
        self.navigate(location)

    def _show(self, view: ResultView) -> ResultView:
        self.last_view = view
        return view

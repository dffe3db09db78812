import logging
import sys

logger = logging.getLogger('main-logger')
logger.setLevel(logging.DEBUG)

handler = logging.StreamHandler(sys.stdout)
handler.setLevel(logging.DEBUG)
logger.addHandler(handler)


def log_attendance_rejection(error_class: str, account_id, detail: str):
    logger.warning(
        'Attendance rejected: %s - account: %s - %s', error_class, account_id, detail
    )

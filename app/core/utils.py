import base64
import secrets
from datetime import datetime, timezone
from io import BytesIO

import qrcode

CODE_LENGTH = 6


def current_time() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a datetime to the naive UTC form stored in the database."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def create_token_value() -> str:
    return secrets.token_urlsafe(32)


def create_numeric_code() -> str:
    return f'{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}'


def is_numeric_code(value: str) -> bool:
    return len(value) == CODE_LENGTH and value.isascii() and value.isdigit()


def format_code(code: str) -> str:
    half = len(code) // 2
    return f'{code[:half]} {code[half:]}'


def generate_qr_base64(data: str) -> str:
    """
    Generate a QR code from the given string and return
    the image as a Base64-encoded PNG data URI.

    :param data: The string to encode in the QR code
    :return: data URI of the PNG image
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color='black', back_color='white')

    buffered = BytesIO()
    img.save(buffered, format='PNG')
    encoded = base64.b64encode(buffered.getvalue()).decode('utf-8')
    return f'data:image/png;base64,{encoded}'

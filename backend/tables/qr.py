"""
Table code and QR code helpers.

A table code is printed on the physical QR sticker, so once issued it must
stay stable. The QR image itself is rendered by api.qrserver.com from the
customer URL ``<FRONTEND_URL>/table/<code>``.
"""

import logging
import re
import secrets
import string
from urllib.parse import parse_qs, urlencode, urlparse

from django.conf import settings
from rest_framework import status

from core_backend.exceptions import ApiError

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_PATTERN = re.compile(r"^[A-Z0-9]{6}$")
MAX_CODE_ATTEMPTS = 10
QR_SERVICE_URL = "https://api.qrserver.com/v1/create-qr-code/"


def generate_table_code():
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def generate_unique_table_code():
    """
    Draw codes until one is not used by any table (archived ones included).
    """
    from .models import Table

    for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
        code = generate_table_code()
        if not Table.all_objects.filter(code=code).exists():
            return code
        logger.warning(f"Table code collision on attempt {attempt}: {code}")

    logger.error(f"Could not generate a unique table code after {MAX_CODE_ATTEMPTS} attempts")
    raise ApiError(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "CODE_GENERATION_FAILED",
        "Could not generate a unique table code",
    )


def is_valid_table_code(code):
    return isinstance(code, str) and bool(CODE_PATTERN.match(code))


def get_table_url(code):
    if not is_valid_table_code(code):
        raise ValueError(f"Invalid table code format: {code}")
    return f"{settings.FRONTEND_URL}/table/{code}"


def generate_qr_code_url(code):
    params = {
        "size": "300x300",
        "data": f"{settings.FRONTEND_URL}/table/{code}",
        "color": "000000",
        "margin": "10",
        "format": "png",
    }
    return f"{QR_SERVICE_URL}?{urlencode(params)}"


def extract_table_code_from_url(url):
    """
    Return the table code from a customer table URL, or from the ``data``
    parameter of a QR service URL. ``None`` when there is no valid code.
    """
    if not url:
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    data = parse_qs(parsed.query).get("data")
    if data:
        return extract_table_code_from_url(data[0])

    segments = parsed.path.split("/")
    if "table" in segments:
        index = segments.index("table")
        if index < len(segments) - 1:
            code = segments[index + 1]
            return code if is_valid_table_code(code) else None
    return None


def should_regenerate_qr_code(current_url, code):
    if not current_url:
        return True
    return extract_table_code_from_url(current_url) != code


def regenerate_table_code_and_qr():
    """
    Issue a fresh code and QR URL. Printed stickers for the old code stop
    working, so this is logged loudly.
    """
    code = generate_unique_table_code()
    qr_code_url = generate_qr_code_url(code)
    logger.warning(f"Table code regenerated: new code {code}; printed QR codes must be replaced")
    return code, qr_code_url

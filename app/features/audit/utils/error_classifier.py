import re
from typing import Optional, Tuple

from selenium.common.exceptions import TimeoutException

STATUS_RE = re.compile(r'\b([1-5]\d{2})\b')

TIMEOUT_MARKERS = ('timeout', 'timed out')
SSL_MARKERS = ('ssl', 'certificate', 'cert_', 'err_cert')
CONNECTION_MARKERS = (
    'econnrefused', 'enotfound', 'econnreset', 'connection refused', 'network',
    'dns', 'unreachable', 'err_connection', 'net::err_',
)
HTTP_FALLBACKS = (
    ('not found', 404),
    ('internal server error', 500),
    ('bad gateway', 502),
    ('service unavailable', 503),
    ('forbidden', 403),
)


def classify_error(error) -> Tuple[str, Optional[int]]:
    """
    Map a page failure to (error_type, http_status).

    Checked in order: timeout, ssl_error, connection_error, http_error,
    then other. Accepts an exception or its message.
    """
    if error is None:
        return 'other', None
    if isinstance(error, TimeoutException):
        return 'timeout', None
    message = (getattr(error, 'msg', None) or str(error)).lower()
    if not message:
        return 'other', None

    if any(m in message for m in TIMEOUT_MARKERS) or ('waiting for' in message and 'exceeded' in message):
        return 'timeout', None

    if any(m in message for m in SSL_MARKERS) or ('https' in message and 'secure' in message):
        return 'ssl_error', None

    if any(m in message for m in CONNECTION_MARKERS):
        return 'connection_error', None

    for match in STATUS_RE.finditer(message):
        status = int(match.group(1))
        if 400 <= status < 600:
            return 'http_error', status

    for phrase, status in HTTP_FALLBACKS:
        if phrase in message:
            return 'http_error', status

    return 'other', None

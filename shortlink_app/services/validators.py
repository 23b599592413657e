"""Validation helpers for shorten requests."""

import re
from urllib.parse import urlparse

from shortlink_app.errors import InvalidCode, InvalidTtl, InvalidUrl

MAX_URL_LENGTH = 2048
MIN_CODE_LENGTH = 3
MAX_CODE_LENGTH = 20
_CODE_RE = re.compile(r"[A-Za-z0-9]+")


def validate_long_url(url) -> str:
    """
    Check that ``url`` is an absolute http(s) URL.

    Returns:
        The URL with surrounding whitespace removed

    Raises:
        InvalidUrl: With a human-readable reason
    """
    if not url or not isinstance(url, str):
        raise InvalidUrl("URL is required")

    url = url.strip()
    if len(url) > MAX_URL_LENGTH:
        raise InvalidUrl(f"URL is too long (max {MAX_URL_LENGTH} characters)")

    try:
        result = urlparse(url)
    except ValueError as e:
        raise InvalidUrl(f"Invalid URL format: {e}") from e

    if result.scheme not in ("http", "https"):
        raise InvalidUrl("URL must use http or https protocol")
    if not result.netloc or not result.hostname:
        raise InvalidUrl("URL must have a valid domain")

    return url


def validate_custom_code(code: str) -> str:
    if not isinstance(code, str):
        raise InvalidCode("Short code must be a string")
    if not MIN_CODE_LENGTH <= len(code) <= MAX_CODE_LENGTH:
        raise InvalidCode(
            f"Short code must be {MIN_CODE_LENGTH}-{MAX_CODE_LENGTH} characters long"
        )
    if not _CODE_RE.fullmatch(code):
        raise InvalidCode("Short code can only contain letters and numbers")
    return code


def validate_ttl(ttl_minutes) -> int:
    if isinstance(ttl_minutes, bool) or not isinstance(ttl_minutes, int) or ttl_minutes <= 0:
        raise InvalidTtl("TTL must be a positive number of minutes")
    return ttl_minutes

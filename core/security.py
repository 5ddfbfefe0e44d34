"""
Request gates and content checks for outbound report delivery.

Covers the origin allow-list, the declared-size ceiling, bearer extraction,
the sensitive-data scan and the HTML sanitizer applied to user messages.

Example usage:
    if not validate_origin(request.headers.get("origin"), settings.allowed_origins):
        raise OriginRejected()
    check_content_length(request.headers.get("content-length"), settings.max_request_size)
"""

import json
import re
from typing import Any, Iterable, Optional

import nh3

from core.errors import AuthFailure, PayloadTooLarge

# Matched against the compact JSON form of the whole payload. A bare 16-digit
# run also hits order ids and similar numeric fields.
SENSITIVE_PATTERNS = (
    re.compile(r"\b\d{16}\b", re.ASCII),                                             # card numbers
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", re.ASCII),    # email addresses
    re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b", re.ASCII),                          # phone numbers
    re.compile(r"\b[A-Z]{2}\d{2}[A-Z]{2}\d{4}\b", re.ASCII),                         # vehicle plates
    re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b", re.ASCII),                 # IPv4 addresses
)

ALLOWED_MESSAGE_TAGS = {"b", "i", "em", "strong", "a"}
ALLOWED_MESSAGE_ATTRIBUTES = {"a": {"href"}}
ALLOWED_URL_SCHEMES = {"http", "https"}


def validate_origin(origin: Optional[str], allowed_origins: Iterable[str]) -> bool:
    """
    Check a request ``Origin`` header against the allow-list.

    Entries match exactly, or as ``*.domain`` against any origin ending in
    ``domain``.

    Example:
        >>> validate_origin("https://eu.ceylog.com", ["*.ceylog.com"])
        True
        >>> validate_origin(None, ["https://ceylog.com"])
        False
    """
    if not origin:
        return False

    for allowed in allowed_origins:
        if origin == allowed:
            return True
        if allowed.startswith("*.") and origin.endswith(allowed[2:]):
            return True
    return False


def check_content_length(header_value: Optional[str], ceiling: int) -> None:
    """
    Reject requests whose declared ``Content-Length`` is above ``ceiling``.

    Missing or non-numeric values are not rejected here; the body itself is
    bounded again by schema validation.

    Raises:
        PayloadTooLarge: declared length exceeds the ceiling
    """
    if not header_value:
        return
    try:
        declared = int(header_value.strip())
    except ValueError:
        return
    if declared > ceiling:
        raise PayloadTooLarge()


def extract_bearer_token(header_value: Optional[str]) -> str:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthFailure: header missing, wrong scheme or empty token
    """
    if not header_value or not header_value.startswith("Bearer "):
        raise AuthFailure()
    token = header_value[len("Bearer "):].strip()
    if not token:
        raise AuthFailure()
    return token


def serialize_compact(data: Any) -> str:
    """JSON form used for size limits and pattern scans."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


def contains_sensitive_data(data: Any) -> bool:
    """
    Return True if any sensitive-data pattern occurs in the serialized payload.

    Example:
        >>> contains_sensitive_data({"card": "4111111111111111"})
        True
        >>> contains_sensitive_data({"product": "Ceylon tea", "units": 400})
        False
    """
    serialized = serialize_compact(data)
    return any(pattern.search(serialized) for pattern in SENSITIVE_PATTERNS)


def sanitize_message(text: str) -> str:
    """
    Strip all markup from a user message except a few inline tags.

    Only ``b``, ``i``, ``em``, ``strong`` and ``a[href]`` survive; event
    handler attributes are dropped and links with a scheme other than
    http(s) lose their ``href``.
    """
    return nh3.clean(
        text,
        tags=ALLOWED_MESSAGE_TAGS,
        attributes=ALLOWED_MESSAGE_ATTRIBUTES,
        url_schemes=ALLOWED_URL_SCHEMES,
        link_rel=None,
    )

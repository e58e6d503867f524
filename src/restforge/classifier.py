"""Response classification and body decoding.

:func:`classify` turns a response into a :class:`Verdict` using the
builder's status predicates, checked in priority order: authentication
first, then success, retryable server error, terminal client error.
Anything left over is :attr:`Verdict.UNCLASSIFIED`, which the controller
retries like a server error.

:func:`decode_response` picks a decode format (explicit override, then
``Content-Type`` sniffing, then the builder default) and decodes the body.
Decode failures are raised, never swallowed: retrying cannot fix a
malformed body.
"""

from __future__ import annotations

import enum
import json
from typing import Any, Optional

import httpx

from restforge.exceptions import DecodeError, UnsupportedFormatError
from restforge.models import Blob, BuilderConfig, FetchContext, ResponseFormat


class Verdict(str, enum.Enum):
    """Outcome of classifying one response."""

    AUTH_REQUIRED = "auth_required"
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"
    UNCLASSIFIED = "unclassified"


def classify(
    response: httpx.Response,
    config: BuilderConfig,
    context: Optional[FetchContext] = None,
) -> Verdict:
    """Classify *response* with the predicates in *config*."""
    status = response.status_code
    if config.auth_check_status(status, response, context):
        return Verdict.AUTH_REQUIRED
    if config.validate_status(status):
        return Verdict.SUCCESS
    if config.retry_status(status):
        return Verdict.RETRYABLE
    if config.terminal_status(status):
        return Verdict.TERMINAL
    return Verdict.UNCLASSIFIED


def detect_format(content_type: str) -> Optional[ResponseFormat]:
    """Guess the decode format from a ``Content-Type`` header value.

    Returns ``None`` when the content type is not recognised, leaving the
    choice to the builder default.
    """
    content_type = content_type.lower()
    if "application/json" in content_type:
        return ResponseFormat.JSON
    if "text/" in content_type:
        return ResponseFormat.TEXT
    if "application/octet-stream" in content_type:
        return ResponseFormat.BUFFER
    if "image/" in content_type or "application/pdf" in content_type:
        return ResponseFormat.BLOB
    return None


def _coerce_format(fmt: ResponseFormat | str) -> ResponseFormat:
    try:
        return ResponseFormat(fmt)
    except ValueError as exc:
        raise UnsupportedFormatError(fmt) from exc


def decode(response: httpx.Response, fmt: ResponseFormat | str) -> Any:
    """Decode the body of *response* as *fmt*.

    ``json`` yields parsed JSON (``None`` for an empty body), ``text`` a
    ``str``, ``buffer`` raw ``bytes`` and ``blob`` a
    :class:`~restforge.models.Blob`.

    Raises:
        DecodeError: The body is not valid for *fmt*.
        UnsupportedFormatError: *fmt* is not a known format.
    """
    target = _coerce_format(fmt)
    if target == ResponseFormat.JSON:
        if not response.content:
            return None
        try:
            return json.loads(response.content)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"Malformed JSON response (HTTP {response.status_code}): {exc}") from exc
    if target == ResponseFormat.TEXT:
        return response.text
    if target == ResponseFormat.BUFFER:
        return response.content
    return Blob(content=response.content, content_type=response.headers.get("content-type", ""))


def decode_response(
    response: httpx.Response,
    override: Optional[ResponseFormat | str] = None,
    default: ResponseFormat | str = ResponseFormat.JSON,
) -> Any:
    """Decode *response* choosing the format by override, sniffing, then default."""
    fmt = override or detect_format(response.headers.get("content-type", "")) or default
    return decode(response, fmt)

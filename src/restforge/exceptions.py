"""Exception hierarchy for restforge.

All exceptions inherit from :class:`RestforgeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`restforge.exit_codes`.
Library callers catch the specific subclasses; the CLI entry point in
:func:`restforge.app.main` catches ``RestforgeError`` and exits with the
matching code.

Subclass hierarchy::

    RestforgeError (exit 1)
    +-- UnregisteredEndpointError (exit 2)
    +-- AuthError                 (exit 3)
    +-- TerminalClientError       (exit 4)
    +-- RetryExhaustedError       (exit 5)
    +-- RequestTimeoutError       (exit 6)
    +-- TransportFailure          (exit 6)
    +-- DecodeError               (exit 7)
    +-- UnsupportedFormatError    (exit 7)
    +-- ConfigError               (exit 1)

Transport failures and retryable statuses are absorbed by the retry
controller; only the final outcome of a logical call reaches the caller.
"""

from __future__ import annotations

from typing import Optional

from restforge.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CLIENT_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_RETRY_EXHAUSTED,
    EXIT_TIMEOUT,
)


class RestforgeError(Exception):
    """Base exception for all restforge errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class UnregisteredEndpointError(RestforgeError, AttributeError):
    """Raised when dispatching to an endpoint name that was never registered.

    Also an ``AttributeError`` so that ``builder.<name>`` lookups keep
    working with :func:`getattr` defaults and :func:`hasattr`.
    """

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, name: str):
        super().__init__(f"Endpoint {name} not registered")
        self.name = name


class AuthError(RestforgeError):
    """Raised when authentication is required and no hook is available or the hook failed."""

    exit_code = EXIT_AUTH_FAILURE


class TerminalClientError(RestforgeError):
    """Raised for a non-retryable client error such as HTTP 400.

    Attributes:
        status: The HTTP status code returned by the server.
        body: The response body text, surfaced as error detail.
    """

    exit_code = EXIT_CLIENT_ERROR

    def __init__(self, status: int, body: str = "", reason: str = ""):
        detail = " ".join(part for part in (reason, body) if part)
        message = f"HTTP Error: {status}"
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
        self.status = status
        self.body = body


class RetryExhaustedError(RestforgeError):
    """Raised when every attempt of a call failed without success.

    Attributes:
        attempts: Number of transport attempts made (``max_retries + 1``).
        last_status: Status of the last response, or ``None`` when the last
            attempt failed before a response arrived.
    """

    exit_code = EXIT_RETRY_EXHAUSTED

    def __init__(self, attempts: int, last_status: Optional[int] = None, detail: str = ""):
        message = f"Request failed after {attempts} attempts"
        if detail:
            message = f"{message}: {detail}"
        elif last_status is not None:
            message = f"{message}: last status {last_status}"
        super().__init__(message)
        self.attempts = attempts
        self.last_status = last_status


class RequestTimeoutError(RestforgeError):
    """Raised when an attempt exceeds its deadline and no attempts remain.

    Named to avoid shadowing the built-in ``TimeoutError``.
    """

    exit_code = EXIT_TIMEOUT

    def __init__(self, timeout_ms: int, attempts: Optional[int] = None):
        message = f"Request timed out after {timeout_ms}ms"
        if attempts is not None:
            message = f"{message} ({attempts} attempts)"
        super().__init__(message)
        self.timeout_ms = timeout_ms
        self.attempts = attempts


class TransportFailure(RestforgeError):
    """Raised on network-level failures (DNS resolution, connection refused)."""

    exit_code = EXIT_TIMEOUT


class DecodeError(RestforgeError):
    """Raised when a response body is malformed for its decode format."""

    exit_code = EXIT_DECODE_ERROR


class UnsupportedFormatError(RestforgeError):
    """Raised for an unrecognised response decode target."""

    exit_code = EXIT_DECODE_ERROR

    def __init__(self, fmt: object):
        super().__init__(f"Unsupported response format: {fmt!r}")
        self.format = fmt


class ConfigError(RestforgeError):
    """Raised for configuration problems (missing base URL, unreadable definition files)."""

    exit_code = EXIT_GENERIC_FAILURE

"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~restforge.exceptions.RestforgeError` subclass.
Shell wrappers around the ``restforge`` command can inspect the exit code
to determine the failure class without parsing stderr.

Example::

    $ restforge call getUser -p userId=42
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- re-authentication failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or an unknown endpoint."""

EXIT_AUTH_FAILURE = 3
"""Authentication was required and could not be refreshed."""

EXIT_CLIENT_ERROR = 4
"""The API rejected the request with a terminal client error (e.g. HTTP 400)."""

EXIT_RETRY_EXHAUSTED = 5
"""Every attempt failed and the retry budget is spent."""

EXIT_TIMEOUT = 6
"""The final attempt exceeded its deadline or the connection failed."""

EXIT_DECODE_ERROR = 7
"""The response body could not be decoded in the requested format."""

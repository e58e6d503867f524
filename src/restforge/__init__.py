"""restforge -- declarative builder for async REST API clients.

Register named endpoints against a shared base configuration and call them
as awaitable operations. Each call resolves ``{placeholder}`` tokens,
encodes the body, and runs under a per-attempt timeout with fixed-delay
retries and one-shot re-authentication::

    from restforge import SdkBuilder

    async with SdkBuilder(base_url="https://api.example.com") as api:
        api.register("getUser", "/users/{id}", "GET")
        user = await api.getUser({"id": "42"})

Modules:
    builder: Endpoint registry, dispatch and the per-call pipeline.
    controller: Retry / auth-refresh state machine.
    placeholders: Path, header and query-string resolution.
    assembler: Request body encoding.
    classifier: Status classification and response decoding.
    transport: Transport port and per-attempt timeouts.
    cache: Cache port with disk and memory providers.
    config: API definition files and XDG paths.
    app: Typer CLI.
"""

__version__ = "0.1.0"

from restforge.builder import EndpointHandle, SdkBuilder, sdk_builder  # noqa: E402
from restforge.exceptions import (  # noqa: E402
    AuthError,
    ConfigError,
    DecodeError,
    RequestTimeoutError,
    RestforgeError,
    RetryExhaustedError,
    TerminalClientError,
    TransportFailure,
    UnregisteredEndpointError,
    UnsupportedFormatError,
)
from restforge.hooks import RequestDraft, json_transformer  # noqa: E402
from restforge.models import Blob, BuilderConfig, FetchContext, Multipart  # noqa: E402

__all__ = [
    "AuthError",
    "Blob",
    "BuilderConfig",
    "ConfigError",
    "DecodeError",
    "EndpointHandle",
    "FetchContext",
    "Multipart",
    "RequestDraft",
    "RequestTimeoutError",
    "RestforgeError",
    "RetryExhaustedError",
    "SdkBuilder",
    "TerminalClientError",
    "TransportFailure",
    "UnregisteredEndpointError",
    "UnsupportedFormatError",
    "json_transformer",
    "sdk_builder",
]

"""Canonical data shapes shared across all restforge modules.

This is the single source of truth for the builder's data model. The models
fall into three groups:

**Registration and configuration** -- fixed once a builder is constructed:
    :class:`HTTPMethod`, :class:`BodyEncoding`, :class:`ResponseFormat`,
    :class:`EndpointDefinition`, and :class:`BuilderConfig`.

**Shared mutable state** -- :class:`ConfigBag`, the one value that changes
after construction (authentication refresh merges into it).

**Per-call records** -- :class:`FetchContext`, plus the body/response
payload wrappers :class:`Multipart` and :class:`Blob`.

Configuration models use Pydantic v2. Status predicates are plain callables,
so :class:`BuilderConfig` allows arbitrary types.
"""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Enumerations ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods an endpoint can be registered with."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class BodyEncoding(str, enum.Enum):
    """Declared request body encoding of a builder.

    ``JSON`` serialises bodies with :func:`json.dumps`; every other value
    falls back to url-encoded form data.
    """

    JSON = "json"
    TEXT = "text"
    BLOB = "blob"
    BUFFER = "buffer"


class ResponseFormat(str, enum.Enum):
    """Targets a response body can be decoded into."""

    JSON = "json"
    TEXT = "text"
    BLOB = "blob"
    BUFFER = "buffer"


# --- Status predicates ---


def default_validate_status(status: int) -> bool:
    return 200 <= status < 300


def default_retry_status(status: int) -> bool:
    return status >= 500


def default_auth_check_status(status: int, response: Any = None, context: Any = None) -> bool:
    return status == 401


def default_terminal_status(status: int) -> bool:
    return status == 400


# --- Registration ---


class EndpointDefinition(BaseModel):
    """A registered endpoint: unique name, HTTP method and path template.

    Path templates contain ``{token}`` placeholders, e.g. ``/users/{id}``.
    Instances are immutable; re-registering a name replaces the definition.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    method: HTTPMethod = HTTPMethod.POST
    path: str

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value


class BuilderConfig(BaseModel):
    """Construction-time settings for an :class:`~restforge.builder.SdkBuilder`.

    Every field except ``config`` is fixed for the builder's lifetime. The
    ``config`` mapping seeds the builder's :class:`ConfigBag`.

    Example::

        BuilderConfig(
            base_url="https://api.example.com",
            placeholders={"id": "userId"},
            max_retries=2,
        )
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    base_url: str = Field(description="Prefix prepended to every resolved path")
    default_headers: dict[str, str] = Field(default_factory=dict)
    timeout_ms: int = Field(default=5000, ge=1, description="Per-attempt deadline")
    body_encoding: BodyEncoding = BodyEncoding.JSON
    response_format: ResponseFormat = ResponseFormat.JSON
    max_retries: int = Field(default=3, ge=0, description="Additional attempts after the first")
    retry_delay_ms: int = Field(default=500, ge=0)
    default_method: HTTPMethod = HTTPMethod.POST
    placeholders: dict[str, str] = Field(
        default_factory=dict,
        description="Placeholder name -> source parameter name (or '{source}' template)",
    )
    config: dict[str, Any] = Field(default_factory=dict)
    validate_status: Callable[[int], bool] = default_validate_status
    retry_status: Callable[[int], bool] = default_retry_status
    auth_check_status: Callable[..., bool] = default_auth_check_status
    terminal_status: Callable[[int], bool] = default_terminal_status

    @field_validator("default_method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value


# --- Shared mutable state ---


class ConfigBag:
    """Versioned configuration bag shared by every call of one builder.

    Calls read a :meth:`snapshot` when they start; the only writer is
    :meth:`update`, used by authentication refresh and
    :meth:`~restforge.builder.SdkBuilder.enhance_config`. Each update bumps
    :attr:`version` so that concurrent refreshes can detect that another
    call already refreshed the credentials.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of the current values."""
        return copy.deepcopy(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def update(self, delta: Optional[Mapping[str, Any]]) -> int:
        """Merge *delta* into the bag and return the new version.

        A ``None`` or empty delta still counts as an update.
        """
        if delta:
            self._data = {**self._data, **dict(delta)}
        self._version += 1
        return self._version

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"ConfigBag(version={self._version}, keys={sorted(self._data)})"


# --- Per-call records ---


@dataclass(frozen=True)
class FetchContext:
    """Snapshot of one logical call, passed to hooks and classification predicates.

    Built once before the first attempt and shared by all retry attempts of
    the call.

    Attributes:
        body: The call body after interceptors ran (never sent for GET).
        headers: Fully resolved request headers.
        path: The original (unresolved) path template.
        method: HTTP method.
        endpoint_name: Registered name, or ``"custom"`` for ad-hoc calls.
        url: Final request URL including the query string.
        params: The call's extra query parameters.
        config: Snapshot of the :class:`ConfigBag` taken at call start.
    """

    body: Any
    headers: dict[str, str]
    path: str
    method: str
    endpoint_name: str
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def extra_params(self) -> dict[str, Any]:
        return self.params


@dataclass
class Multipart:
    """Raw multipart form body.

    The transport generates the boundary, so any configured
    ``Content-Type`` header is dropped when a call carries a
    :class:`Multipart` body.

    Attributes:
        fields: Plain form fields.
        files: Mapping of field name to ``(filename, content, content_type)``
            tuples or file-like objects, as accepted by :mod:`httpx`.
    """

    fields: dict[str, Any] = field(default_factory=dict)
    files: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Blob:
    """Binary response payload that keeps the server-declared content type."""

    content: bytes
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)

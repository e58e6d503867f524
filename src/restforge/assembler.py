"""Request assembly -- final URL, headers and wire body for one call.

Body encoding is decided in priority order:

1. A :class:`~restforge.models.Multipart` form or raw ``bytes`` body is sent
   as-is. Any ``Content-Type`` header is stripped so the transport can set
   it (multipart needs a generated boundary).
2. Otherwise the per-call content type wins over the builder's declared
   encoding. ``json`` serialises with :func:`json.dumps` and sets
   ``application/json``. Any other value is sent url-encoded (or through a
   caller-supplied serialiser) with that value as MIME type when it
   contains a ``/``, else the default form MIME type.

``GET`` requests never carry a body; the body only feeds the query string
(see :func:`~restforge.placeholders.resolve_path`).
"""

from __future__ import annotations

import json
from typing import Any, Callable, Mapping, Optional

import httpx

from restforge.models import BodyEncoding, Multipart
from restforge.placeholders import encode_query

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"
JSON_CONTENT_TYPE = "application/json"

BodySerializer = Callable[[Any], str]


def _without_content_type(headers: Mapping[str, str]) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() != "content-type"}


def _set_content_type(headers: Mapping[str, str], value: str) -> dict[str, str]:
    result = _without_content_type(headers)
    result["Content-Type"] = value
    return result


def serialize_form(body: Any) -> str:
    """Default form serialiser: url-encode a mapping, pass strings through."""
    if body is None:
        return ""
    if isinstance(body, Mapping):
        return encode_query(body)
    return str(body)


def serialize_json(body: Any) -> bytes:
    """Serialise *body* as compact UTF-8 JSON."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def encode_body(
    method: str,
    body: Any,
    headers: Mapping[str, str],
    content_type: Optional[str] = None,
    encoding: BodyEncoding | str = BodyEncoding.JSON,
    serialize_body: Optional[BodySerializer] = None,
) -> tuple[dict[str, str], dict[str, Any]]:
    """Pick the wire encoding for *body*.

    Args:
        method: HTTP method of the call.
        body: The call body (mapping, ``bytes`` or :class:`Multipart`).
        headers: Resolved request headers.
        content_type: Per-call encoding override (``"json"``, ``"form"``, a
            MIME type, ...).
        encoding: The builder's declared body encoding.
        serialize_body: Replacement for the default form serialiser.

    Returns:
        A ``(headers, request_kwargs)`` pair where ``request_kwargs`` holds
        the :class:`httpx.Request` body arguments.
    """
    if method.upper() == "GET":
        return dict(headers), {}

    if isinstance(body, Multipart):
        return _without_content_type(headers), {"data": body.fields, "files": body.files}
    if isinstance(body, (bytes, bytearray)):
        return _without_content_type(headers), {"content": bytes(body)}

    payload = {} if body is None else body
    chosen = content_type or encoding
    if isinstance(chosen, BodyEncoding):
        chosen = chosen.value

    if chosen == BodyEncoding.JSON.value:
        return _set_content_type(headers, JSON_CONTENT_TYPE), {"content": serialize_json(payload)}

    mime = chosen if "/" in chosen else FORM_CONTENT_TYPE
    serializer = serialize_body or serialize_form
    return _set_content_type(headers, mime), {"content": serializer(payload).encode("utf-8")}


def assemble(
    base_url: str,
    resolved_path: str,
    method: str,
    body: Any,
    headers: Mapping[str, str],
    content_type: Optional[str] = None,
    encoding: BodyEncoding | str = BodyEncoding.JSON,
    serialize_body: Optional[BodySerializer] = None,
) -> httpx.Request:
    """Build the :class:`httpx.Request` for one attempt of a call."""
    url = f"{base_url}{resolved_path}"
    final_headers, body_kwargs = encode_body(
        method, body, headers, content_type, encoding, serialize_body,
    )
    return httpx.Request(method.upper(), url, headers=final_headers, **body_kwargs)

"""Placeholder resolution for paths, headers and query strings.

A placeholder is a ``{key}`` token inside a path template or a header value.
Tokens are filled from a merged parameter set built by
:func:`merge_params`: builder config values, overridden by the call body,
overridden by the call's extra params.

The builder's placeholder map redirects lookups. An entry ``"id": "userId"``
fills ``{id}`` from the ``userId`` parameter; an entry written as a template
(``"access_token": "{access_token}"``) names its source the same way.
Placeholder entries whose token does not appear in the path are appended to
the query string instead, which is how a refreshed ``access_token`` travels
with every call.

Missing lookups resolve to the empty string and never raise. Callers rely on
that for optional tokens, so the policy is deliberate and covered by tests.

Every function here is pure: the configured placeholder map is copied, never
mutated, and resolving the same inputs twice yields the same URL.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Optional

import httpx

_TOKEN_RE = re.compile(r"\{([^{}]+)\}")


def merge_params(
    config: Optional[Mapping[str, Any]] = None,
    body: Any = None,
    params: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    """Merge lookup sources with call values taking precedence over config.

    Non-mapping bodies (raw bytes, multipart forms) contribute nothing.
    """
    merged: dict[str, Any] = dict(config or {})
    if isinstance(body, Mapping):
        merged.update(body)
    merged.update(params or {})
    return merged


def _source_key(key: str, placeholders: Mapping[str, str]) -> str:
    source = placeholders.get(key, key)
    match = _TOKEN_RE.fullmatch(source)
    return match.group(1) if match else source


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def lookup(key: str, values: Mapping[str, Any], placeholders: Optional[Mapping[str, str]] = None) -> str:
    """Return the string value for placeholder *key*, or ``""`` when missing."""
    source = _source_key(key, placeholders or {})
    value = values.get(source)
    if value is None and source != key:
        value = values.get(key)
    return _stringify(value)


def _substitute(
    template: str,
    values: Mapping[str, Any],
    placeholders: Mapping[str, str],
) -> tuple[str, set[str]]:
    consumed: set[str] = set()

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        consumed.add(key)
        consumed.add(_source_key(key, placeholders))
        return lookup(key, values, placeholders)

    return _TOKEN_RE.sub(_replace, template), consumed


def substitute(
    template: str,
    values: Mapping[str, Any],
    placeholders: Optional[Mapping[str, str]] = None,
) -> str:
    """Replace every ``{key}`` token in *template* with its looked-up value.

    Example::

        >>> substitute("/users/{id}", {"userId": 42}, {"id": "userId"})
        '/users/42'
        >>> substitute("/users/{id}", {})
        '/users/'
    """
    result, _ = _substitute(template, values, dict(placeholders or {}))
    return result


def resolve_headers(
    headers: Mapping[str, str],
    values: Mapping[str, Any],
    placeholders: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Return a copy of *headers* with placeholder tokens resolved."""
    holders = dict(placeholders or {})
    return {name: substitute(str(value), values, holders) for name, value in headers.items()}


def _query_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return json.dumps(value, separators=(",", ":"))
    if isinstance(value, (list, tuple)):
        return [_query_value(item) for item in value]
    return value


def encode_query(query: Mapping[str, Any]) -> str:
    """Serialise *query* as a url-encoded query string (no leading ``?``).

    Lists repeat their key; nested mappings are sent as compact JSON.
    """
    return str(httpx.QueryParams({key: _query_value(value) for key, value in query.items()}))


def append_query(path: str, query: Mapping[str, Any]) -> str:
    """Append *query* to *path*, joining with ``&`` if *path* already has a ``?``."""
    if not query:
        return path
    encoded = encode_query(query)
    if not encoded:
        return path
    separator = "&" if "?" in path else "?"
    return f"{path}{separator}{encoded}"


def resolve_path(
    path: str,
    method: str,
    body: Any = None,
    params: Optional[Mapping[str, Any]] = None,
    config: Optional[Mapping[str, Any]] = None,
    placeholders: Optional[Mapping[str, str]] = None,
) -> str:
    """Resolve path tokens and build the query string for one call.

    Query parameters are assembled in this order, later sources overriding
    earlier ones:

    1. Placeholder map entries not used in the path, when non-empty.
    2. For ``GET`` calls, the call body.
    3. The call's extra params.

    Keys consumed by path substitution never appear again in the query.

    Args:
        path: Path template, e.g. ``/users/{id}`` or ``/search?v=2``.
        method: HTTP method; only ``GET`` moves the body into the query.
        body: The call body.
        params: Extra query parameters supplied with the call.
        config: Current config snapshot used as the lowest-precedence source.
        placeholders: The builder's placeholder map.

    Returns:
        The resolved path with its query string.
    """
    holders = dict(placeholders or {})
    values = merge_params(config, body, params)
    resolved, consumed = _substitute(path, values, holders)

    query: dict[str, Any] = {}
    for key in holders:
        if key in consumed:
            continue
        value = lookup(key, values, holders)
        # unresolved optional placeholders must not leave empty query keys
        if value != "":
            query[key] = value

    sources: list[Mapping[str, Any]] = []
    if method.upper() == "GET" and isinstance(body, Mapping):
        sources.append(body)
    sources.append(params or {})
    for source in sources:
        for key, value in source.items():
            if key not in consumed:
                query[key] = value

    return append_query(resolved, query)

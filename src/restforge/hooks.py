"""Request interceptors and response transform hooks.

Two hook points surround the network pipeline:

* **Interceptors** run before placeholder resolution. Each receives a
  :class:`RequestDraft` and may edit it in place or return a replacement
  draft. Interceptors run in registration order, each seeing
  the previous one's output, so additive changes compose.
* **Transform hook** runs after a successful decode with
  ``(data, fetch_context, response)`` and its return value becomes the
  call result. :func:`json_transformer` is a minimal example.

Both kinds may be plain functions or coroutines.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

import httpx

from restforge.models import FetchContext


@dataclass
class RequestDraft:
    """Mutable request state handed to interceptors before resolution.

    Attributes:
        endpoint_name: Registered name, or ``"custom"`` for ad-hoc calls.
        method: HTTP method.
        path: Path template (placeholders not yet resolved).
        body: Call body.
        headers: Unresolved request headers.
        params: Extra query parameters.
    """

    endpoint_name: str
    method: str
    path: str
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)


Interceptor = Callable[[RequestDraft], Union[Optional[RequestDraft], Awaitable[Optional[RequestDraft]]]]
TransformHook = Callable[[Any, FetchContext, httpx.Response], Any]


async def maybe_await(value: Any) -> Any:
    """Await *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


class InterceptorChain:
    """Runs request interceptors in registration order."""

    def __init__(self, interceptors: Iterable[Interceptor] = ()) -> None:
        self._interceptors: list[Interceptor] = list(interceptors)

    def add(self, interceptor: Interceptor) -> None:
        self._interceptors.append(interceptor)

    def __len__(self) -> int:
        return len(self._interceptors)

    async def run(self, draft: RequestDraft) -> RequestDraft:
        """Pass *draft* through every interceptor and return the final draft.

        Interceptors receive a copy, so a failing interceptor never leaves
        the caller's draft half-modified.
        """
        current = draft
        for interceptor in self._interceptors:
            draft_copy = replace(current, headers=dict(current.headers), params=dict(current.params))
            result = await maybe_await(interceptor(draft_copy))
            current = result if isinstance(result, RequestDraft) else draft_copy
        return current


def json_transformer(data: Any, context: Optional[FetchContext] = None, response: Any = None) -> Any:
    """Mark dict payloads with ``transformed=True``; pass anything else through."""
    if isinstance(data, dict):
        data["transformed"] = True
    return data

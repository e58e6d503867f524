"""Transport port and the per-attempt timeout wrapper.

The builder depends on a single primitive: send an :class:`httpx.Request`
and get back an :class:`httpx.Response` whose body can be read as JSON,
text or bytes. Anything with an async ``send`` method satisfies
:class:`Transport`; :class:`HttpxTransport` is the default, backed by
:class:`httpx.AsyncClient`.

:func:`send_with_timeout` runs exactly one attempt under its own deadline.
When the deadline passes the in-flight send is cancelled before the error
is raised, so no pending operation outlives its attempt.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol, runtime_checkable

import httpx

from restforge.exceptions import RequestTimeoutError, TransportFailure


@runtime_checkable
class Transport(Protocol):
    """Anything that can send one HTTP request asynchronously."""

    async def send(self, request: httpx.Request) -> httpx.Response:
        ...


class HttpxTransport:
    """Default transport backed by :class:`httpx.AsyncClient`.

    Deadlines are enforced per attempt by :func:`send_with_timeout`, so the
    underlying client is created without its own timeout.

    Args:
        client: An existing client to send through. When omitted, one is
            created lazily and owned (and closed) by this transport.
        verify_ssl: Verify TLS certificates for an owned client.

    Example::

        async with HttpxTransport() as transport:
            response = await transport.send(httpx.Request("GET", url))
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        verify_ssl: bool = True,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._verify_ssl = verify_ssl

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=None,
                verify=self._verify_ssl,
                follow_redirects=True,
            )
        return self._client

    async def send(self, request: httpx.Request) -> httpx.Response:
        return await self._ensure_client().send(request)

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpxTransport:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


async def send_with_timeout(
    transport: Transport,
    request: httpx.Request,
    timeout_ms: int,
) -> httpx.Response:
    """Send *request* once, cancelling it if it exceeds *timeout_ms*.

    Raises:
        RequestTimeoutError: The deadline passed, or the transport reported
            its own timeout.
        TransportFailure: Any other network-level error.
    """
    try:
        return await asyncio.wait_for(transport.send(request), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError as exc:
        raise RequestTimeoutError(timeout_ms) from exc
    except httpx.TimeoutException as exc:
        raise RequestTimeoutError(timeout_ms) from exc
    except httpx.TransportError as exc:
        raise TransportFailure(f"{request.method} {request.url} failed: {exc}") from exc

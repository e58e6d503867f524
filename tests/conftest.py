"""Shared test fixtures for restforge.

Provides a mock-transport builder factory, a recorder for outgoing
requests, and automatic reset of the global output manager. Async code is
driven with :func:`asyncio.run` from plain test functions.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from restforge.builder import SdkBuilder
from restforge.output import reset_output
from restforge.transport import HttpxTransport


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def run(coro: Any) -> Any:
    """Run *coro* to completion on a fresh event loop."""
    return asyncio.run(coro)


def json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        headers={"content-type": "application/json"},
        content=json.dumps(data).encode(),
    )


def mock_transport(handler: Callable[[httpx.Request], Any]) -> HttpxTransport:
    """Wrap a request handler in an :class:`HttpxTransport` over ``httpx.MockTransport``."""
    return HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class Recorder:
    """Request handler that records requests and replays queued responses.

    When the queue runs dry the last response is repeated. Every call
    returns a fresh copy so no response object is sent twice.
    """

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses) or [json_response({"ok": True})]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        template = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        return httpx.Response(
            template.status_code, headers=template.headers, content=template.content,
        )

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_builder() -> Callable[..., SdkBuilder]:
    """Factory building an :class:`SdkBuilder` on a mock transport.

    Defaults to ``https://api.example.com`` with no retry delay so retry
    tests run instantly.
    """

    def _make(handler: Callable[[httpx.Request], Any], **options: Any) -> SdkBuilder:
        options.setdefault("base_url", "https://api.example.com")
        options.setdefault("retry_delay_ms", 0)
        return SdkBuilder(transport=mock_transport(handler), **options)

    return _make

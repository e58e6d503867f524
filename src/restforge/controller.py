r"""Retry and re-authentication state machine for one logical call.

Each call moves through these states::

    ATTEMPT --(success)------------------------------> SUCCESS
       |  \--(auth required)--> AUTH_REFRESH --(re-issue once)--> ...
       |  \--(timeout / 5xx / unclassified, budget left)--> RETRY_WAIT --> ATTEMPT
       \--(terminal client error / budget spent)--------> FAILED

Transitions after an attempt are checked in this order: transport timeout,
authentication required, success, retryable server error, terminal client
error, anything else. ``max_retries`` counts *additional* attempts, so a
call makes at most ``max_retries + 1`` transport invocations. Every attempt
gets its own deadline (see :func:`~restforge.transport.send_with_timeout`)
and the wait between attempts is a fixed, non-blocking
:func:`asyncio.sleep`.

Authentication refresh re-issues the original call once, outside the retry
budget. A re-issued call that still needs authentication fails with
:class:`~restforge.exceptions.AuthError`. Concurrent refreshes are
coalesced by :class:`AuthRefresher`, and a call made from inside the auth
hook that itself needs authentication fails instead of waiting on the
refresh it belongs to.
"""

from __future__ import annotations

import asyncio
import contextvars
import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import httpx

from restforge.classifier import Verdict, classify, decode_response
from restforge.exceptions import (
    AuthError,
    RequestTimeoutError,
    RetryExhaustedError,
    TerminalClientError,
    TransportFailure,
)
from restforge.hooks import TransformHook, maybe_await
from restforge.models import BuilderConfig, ConfigBag, FetchContext, ResponseFormat
from restforge.output import debug
from restforge.transport import Transport, send_with_timeout

AuthHook = Callable[[], Union[Optional[Mapping[str, Any]], Awaitable[Optional[Mapping[str, Any]]]]]

_refreshing: contextvars.ContextVar[bool] = contextvars.ContextVar("restforge_refreshing", default=False)


class AttemptState(str, enum.Enum):
    """States of the per-call retry controller."""

    ATTEMPT = "attempt"
    SUCCESS = "success"
    RETRY_WAIT = "retry_wait"
    AUTH_REFRESH = "auth_refresh"
    FAILED = "failed"


@dataclass
class PreparedCall:
    """Everything the controller needs to run one logical call.

    Attributes:
        context: The call's fetch context.
        build_request: Factory producing a fresh request for each attempt.
        max_retries: Additional attempts allowed after the first.
        retry_delay_ms: Fixed wait between attempts.
        response_format: Explicit decode format, overriding sniffing.
        auth_generation: :attr:`AuthRefresher.generation` seen when the call
            was prepared.
    """

    context: FetchContext
    build_request: Callable[[], httpx.Request]
    max_retries: int
    retry_delay_ms: int
    response_format: Optional[ResponseFormat | str] = None
    auth_generation: int = 0


class AuthRefresher:
    """Single-flight wrapper around the caller's re-authentication hook.

    Calls that hit an auth-required response while another call is already
    refreshing wait for that refresh instead of invoking the hook again.
    A call detects this by comparing the generation it saw when it was
    prepared with the current one.

    Args:
        bag: The builder's shared configuration; the hook's result is merged
            into it with :meth:`~restforge.models.ConfigBag.update`.
        hook_provider: Returns the current hook, or ``None`` when the builder
            has no way to re-authenticate.
    """

    def __init__(self, bag: ConfigBag, hook_provider: Callable[[], Optional[AuthHook]]) -> None:
        self._bag = bag
        self._hook_provider = hook_provider
        self._lock = asyncio.Lock()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def refresh(self, seen_generation: int) -> None:
        """Run the auth hook unless a refresh completed since *seen_generation*.

        Raises:
            AuthError: No hook is available, the hook raised, or a call made
                by the hook itself needs authentication.
        """
        if _refreshing.get():
            raise AuthError("Authentication required by a call made from the authentication hook")
        async with self._lock:
            if self._generation != seen_generation:
                debug("Credentials were refreshed by a concurrent call; skipping auth hook")
                return
            hook = self._hook_provider()
            if hook is None:
                raise AuthError("Authentication error and no authentication hook provided")
            token = _refreshing.set(True)
            try:
                delta = await maybe_await(hook())
            except Exception as exc:
                raise AuthError(f"Re-authentication failed: {exc}") from exc
            finally:
                _refreshing.reset(token)
            if delta is not None and not isinstance(delta, Mapping):
                raise AuthError(
                    f"Re-authentication failed: hook returned {type(delta).__name__}, expected a mapping"
                )
            self._bag.update(delta)
            self._generation += 1
            debug(f"Re-authenticated; config version is now {self._bag.version}")


class RetryController:
    """Drives the attempt loop of a call through :class:`AttemptState`.

    Args:
        config: Builder settings (status predicates, timeout, default format).
        transport: Where requests are sent.
        refresher: Shared auth refresher of the owning builder.
        transform: Optional hook applied to every decoded success payload.
    """

    def __init__(
        self,
        config: BuilderConfig,
        transport: Transport,
        refresher: AuthRefresher,
        transform: Optional[TransformHook] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._refresher = refresher
        self._transform = transform

    async def run(
        self,
        call: PreparedCall,
        reissue: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> Any:
        """Execute *call* and return its decoded (and transformed) result.

        Args:
            call: The prepared call.
            reissue: Re-runs the whole call after a successful refresh.
                ``None`` marks a call that is itself a re-issue, which may
                not trigger another refresh.

        Raises:
            RequestTimeoutError: The final attempt timed out.
            RetryExhaustedError: Every attempt failed.
            TerminalClientError: The server returned a terminal client error.
            AuthError: Authentication could not be refreshed.
            DecodeError: The success body could not be decoded.
        """
        total = call.max_retries + 1
        attempt = 0
        state = AttemptState.ATTEMPT
        outcome: Any = None

        while True:
            if state is AttemptState.ATTEMPT:
                attempt += 1
                state, outcome = await self._attempt(call, attempt, total)
            elif state is AttemptState.RETRY_WAIT:
                await asyncio.sleep(call.retry_delay_ms / 1000)
                state = AttemptState.ATTEMPT
            elif state is AttemptState.AUTH_REFRESH:
                if reissue is None:
                    raise AuthError(
                        f"{call.context.endpoint_name}: authentication still required after re-authentication"
                    )
                debug(f"{call.context.method} {call.context.url}: authentication required, refreshing")
                await self._refresher.refresh(call.auth_generation)
                return await reissue()
            elif state is AttemptState.SUCCESS:
                return outcome
            else:
                raise outcome

    async def _attempt(self, call: PreparedCall, attempt: int, total: int) -> tuple[AttemptState, Any]:
        ctx = call.context
        label = f"{ctx.method} {ctx.url}"
        remaining = attempt < total

        try:
            response = await send_with_timeout(self._transport, call.build_request(), self._config.timeout_ms)
        except RequestTimeoutError as exc:
            if remaining:
                debug(f"{label}: timed out after {self._config.timeout_ms}ms, retrying ({attempt}/{total})")
                return AttemptState.RETRY_WAIT, None
            failure = RequestTimeoutError(self._config.timeout_ms, attempts=attempt)
            failure.__cause__ = exc
            return AttemptState.FAILED, failure
        except TransportFailure as exc:
            if remaining:
                debug(f"{label}: {exc}, retrying ({attempt}/{total})")
                return AttemptState.RETRY_WAIT, None
            failure = RetryExhaustedError(attempt, detail=str(exc))
            failure.__cause__ = exc
            return AttemptState.FAILED, failure

        verdict = classify(response, self._config, ctx)
        status = response.status_code

        if verdict is Verdict.AUTH_REQUIRED:
            return AttemptState.AUTH_REFRESH, None

        if verdict is Verdict.SUCCESS:
            data = decode_response(response, call.response_format, self._config.response_format)
            if self._transform is not None:
                data = await maybe_await(self._transform(data, ctx, response))
            return AttemptState.SUCCESS, data

        if verdict is Verdict.RETRYABLE and remaining:
            debug(f"{label}: server error {status}, retrying in {call.retry_delay_ms}ms ({attempt}/{total})")
            return AttemptState.RETRY_WAIT, None

        if verdict is Verdict.TERMINAL:
            return AttemptState.FAILED, TerminalClientError(status, response.text, response.reason_phrase)

        if remaining:
            debug(f"{label}: unexpected status {status}, retrying in {call.retry_delay_ms}ms ({attempt}/{total})")
            return AttemptState.RETRY_WAIT, None

        return AttemptState.FAILED, RetryExhaustedError(attempt, last_status=status)

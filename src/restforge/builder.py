"""Endpoint registry, dynamic dispatch and the per-call pipeline.

:class:`SdkBuilder` is the public entry point. Endpoints are registered by
name and become awaitable operations, reachable three ways::

    builder = SdkBuilder(base_url="https://api.example.com", placeholders={"id": "userId"})
    get_user = builder.register("getUser", "/users/{id}", "GET")

    await get_user({"userId": "42"})              # handle returned by register
    await builder.getUser({"userId": "42"})       # attribute dispatch
    await builder.invoke("getUser", {"userId": "42"})

A call flows through: interceptors, placeholder resolution (headers, path,
query string), request assembly, then the
:class:`~restforge.controller.RetryController` attempt loop, which handles
timeouts, retries, auth refresh, decoding and the transform hook.

Function endpoints (:meth:`SdkBuilder.register_function`) skip the network
pipeline and call a plain function with the current config snapshot. A
function registered as ``authenticate`` doubles as the auth hook when no
explicit hook was supplied.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

import httpx
from pydantic import ValidationError

from restforge.assembler import BodySerializer, assemble, encode_body
from restforge.config import ApiDefinition
from restforge.controller import AuthHook, AuthRefresher, PreparedCall, RetryController
from restforge.exceptions import ConfigError, UnregisteredEndpointError
from restforge.hooks import Interceptor, InterceptorChain, RequestDraft, TransformHook, maybe_await
from restforge.models import (
    BodyEncoding,
    BuilderConfig,
    ConfigBag,
    EndpointDefinition,
    FetchContext,
    ResponseFormat,
)
from restforge.placeholders import merge_params, resolve_headers, resolve_path
from restforge.transport import HttpxTransport, Transport

CUSTOM_ENDPOINT = "custom"
AUTH_FUNCTION = "authenticate"

FunctionEndpoint = Callable[..., Any]


class EndpointHandle:
    """Awaitable operation bound to one registered endpoint name.

    Handles look the definition up at call time, so re-registering a name
    redirects existing handles to the new definition.
    """

    def __init__(self, builder: SdkBuilder, name: str) -> None:
        self._builder = builder
        self.name = name

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return await self._builder.invoke(self.name, *args, **kwargs)

    def __repr__(self) -> str:
        return f"EndpointHandle({self.name!r})"


class SdkBuilder:
    """Declarative REST client builder.

    Args:
        settings: Builder settings. When omitted, *options* are validated
            into a :class:`~restforge.models.BuilderConfig`.
        transport: Request sender. Defaults to an owned
            :class:`~restforge.transport.HttpxTransport`.
        cache: Optional :class:`~restforge.cache.CacheProvider` exposed as
            :attr:`cache` for function endpoints.
        auth_hook: Zero-argument (async) callable returning a config delta
            after re-authenticating.
        transform: Hook applied to every decoded success payload.
        interceptors: Request interceptors, run in order before resolution.
        **options: ``BuilderConfig`` fields, including ``config`` for the
            initial config bag. Applied over *settings* when both are given.

    Raises:
        ConfigError: The options do not form a valid configuration.
    """

    def __init__(
        self,
        settings: Optional[BuilderConfig] = None,
        *,
        transport: Optional[Transport] = None,
        cache: Any = None,
        auth_hook: Optional[AuthHook] = None,
        transform: Optional[TransformHook] = None,
        interceptors: tuple[Interceptor, ...] | list[Interceptor] = (),
        **options: Any,
    ) -> None:
        try:
            if settings is None:
                config = BuilderConfig(**options)
            elif options:
                config = BuilderConfig(**{**dict(settings), **options})
            else:
                config = settings
        except ValidationError as exc:
            raise ConfigError(f"Invalid builder configuration: {exc}") from exc

        self._settings = config
        self._bag = ConfigBag(config.config)
        self._default_headers = dict(config.default_headers)
        if config.body_encoding == BodyEncoding.JSON:
            self._default_headers = {
                k: v for k, v in self._default_headers.items() if k.lower() != "content-type"
            }
            self._default_headers["Content-Type"] = "application/json"

        self._owns_transport = transport is None
        self._transport: Transport = transport if transport is not None else HttpxTransport()
        self.cache = cache
        self._auth_hook = auth_hook
        self._interceptors = InterceptorChain(interceptors)
        self._endpoints: dict[str, EndpointDefinition] = {}
        self._functions: dict[str, FunctionEndpoint] = {}
        self._refresher = AuthRefresher(self._bag, self._current_auth_hook)
        self._controller = RetryController(config, self._transport, self._refresher, transform)

    @classmethod
    def from_definition(cls, definition: ApiDefinition, **kwargs: Any) -> SdkBuilder:
        """Create a builder from an API definition and register its routes.

        *kwargs* are forwarded to the constructor (``transport``, ``cache``,
        ``auth_hook``, ...).
        """
        builder = cls(BuilderConfig(**definition.builder_options()), **kwargs)
        builder.register_routes(definition.routes)
        return builder

    # ------------------------------------------------------------------ #
    # Registry
    # ------------------------------------------------------------------ #

    def register(self, name: str, path: str, method: Optional[str] = None) -> EndpointHandle:
        """Register (or replace) endpoint *name* and return its handle.

        Args:
            name: Unique endpoint name; also reachable as ``builder.<name>``.
            path: Path template relative to ``base_url``.
            method: HTTP method; defaults to the builder's ``default_method``.

        Raises:
            ConfigError: Invalid method, or *name* shadows a builder attribute.
        """
        self._check_name(name)
        try:
            definition = EndpointDefinition(
                name=name, path=path, method=method or self._settings.default_method,
            )
        except ValidationError as exc:
            raise ConfigError(f"Invalid endpoint {name!r}: {exc}") from exc
        self._functions.pop(name, None)
        self._endpoints[name] = definition
        return EndpointHandle(self, name)

    def register_function(self, name: str, fn: FunctionEndpoint) -> EndpointHandle:
        """Expose *fn* as operation *name*, called as ``fn(config, *args, **kwargs)``.

        The network pipeline is bypassed entirely. *fn* may be a coroutine
        function.
        """
        self._check_name(name)
        if not callable(fn):
            raise ConfigError(f"Function endpoint {name!r} must be callable")
        self._endpoints.pop(name, None)
        self._functions[name] = fn
        return EndpointHandle(self, name)

    def register_routes(self, routes: Mapping[str, Any]) -> dict[str, EndpointHandle]:
        """Register a declarative endpoint table.

        Values are either ``"METHOD /path"`` strings, bare ``"/path"`` strings
        (default method), or mappings with ``path`` and optional ``method``.

        Example::

            builder.register_routes({
                "getAccessToken": "GET /cgi-bin/token",
                "createMenu": {"method": "POST", "path": "/cgi-bin/menu/create"},
            })
        """
        handles: dict[str, EndpointHandle] = {}
        for name, route in routes.items():
            method, path = parse_route(route)
            handles[name] = self.register(name, path, method)
        return handles

    def _check_name(self, name: str) -> None:
        if not name or not name.strip():
            raise ConfigError(f"Invalid endpoint name: {name!r}")
        if name.startswith("_") or hasattr(type(self), name) or name in self.__dict__:
            raise ConfigError(f"Endpoint name {name!r} shadows a builder attribute")

    @property
    def endpoints(self) -> Mapping[str, EndpointDefinition]:
        """Read-only view of the registered network endpoints."""
        return MappingProxyType(self._endpoints)

    @property
    def functions(self) -> Mapping[str, FunctionEndpoint]:
        """Read-only view of the registered function endpoints."""
        return MappingProxyType(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._endpoints or name in self._functions

    def __getattr__(self, name: str) -> EndpointHandle:
        if name.startswith("_"):
            raise AttributeError(name)
        registry = self.__dict__.get("_endpoints", {})
        functions = self.__dict__.get("_functions", {})
        if name in registry or name in functions:
            return EndpointHandle(self, name)
        raise UnregisteredEndpointError(name)

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self._endpoints) | set(self._functions))

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @property
    def settings(self) -> BuilderConfig:
        return self._settings

    @property
    def config(self) -> dict[str, Any]:
        """Snapshot of the mutable config bag."""
        return self._bag.snapshot()

    @property
    def config_version(self) -> int:
        return self._bag.version

    def enhance_config(self, delta: Mapping[str, Any]) -> int:
        """Merge *delta* into the config bag and return the new version."""
        return self._bag.update(delta)

    def add_interceptor(self, interceptor: Interceptor) -> None:
        self._interceptors.add(interceptor)

    def _current_auth_hook(self) -> Optional[AuthHook]:
        if self._auth_hook is not None:
            return self._auth_hook
        if AUTH_FUNCTION in self._functions:
            return lambda: self.invoke(AUTH_FUNCTION)
        return None

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    async def invoke(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Run operation *name*.

        Network endpoints accept ``(params=None, extra_params=None, **options)``
        where *options* are the per-call overrides of :meth:`request`.
        Function endpoints receive ``(config, *args, **kwargs)``.

        Raises:
            UnregisteredEndpointError: *name* was never registered.
        """
        fn = self._functions.get(name)
        if fn is not None:
            return await maybe_await(fn(self._bag.snapshot(), *args, **kwargs))

        definition = self._endpoints.get(name)
        if definition is None:
            raise UnregisteredEndpointError(name)
        return await self._call_endpoint(definition, *args, **kwargs)

    async def _call_endpoint(
        self,
        definition: EndpointDefinition,
        params: Any = None,
        extra_params: Optional[Mapping[str, Any]] = None,
        **options: Any,
    ) -> Any:
        return await self._execute(
            definition.path,
            definition.method.value,
            body=params,
            params=extra_params,
            endpoint_name=definition.name,
            **options,
        )

    async def request(
        self,
        path: str,
        *,
        method: Optional[str] = None,
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        response_format: Optional[ResponseFormat | str] = None,
        serialize_body: Optional[BodySerializer] = None,
        retry_delay_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> Any:
        """Call *path* without registering it (endpoint name ``"custom"``).

        Args:
            path: Path template relative to ``base_url``.
            method: HTTP method; defaults to the builder's ``default_method``.
            body: Call body; for ``GET`` it only feeds the query string.
            params: Extra query parameters.
            headers: Per-call headers merged over the defaults.
            content_type: Body encoding override (``"json"``, a MIME type, ...).
            response_format: Decode format override.
            serialize_body: Replacement for the form serialiser.
            retry_delay_ms: Per-call retry delay.
            max_retries: Per-call retry budget.
        """
        return await self._execute(
            path,
            (method or self._settings.default_method.value).upper(),
            body=body,
            params=params,
            endpoint_name=CUSTOM_ENDPOINT,
            headers=headers,
            content_type=content_type,
            response_format=response_format,
            serialize_body=serialize_body,
            retry_delay_ms=retry_delay_ms,
            max_retries=max_retries,
        )

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        """Ad-hoc ``GET``; *params* end up in the query string."""
        return await self.request(path, method="GET", body=params, **options)

    async def post(self, path: str, body: Any = None, **options: Any) -> Any:
        """Ad-hoc ``POST`` with *body* encoded per the builder's encoding."""
        return await self.request(path, method="POST", body=body, **options)

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    async def _execute(
        self,
        path: str,
        method: str,
        *,
        body: Any,
        params: Optional[Mapping[str, Any]],
        endpoint_name: str,
        headers: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        response_format: Optional[ResponseFormat | str] = None,
        serialize_body: Optional[BodySerializer] = None,
        retry_delay_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
        allow_reauth: bool = True,
    ) -> Any:
        settings = self._settings
        draft = await self._interceptors.run(
            RequestDraft(
                endpoint_name=endpoint_name,
                method=method,
                path=path,
                body={} if body is None else body,
                headers={**self._default_headers, **dict(headers or {})},
                params=dict(params or {}),
            )
        )

        generation = self._refresher.generation
        config = self._bag.snapshot()
        values = merge_params(config, draft.body, draft.params)
        resolved_headers = resolve_headers(draft.headers, values, settings.placeholders)
        resolved_path = resolve_path(
            draft.path, draft.method, draft.body, draft.params, config, settings.placeholders,
        )
        final_headers, _ = encode_body(
            draft.method, draft.body, resolved_headers, content_type,
            settings.body_encoding, serialize_body,
        )

        def build_request() -> httpx.Request:
            return assemble(
                settings.base_url, resolved_path, draft.method, draft.body, resolved_headers,
                content_type, settings.body_encoding, serialize_body,
            )

        context = FetchContext(
            body=draft.body,
            headers=final_headers,
            path=draft.path,
            method=draft.method,
            endpoint_name=endpoint_name,
            url=f"{settings.base_url}{resolved_path}",
            params=draft.params,
            config=config,
        )
        call = PreparedCall(
            context=context,
            build_request=build_request,
            max_retries=settings.max_retries if max_retries is None else max_retries,
            retry_delay_ms=settings.retry_delay_ms if retry_delay_ms is None else retry_delay_ms,
            response_format=response_format,
            auth_generation=generation,
        )

        async def _reissue() -> Any:
            return await self._execute(
                path, method, body=body, params=params, endpoint_name=endpoint_name,
                headers=headers, content_type=content_type, response_format=response_format,
                serialize_body=serialize_body, retry_delay_ms=retry_delay_ms,
                max_retries=max_retries, allow_reauth=False,
            )

        return await self._controller.run(call, _reissue if allow_reauth else None)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def aclose(self) -> None:
        """Close the transport if the builder created it."""
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            await self._transport.aclose()

    async def __aenter__(self) -> SdkBuilder:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def parse_route(route: Any) -> tuple[Optional[str], str]:
    """Split a route table value into ``(method, path)``.

    Raises:
        ConfigError: The value is neither a route string nor a mapping with
            a ``path``.
    """
    if isinstance(route, str):
        parts = route.split(None, 1)
        if len(parts) == 2:
            return parts[0].upper(), parts[1].strip()
        if len(parts) == 1:
            return None, parts[0]
    elif isinstance(route, Mapping) and route.get("path"):
        method = route.get("method")
        return (method.upper() if method else None), route["path"]
    raise ConfigError(f"Invalid route definition: {route!r}")


def sdk_builder(**options: Any) -> SdkBuilder:
    """Shorthand for ``SdkBuilder(**options)``."""
    return SdkBuilder(**options)

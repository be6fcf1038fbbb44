from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, MutableMapping
from dataclasses import dataclass, field
from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.responses import Response

from apicore.config import Config, Environment
from apicore.cors import CorsPolicy
from apicore.errors import MiddlewareSetupError, error_response
from apicore.observability import install_request_metrics
from apicore.registry import ServiceRegistry
from apicore.request_id import RequestIdService
from apicore.server import ServerSettings

ReceiveMessage = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[ReceiveMessage]]
MiddlewareInstaller = Callable[[FastAPI], None]
WRITE_METHODS = frozenset({"POST", "PUT", "PATCH"})
OVERFLOW_STATE_ATTR = "_body_size_overflow"

debug_logger = logging.getLogger("apicore.debug_requests")


@dataclass
class MiddlewareEntry:
    name: str
    install: MiddlewareInstaller


@dataclass
class MiddlewareChain:
    """Middleware in installation order; the last entry ends up outermost."""

    entries: list[MiddlewareEntry] = field(default_factory=list)

    def add(self, name: str, install: MiddlewareInstaller) -> None:
        self.entries.append(MiddlewareEntry(name=name, install=install))

    @property
    def names(self) -> list[str]:
        return [entry.name for entry in self.entries]

    def apply(self, api: FastAPI) -> None:
        for entry in self.entries:
            entry.install(api)


@dataclass(frozen=True)
class BodySizeGuard:
    """Rejects write requests whose body exceeds ``max_body_size`` bytes.

    The declared ``Content-Length`` is checked up front; chunked or lying
    clients are cut off while the body is streamed in.
    """

    max_body_size: int

    def too_large(self, request: Request, **details: Any) -> Response:
        return error_response(
            request,
            status_code=413,
            code="PAYLOAD_TOO_LARGE",
            message="Payload Too Large",
            details={"max_body_size": self.max_body_size, **details},
        )

    def check_declared_length(self, request: Request) -> tuple[int | None, Response | None]:
        raw = (request.headers.get("content-length") or "").strip()
        if not raw:
            return None, None
        try:
            declared = int(raw)
        except ValueError:
            return None, error_response(
                request,
                status_code=400,
                code="BAD_REQUEST",
                message="Invalid Content-Length header",
            )
        if declared > self.max_body_size:
            return declared, self.too_large(request, content_length=declared)
        return declared, None

    def limit_stream(self, request: Request, declared: int | None) -> None:
        original = cast(Receive, getattr(request, "_receive"))
        received = 0

        async def receive() -> ReceiveMessage:
            nonlocal received
            message = await original()
            if message.get("type") != "http.request":
                return message
            received += len(message.get("body") or b"")
            if received <= self.max_body_size:
                return message
            overflow: dict[str, Any] = {"request_body_bytes": received}
            if declared is not None:
                overflow["content_length"] = declared
            setattr(request.state, OVERFLOW_STATE_ATTR, overflow)
            # end the body early
            return {"type": "http.request", "body": b"", "more_body": False}

        setattr(request, "_receive", receive)

    def overflow(self, request: Request) -> dict[str, Any] | None:
        return getattr(request.state, OVERFLOW_STATE_ATTR, None)


def install_request_guard(api: FastAPI, *, server: ServerSettings, request_ids: RequestIdService) -> None:
    guard = BodySizeGuard(max_body_size=int(server.max_body_size))

    @api.middleware("http")
    async def request_guard(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request.state.request_id = getattr(request.state, "request_id", None) or request_ids.resolve(
            request.headers.get(request_ids.header_name)
        )

        if request.method in WRITE_METHODS:
            declared, rejection = guard.check_declared_length(request)
            if rejection is not None:
                return rejection
            guard.limit_stream(request, declared)

        try:
            response = await call_next(request)
        except Exception:
            overflow = guard.overflow(request)
            if overflow is None:
                raise
            return guard.too_large(request, **overflow)

        overflow = guard.overflow(request)
        if overflow is not None:
            return guard.too_large(request, **overflow)
        response.headers[request_ids.header_name] = request.state.request_id
        return response


def install_debug_request_logging(api: FastAPI) -> None:
    @api.middleware("http")
    async def debug_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        debug_logger.debug(
            "request_received",
            extra={"method": request.method, "path": request.url.path, "request_id": getattr(request.state, "request_id", None)},
        )
        return await call_next(request)


def _require(registry: ServiceRegistry, key: type[Any]) -> Any:
    service = registry.find(key)
    if service is None:
        raise MiddlewareSetupError(f"{key.__name__} must be registered before middleware setup")
    return service


def setup_middlewares(registry: ServiceRegistry, environment: Environment, config: Config) -> MiddlewareChain:
    cors_policy: CorsPolicy = _require(registry, CorsPolicy)
    server: ServerSettings = _require(registry, ServerSettings)
    request_ids: RequestIdService = _require(registry, RequestIdService)

    chain = MiddlewareChain()
    chain.add("cors", lambda api: api.add_middleware(CORSMiddleware, **cors_policy.middleware_options()))
    chain.add(
        "trusted_host",
        lambda api: api.add_middleware(TrustedHostMiddleware, allowed_hosts=config.allowed_hosts_list),
    )
    chain.add("request_guard", lambda api: install_request_guard(api, server=server, request_ids=request_ids))
    if config.MIDDLEWARE_REQUEST_METRICS:
        chain.add("request_metrics", lambda api: install_request_metrics(api, request_ids))
    if config.MIDDLEWARE_DEBUG_REQUESTS and not environment.is_release:
        chain.add("debug_requests", install_debug_request_logging)

    registry.register(chain)
    return chain

"""
Request metrics and access logging.

Counters are labelled by route template (``/users/{user_id}``), never by the
raw path, so label cardinality stays bounded by the number of routes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.routing import Match

from apicore.request_id import RequestIdService

REQUEST_COUNT = Counter(
    "apicore_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "apicore_http_request_duration_seconds",
    "HTTP request latency (seconds)",
    ["method", "path"],
)
KNOWN_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"})
MAX_PATH_LABEL_LENGTH = 96
UNMATCHED_PATH = "/_unmatched"

logger = logging.getLogger("apicore.access")


def metric_method_label(method: str | None) -> str:
    normalized = (method or "").upper()
    return normalized if normalized in KNOWN_METHODS else "OTHER"


def metric_status_label(status_code: int) -> str:
    return str(int(status_code)) if 100 <= int(status_code) <= 599 else "000"


def metric_path_label(request: Request, api: FastAPI) -> str:
    template = getattr(request.scope.get("route"), "path", None)
    if not template:
        for route in api.router.routes:
            if route.matches(request.scope)[0] == Match.FULL:
                template = getattr(route, "path", None)
                break
    template = str(template or UNMATCHED_PATH)
    return template if len(template) <= MAX_PATH_LABEL_LENGTH else "/_label_too_long"


def status_code_from_exception(exc: BaseException) -> int:
    if isinstance(exc, RequestValidationError):
        return 400
    if isinstance(exc, StarletteHTTPException):
        return int(exc.status_code)
    return 500


@dataclass
class RequestObservation:
    request_id: str
    method: str
    path: str
    status_code: int
    elapsed_seconds: float
    client_ip: str | None

    def record(self) -> None:
        method = metric_method_label(self.method)
        REQUEST_COUNT.labels(method, self.path, metric_status_label(self.status_code)).inc()
        REQUEST_LATENCY.labels(method, self.path).observe(self.elapsed_seconds)

    def log_fields(self) -> dict[str, str | int | float | None]:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "status_code": self.status_code,
            "duration_ms": round(self.elapsed_seconds * 1000, 2),
            "client_ip": self.client_ip,
        }


def install_request_metrics(api: FastAPI, request_ids: RequestIdService) -> None:
    @api.middleware("http")
    async def request_metrics(request: Request, call_next):
        request.state.request_id = getattr(request.state, "request_id", None) or request_ids.resolve(
            request.headers.get(request_ids.header_name)
        )
        started = time.perf_counter()

        def observe(status_code: int) -> RequestObservation:
            observation = RequestObservation(
                request_id=request.state.request_id,
                method=request.method,
                path=metric_path_label(request, api),
                status_code=status_code,
                elapsed_seconds=time.perf_counter() - started,
                client_ip=request.client.host if request.client else None,
            )
            observation.record()
            return observation

        try:
            response = await call_next(request)
        except Exception as exc:
            observation = observe(status_code_from_exception(exc))
            if observation.status_code >= 500:
                logger.exception("request_failed", extra=observation.log_fields())
            else:
                logger.warning("request_failed", extra=observation.log_fields())
            raise

        logger.info("request_completed", extra=observe(response.status_code).log_fields())
        return response


def metrics_response() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

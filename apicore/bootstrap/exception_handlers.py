from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apicore.errors import error_response, normalize_http_exception
from apicore.registry import ServiceNotRegistered


def validation_message(errors: list[dict[str, Any]]) -> str:
    """``body.password: String should have at least 8 characters; ...``"""
    parts = []
    for error in errors:
        location = ".".join(str(item) for item in error.get("loc", ()))
        text = error.get("msg", "invalid request")
        parts.append(f"{location}: {text}" if location else text)
    return "; ".join(parts) or "invalid request"


def register_exception_handlers(api: FastAPI, *, logger: logging.Logger) -> None:
    def request_id_of(request: Request) -> str | None:
        return getattr(request.state, "request_id", None)

    async def on_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return normalize_http_exception(request, exc)

    async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = list(exc.errors())
        return error_response(
            request,
            status_code=400,
            code="VALIDATION_ERROR",
            message=validation_message(errors),
            details=errors,
        )

    async def on_missing_service(request: Request, exc: ServiceNotRegistered) -> JSONResponse:
        logger.error("service_not_registered", extra={"request_id": request_id_of(request), "service": str(exc)})
        return error_response(request, status_code=503, code="SERVICE_UNAVAILABLE", message="Service Unavailable")

    async def on_unhandled(request: Request, _exc: Exception) -> JSONResponse:
        logger.exception("unhandled_exception", extra={"request_id": request_id_of(request)})
        return error_response(request, status_code=500, code="INTERNAL_ERROR", message="Internal Server Error")

    handlers: dict[type[Exception], Any] = {
        StarletteHTTPException: on_http_exception,
        RequestValidationError: on_validation_error,
        ServiceNotRegistered: on_missing_service,
        Exception: on_unhandled,
    }
    for exc_class, handler in handlers.items():
        api.add_exception_handler(exc_class, handler)
